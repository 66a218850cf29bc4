"""FastAPI app for the Giver's Gain CRM.

Contacts and interactions, opportunities with duplicate detection, the
referral ledger, relationship scoring, network analysis, LLM introduction
matching and weekly commitments.
"""
from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ai.introductions import IntroductionMatcher, IntroductionMatchingError
from .config import settings
from .db import get_session
from .logging_config import setup_logging
from .pipelines import NotFoundError
from .pipelines import (
    analytics,
    bni_metrics,
    commitments,
    contacts,
    decay,
    duplicates,
    gains,
    goals,
    network,
    network_value,
    projects,
    referrals,
    team,
)
from .pipelines.analytics import AnalyticsError
from .pipelines.bni_metrics import BNIMetricsError
from .pipelines.commitments import CommitmentError
from .pipelines.contacts import ContactError
from .pipelines.decay import DecayError
from .pipelines.duplicates import DuplicateDetectionError
from .pipelines.gains import GainsError
from .pipelines.goals import GoalError
from .pipelines.network import NetworkAnalysisError
from .pipelines.network_value import NetworkValueError
from .pipelines.projects import ProjectError
from .pipelines.referrals import ReferralError
from .pipelines.team import TeamError
from .schemas import (
    AssignmentRequest,
    BNIMetricsDTO,
    CommitmentDTO,
    CommitmentIncrement,
    CommitmentUpdate,
    CommunityDTO,
    ConnectionDiagnosticsDTO,
    ContactCreate,
    ContactDTO,
    ContactGoalCreate,
    ContactGoalDTO,
    ContactUpdate,
    DecayReportDTO,
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    DuplicateRemovalDTO,
    DuplicateReportDTO,
    ErrorResponse,
    GainsMeetingCreate,
    GainsMeetingDTO,
    GainsMeetingResponse,
    GiveReferralResponse,
    GoalCreate,
    GoalDetailDTO,
    GoalUpdate,
    HealthResponse,
    InfluenceScoreDTO,
    InteractionCreate,
    InteractionDTO,
    IntroductionMatchResponse,
    IntroductionPathDTO,
    IntroductionPathResponse,
    MemberAssignmentDTO,
    MutualConnectionDTO,
    NetworkMetricsDTO,
    NetworkNodeDTO,
    NetworkValueDTO,
    OpportunityCreate,
    OpportunityDTO,
    ProjectAssignmentDTO,
    ProjectCreate,
    ProjectDTO,
    ProjectUpdate,
    ReferralGivenCreate,
    ReferralGivenDTO,
    ReferralReceivedCreate,
    ReferralReceivedDTO,
    ReferralStatusUpdate,
    ReferralSummaryDTO,
    RelationshipAnalyticsDTO,
    RelevanceNoteUpdate,
    TargetCreate,
    TargetDTO,
    TargetUpdate,
    TeamMemberCreate,
    TeamMemberDTO,
    TeamMemberUpdate,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} {settings.version} starting up ({settings.environment.value})")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Contacts, referrals and networking analytics for BNI Giver's Gain",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers: (exception class, HTTP status, error code)
ERROR_RESPONSES: list[tuple[type[Exception], int, str]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (ContactError, status.HTTP_400_BAD_REQUEST, "contact_error"),
    (DuplicateDetectionError, status.HTTP_400_BAD_REQUEST, "duplicate_detection_error"),
    (ReferralError, status.HTTP_400_BAD_REQUEST, "referral_error"),
    (GainsError, status.HTTP_400_BAD_REQUEST, "gains_error"),
    (CommitmentError, status.HTTP_400_BAD_REQUEST, "commitment_error"),
    (TeamError, status.HTTP_400_BAD_REQUEST, "team_error"),
    (ProjectError, status.HTTP_400_BAD_REQUEST, "project_error"),
    (GoalError, status.HTTP_400_BAD_REQUEST, "goal_error"),
    (IntroductionMatchingError, status.HTTP_400_BAD_REQUEST, "introduction_matching_error"),
    (NetworkAnalysisError, status.HTTP_500_INTERNAL_SERVER_ERROR, "network_analysis_error"),
    (NetworkValueError, status.HTTP_500_INTERNAL_SERVER_ERROR, "network_value_error"),
    (BNIMetricsError, status.HTTP_500_INTERNAL_SERVER_ERROR, "bni_metrics_error"),
    (DecayError, status.HTTP_500_INTERNAL_SERVER_ERROR, "decay_error"),
    (AnalyticsError, status.HTTP_500_INTERNAL_SERVER_ERROR, "analytics_error"),
]


def _register_error_handler(exc_class: type[Exception], status_code: int, code: str) -> None:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{code} on {request.method} {request.url.path}: {exc}")
        else:
            logger.warning(f"{code} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(error=code, detail=str(exc)).model_dump(),
        )

    app.add_exception_handler(exc_class, handler)


for _exc_class, _status_code, _code in ERROR_RESPONSES:
    _register_error_handler(_exc_class, _status_code, _code)


# Dependencies
def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    """The calling user's id from the ``X-User-Id`` header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return x_user_id


def get_optional_user(x_user_id: str | None = Header(default=None)) -> str | None:
    return x_user_id or None


def get_introduction_matcher() -> IntroductionMatcher:
    """Matcher bound to the configured LLM gateway."""
    return IntroductionMatcher()


def _scope(mine: bool, user_id: str | None) -> str | None:
    # Restricting to "my" contacts needs to know who is asking
    if mine and user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required when mine=true",
        )
    return user_id if mine else None


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version=settings.version)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "contacts": "/contacts",
            "opportunities": "/opportunities",
            "referrals": "/referrals",
            "team": "/team-members",
            "projects": "/projects",
            "targets": "/targets",
            "goals": "/goals",
            "analytics": "/analytics/relationships",
            "network": "/network",
            "introductions": "/introductions/analyze",
            "commitments": "/commitments/current",
            "docs": "/docs",
        },
    }


# Contacts

@app.get("/contacts", response_model=list[ContactDTO])
async def list_contacts(
    assigned_to: int | None = Query(default=None, alias="assignedTo"),
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """List contacts, optionally only those assigned to a team member or created by the caller."""
    return await contacts.list_contacts(session, assigned_to=assigned_to, created_by=_scope(mine, user_id))


@app.post("/contacts", response_model=ContactDTO, status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: ContactCreate,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await contacts.create_contact(session, request.model_dump(), created_by=user_id)


@app.post("/contacts/deduplicate", response_model=DuplicateRemovalDTO)
async def deduplicate_contacts(session: AsyncSession = Depends(get_session)):
    """Delete contacts that repeat an older contact's email."""
    return await contacts.remove_duplicate_contacts(session)


@app.get("/contacts/duplicates", response_model=DuplicateReportDTO)
async def duplicate_report(session: AsyncSession = Depends(get_session)):
    return await contacts.check_for_duplicates(session)


@app.get("/contacts/{contact_id}", response_model=ContactDTO)
async def get_contact(contact_id: int, session: AsyncSession = Depends(get_session)):
    return await contacts.get_contact(session, contact_id)


@app.patch("/contacts/{contact_id}", response_model=ContactDTO)
async def update_contact(
    contact_id: int,
    request: ContactUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await contacts.update_contact(session, contact_id, request.model_dump(exclude_unset=True))


@app.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(contact_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await contacts.delete_contact(session, contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/contacts/{contact_id}/interactions", response_model=list[InteractionDTO])
async def list_interactions(contact_id: int, session: AsyncSession = Depends(get_session)):
    return await contacts.list_interactions(session, contact_id)


@app.post(
    "/contacts/{contact_id}/interactions",
    response_model=InteractionDTO,
    status_code=status.HTTP_201_CREATED,
)
async def record_interaction(
    contact_id: int,
    request: InteractionCreate,
    session: AsyncSession = Depends(get_session),
):
    """Log an interaction; the contact's last contact date moves forward when it is newer."""
    return await contacts.record_interaction(session, contact_id, request.model_dump())


@app.get("/contacts/{contact_id}/network-value", response_model=NetworkValueDTO)
async def get_network_value(contact_id: int, session: AsyncSession = Depends(get_session)):
    return await network_value.get_network_value(session, contact_id)


@app.post("/contacts/{contact_id}/network-value", response_model=NetworkValueDTO)
async def recalculate_network_value(contact_id: int, session: AsyncSession = Depends(get_session)):
    """Recalculate lifetime value, reciprocity and strength from current data."""
    return await network_value.calculate_network_value(session, contact_id)


@app.get("/network-values", response_model=list[NetworkValueDTO])
async def list_network_values(session: AsyncSession = Depends(get_session)):
    return await network_value.list_network_values(session)


@app.get("/contacts/{contact_id}/bni-metrics", response_model=BNIMetricsDTO)
async def get_bni_metrics(contact_id: int, session: AsyncSession = Depends(get_session)):
    """Giver's Gain score, relationship strength and prioritised follow-up actions."""
    return await bni_metrics.calculate_bni_metrics(session, contact_id)


@app.get("/contacts/{contact_id}/gains-meetings", response_model=list[GainsMeetingDTO])
async def list_gains_meetings(contact_id: int, session: AsyncSession = Depends(get_session)):
    return await gains.list_gains_meetings(session, contact_id)


@app.post(
    "/contacts/{contact_id}/gains-meetings",
    response_model=GainsMeetingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_gains_meeting(
    contact_id: int,
    request: GainsMeetingCreate,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    meeting, goals = await gains.record_gains_meeting(
        session, contact_id, request.model_dump(exclude_unset=True), conducted_by=user_id,
    )
    return GainsMeetingResponse(meeting=meeting, goals=goals)


@app.get("/contacts/{contact_id}/goals", response_model=list[ContactGoalDTO])
async def list_contact_goals(contact_id: int, session: AsyncSession = Depends(get_session)):
    return await goals.list_contact_goals(session, contact_id)


@app.post("/contacts/{contact_id}/goals", response_model=ContactGoalDTO, status_code=status.HTTP_201_CREATED)
async def link_contact_goal(
    contact_id: int,
    request: ContactGoalCreate,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Link a contact to a goal they can help with."""
    return await goals.link_contact_goal(
        session, contact_id, request.goal_id, request.relevance_note, linked_by=user_id,
    )


@app.patch("/contact-goals/{link_id}", response_model=ContactGoalDTO)
async def update_relevance_note(
    link_id: int,
    request: RelevanceNoteUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await goals.update_relevance_note(session, link_id, request.relevance_note)


@app.delete("/contact-goals/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_contact_goal(link_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await goals.unlink_contact_goal(session, link_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Opportunities

@app.get("/opportunities", response_model=list[OpportunityDTO])
async def list_opportunities(
    contact_id: int | None = Query(default=None, alias="contactId"),
    session: AsyncSession = Depends(get_session),
):
    return await duplicates.list_opportunities(session, contact_id)


@app.post("/opportunities", response_model=OpportunityDTO, status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    request: OpportunityCreate,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Create an opportunity; the type is inferred from the title when omitted."""
    return await duplicates.create_opportunity(session, request.model_dump(exclude_none=True), created_by=user_id)


@app.post("/opportunities/check-duplicates", response_model=DuplicateCheckResponse)
async def check_duplicate_opportunities(
    request: DuplicateCheckRequest,
    session: AsyncSession = Depends(get_session),
) -> DuplicateCheckResponse:
    """Find existing opportunities and calendar events that look like the one about to be created."""
    matches = await duplicates.detect_duplicate_opportunities(
        session, request.title, request.date, request.contact_id,
    )
    return DuplicateCheckResponse(duplicates=matches)


# Referrals

@app.get("/referrals/given", response_model=list[ReferralGivenDTO])
async def list_referrals_given(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await referrals.list_referrals_given(session, user_id)


@app.post("/referrals/given", response_model=GiveReferralResponse, status_code=status.HTTP_201_CREATED)
async def give_referral(
    request: ReferralGivenCreate,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> GiveReferralResponse:
    """Record a referral given; a "Connect" goal is created when the networking project exists."""
    referral, goal = await referrals.give_referral(session, user_id, request.model_dump())
    return GiveReferralResponse(referral=referral, goal=goal)


@app.get("/referrals/received", response_model=list[ReferralReceivedDTO])
async def list_referrals_received(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await referrals.list_referrals_received(session, user_id)


@app.post("/referrals/received", response_model=ReferralReceivedDTO, status_code=status.HTTP_201_CREATED)
async def record_referral_received(
    request: ReferralReceivedCreate,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await referrals.record_referral_received(session, user_id, request.model_dump())


@app.patch("/referrals/{referral_id}/status")
async def update_referral_status(
    referral_id: int,
    request: ReferralStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    referral = await referrals.update_referral_status(
        session,
        referral_id,
        request.status,
        direction=request.direction,
        closed_value=request.closed_value,
        outcome_notes=request.outcome_notes,
    )
    dto = ReferralGivenDTO if request.direction == "given" else ReferralReceivedDTO
    return dto.model_validate(referral).model_dump(mode="json", by_alias=True)


@app.get("/referrals/summary", response_model=ReferralSummaryDTO)
async def referral_summary(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> ReferralSummaryDTO:
    """Counts, Giver's Gain ratio and closed business for the caller."""
    summary = await referrals.summarize_referrals(session, user_id)
    return ReferralSummaryDTO(
        given_count=summary.given_count,
        received_count=summary.received_count,
        givers_gain_ratio=None if math.isinf(summary.givers_gain_ratio) else summary.givers_gain_ratio,
        unbounded=summary.unbounded,
        total_business_generated=summary.total_business_generated,
        total_business_received=summary.total_business_received,
    )


# Relationship decay

@app.get("/relationships/decay", response_model=DecayReportDTO)
async def relationship_decay(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Contacts the caller created whose relationship strength is fading, most urgent first."""
    return await decay.find_decaying_contacts(session, user_id)


# Network analysis

@app.get("/network/metrics", response_model=NetworkMetricsDTO)
async def network_metrics(
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.network_metrics(session, _scope(mine, user_id))


@app.get("/network/diagnostics", response_model=ConnectionDiagnosticsDTO)
async def network_diagnostics(
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """How many LinkedIn connection names resolved to known contacts."""
    return await network.connection_diagnostics(session, _scope(mine, user_id))


@app.get("/network/path", response_model=IntroductionPathResponse)
async def introduction_path(
    from_id: int = Query(alias="from"),
    to_id: int = Query(alias="to"),
    max_depth: int | None = Query(default=None, alias="maxDepth", ge=1, le=10),
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> IntroductionPathResponse:
    """Shortest warm introduction chain; ``path`` is null when none is within reach."""
    path = await network.introduction_path(
        session, from_id, to_id, max_depth=max_depth, created_by=_scope(mine, user_id),
    )
    return IntroductionPathResponse(path=path)


@app.get("/network/paths", response_model=list[IntroductionPathDTO])
async def introduction_paths(
    from_id: int = Query(alias="from"),
    to_id: int = Query(alias="to"),
    max_depth: int | None = Query(default=None, alias="maxDepth", ge=1, le=10),
    max_paths: int | None = Query(default=None, alias="maxPaths", ge=1, le=50),
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.introduction_paths(
        session, from_id, to_id, max_depth=max_depth, max_paths=max_paths, created_by=_scope(mine, user_id),
    )


@app.get("/network/contacts/{contact_id}/mutuals", response_model=list[MutualConnectionDTO])
async def mutual_connections(
    contact_id: int,
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.mutual_connections(session, contact_id, _scope(mine, user_id))


@app.get("/network/connectors", response_model=list[NetworkNodeDTO])
async def key_connectors(
    min_degree: int | None = Query(default=None, alias="minDegree", ge=0),
    limit: int | None = Query(default=None, ge=1, le=500),
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Well-connected contacts who bridge otherwise distant parts of the network."""
    return await network.key_connectors(
        session, min_degree=min_degree, limit=limit, created_by=_scope(mine, user_id),
    )


@app.get("/network/clustering", response_model=dict[int, float])
async def clustering_coefficients(
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.clustering_coefficients(session, _scope(mine, user_id))


@app.get("/network/communities", response_model=list[CommunityDTO])
async def communities(
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.communities(session, _scope(mine, user_id))


@app.get("/network/influence", response_model=list[InfluenceScoreDTO])
async def influence_scores(
    mine: bool = False,
    user_id: str | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await network.influence_scores(session, _scope(mine, user_id))


# Introductions

@app.post("/introductions/analyze", response_model=IntroductionMatchResponse)
async def analyze_introductions(
    mine: bool = True,
    user_id: str | None = Depends(get_optional_user),
    matcher: IntroductionMatcher = Depends(get_introduction_matcher),
    session: AsyncSession = Depends(get_session),
) -> IntroductionMatchResponse:
    """Ask the LLM which pairs of contacts should be introduced."""
    records = await network.load_contact_records(session, _scope(mine, user_id))
    try:
        matches = await matcher.find_matches(records)
    except Exception as e:
        logger.error(f"Unexpected error analyzing introductions: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {str(e)}",
        )
    return IntroductionMatchResponse(pairs=matches)


# Team members

@app.get("/team-members", response_model=list[TeamMemberDTO])
async def list_team_members(
    department: str | None = None,
    specialization: str | None = None,
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    session: AsyncSession = Depends(get_session),
):
    """Active team members ordered by department and role."""
    return await team.list_team_members(
        session, department=department, specialization=specialization, include_inactive=include_inactive,
    )


@app.post("/team-members", response_model=TeamMemberDTO, status_code=status.HTTP_201_CREATED)
async def create_team_member(request: TeamMemberCreate, session: AsyncSession = Depends(get_session)):
    return await team.create_team_member(session, request.model_dump())


@app.get("/team-members/{member_id}", response_model=TeamMemberDTO)
async def get_team_member(member_id: int, session: AsyncSession = Depends(get_session)):
    return await team.get_team_member(session, member_id)


@app.patch("/team-members/{member_id}", response_model=TeamMemberDTO)
async def update_team_member(
    member_id: int,
    request: TeamMemberUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await team.update_team_member(session, member_id, request.model_dump(exclude_unset=True))


@app.delete("/team-members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_team_member(member_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await team.delete_team_member(session, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Projects

@app.get("/projects", response_model=list[ProjectDTO])
async def list_projects(session: AsyncSession = Depends(get_session)):
    return await projects.list_projects(session)


@app.post("/projects", response_model=ProjectDTO, status_code=status.HTTP_201_CREATED)
async def create_project(request: ProjectCreate, session: AsyncSession = Depends(get_session)):
    return await projects.create_project(session, request.model_dump())


@app.get("/projects/{project_id}", response_model=ProjectDTO)
async def get_project(project_id: int, session: AsyncSession = Depends(get_session)):
    return await projects.get_project(session, project_id)


@app.patch("/projects/{project_id}", response_model=ProjectDTO)
async def update_project(
    project_id: int,
    request: ProjectUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await projects.update_project(session, project_id, request.model_dump(exclude_unset=True))


@app.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    """Delete a project; the "Connect People" networking project is protected."""
    await projects.delete_project(session, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/projects/{project_id}/assignments",
    response_model=ProjectAssignmentDTO,
    status_code=status.HTTP_201_CREATED,
)
async def assign_project_member(
    project_id: int,
    request: AssignmentRequest,
    session: AsyncSession = Depends(get_session),
):
    return await projects.assign_project_member(session, project_id, request.team_member_id, request.role)


@app.delete("/projects/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_project_member(assignment_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await projects.remove_project_member(session, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Targets

@app.get("/targets", response_model=list[TargetDTO])
async def list_targets(
    project_id: int | None = Query(default=None, alias="projectId"),
    session: AsyncSession = Depends(get_session),
):
    return await projects.list_targets(session, project_id)


@app.post("/targets", response_model=TargetDTO, status_code=status.HTTP_201_CREATED)
async def create_target(request: TargetCreate, session: AsyncSession = Depends(get_session)):
    return await projects.create_target(session, request.model_dump())


@app.patch("/targets/{target_id}", response_model=TargetDTO)
async def update_target(
    target_id: int,
    request: TargetUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await projects.update_target(session, target_id, request.model_dump(exclude_unset=True))


@app.delete("/targets/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_target(target_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await projects.delete_target(session, target_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/targets/{target_id}/assignments",
    response_model=MemberAssignmentDTO,
    status_code=status.HTTP_201_CREATED,
)
async def assign_target_member(
    target_id: int,
    request: AssignmentRequest,
    session: AsyncSession = Depends(get_session),
):
    return await projects.assign_target_member(session, target_id, request.team_member_id)


@app.delete("/targets/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_target_member(assignment_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await projects.remove_target_member(session, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Goals

@app.get("/goals", response_model=list[GoalDetailDTO])
async def list_goals(
    project_id: int | None = Query(default=None, alias="projectId"),
    session: AsyncSession = Depends(get_session),
):
    return await goals.list_goals(session, project_id)


@app.post("/goals", response_model=GoalDetailDTO, status_code=status.HTTP_201_CREATED)
async def create_goal(request: GoalCreate, session: AsyncSession = Depends(get_session)):
    """Create a goal and assign the listed team members to it."""
    data = request.model_dump(exclude={"team_member_ids"})
    return await goals.create_goal(session, data, request.team_member_ids)


@app.get("/goals/{goal_id}", response_model=GoalDetailDTO)
async def get_goal(goal_id: int, session: AsyncSession = Depends(get_session)):
    return await goals.get_goal(session, goal_id)


@app.patch("/goals/{goal_id}", response_model=GoalDetailDTO)
async def update_goal(
    goal_id: int,
    request: GoalUpdate,
    session: AsyncSession = Depends(get_session),
):
    return await goals.update_goal(session, goal_id, request.model_dump(exclude_unset=True))


@app.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(goal_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await goals.delete_goal(session, goal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post(
    "/goals/{goal_id}/assignments",
    response_model=MemberAssignmentDTO,
    status_code=status.HTTP_201_CREATED,
)
async def assign_goal_member(
    goal_id: int,
    request: AssignmentRequest,
    session: AsyncSession = Depends(get_session),
):
    return await goals.assign_goal_member(session, goal_id, request.team_member_id)


@app.delete("/goals/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_goal_member(assignment_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    await goals.remove_goal_member(session, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Relationship analytics

@app.get("/analytics/relationships", response_model=RelationshipAnalyticsDTO)
async def relationship_analytics(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Trajectories, network health, reciprocity insights and recommendations for the caller's contacts."""
    return await analytics.relationship_analytics(session, user_id)


# Weekly commitments

@app.get("/commitments/current", response_model=CommitmentDTO)
async def current_commitment(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """This week's commitment, created with default targets on first access."""
    return await commitments.get_or_create_current_week(session, user_id)


@app.patch("/commitments/current", response_model=CommitmentDTO)
async def update_commitment(
    request: CommitmentUpdate,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await commitments.update_progress(session, user_id, request.field, request.value)


@app.post("/commitments/current/increment", response_model=CommitmentDTO)
async def increment_commitment(
    request: CommitmentIncrement,
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await commitments.increment_progress(session, user_id, request.kind)


@app.get("/commitments/history", response_model=list[CommitmentDTO])
async def commitment_history(
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await commitments.get_history(session, user_id)
