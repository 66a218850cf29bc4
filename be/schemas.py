"""Request and response models for the HTTP API.

Bodies are camelCase on the wire; snake_case is accepted on input too.
Response models read straight from ORM rows and pipeline dataclasses.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, computed_field
from pydantic.alias_generators import to_camel

from be.pipelines.analytics import Balance, Trend
from be.pipelines.commitments import completion_percentage as commitment_completion
from be.pipelines.decay import DecayLevel
from be.rules import Priority, RuleStatus


# Surrounding whitespace is dropped before length checks
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255)]


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


# Contacts

class ContactBase(CamelModel):
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    avatar: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)
    affiliation: str | None = None
    offering: str | None = None
    looking_for: str | None = None
    current_projects: str | None = None
    mutual_benefit: str | None = None
    referred_by: str | None = None
    linkedin_connections: list[str] = Field(default_factory=list)
    cooperation_rating: int | None = Field(default=None, ge=1, le=5)
    potential_score: int | None = Field(default=None, ge=1, le=5)
    last_contact: datetime | None = None
    assigned_to: int | None = None


class ContactCreate(ContactBase):
    """Create contact request."""
    name: Name
    email: Email


class ContactUpdate(CamelModel):
    """Partial contact update; only fields sent are changed."""
    name: Name | None = None
    email: Email | None = None
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    avatar: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    affiliation: str | None = None
    offering: str | None = None
    looking_for: str | None = None
    current_projects: str | None = None
    mutual_benefit: str | None = None
    referred_by: str | None = None
    linkedin_connections: list[str] | None = None
    cooperation_rating: int | None = Field(default=None, ge=1, le=5)
    potential_score: int | None = Field(default=None, ge=1, le=5)
    last_contact: datetime | None = None
    assigned_to: int | None = None


class ContactDTO(ContactBase):
    """Contact as returned by the API."""
    id: int
    name: str
    email: str
    added_date: datetime
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class InteractionCreate(CamelModel):
    type: Literal["meeting", "call", "email", "coffee", "event", "other"]
    date: datetime
    description: str = ""
    outcome: str | None = None
    contacted_by: str | None = None
    channel: str | None = None
    evaluation: str | None = None


class InteractionDTO(InteractionCreate):
    id: int
    contact_id: int
    created_at: datetime


class DuplicateRemovalDTO(CamelModel):
    removed: int
    errors: list[str]


class DuplicateReportDTO(CamelModel):
    duplicate_count: int
    unique_emails: int
    total_contacts: int


# Opportunities

class OpportunityCreate(CamelModel):
    """Create opportunity request; type is inferred from the title when omitted."""
    contact_id: int | None = None
    title: str = Field(min_length=1, max_length=255)
    type: Literal["event", "meeting", "appointment", "conference", "other"] | None = None
    date: datetime
    location: str | None = None
    description: str | None = None
    registration_status: Literal["registered", "considering", "confirmed"] | None = None
    source: str | None = None


class OpportunityDTO(CamelModel):
    id: int
    contact_id: int | None = None
    title: str
    type: str
    date: datetime
    location: str | None = None
    description: str | None = None
    registration_status: str | None = None
    source: str
    calendar_event_id: int | None = None
    synced_to_calendar: bool
    created_by: str | None = None
    created_at: datetime


class DuplicateCheckRequest(CamelModel):
    title: str = Field(min_length=1)
    date: datetime
    contact_id: int | None = None


class DuplicateMatchDTO(CamelModel):
    id: int
    title: str
    date: datetime
    source: str
    match_score: float
    type: str | None = None


class DuplicateCheckResponse(CamelModel):
    duplicates: list[DuplicateMatchDTO]


# Referrals

class ReferralGivenCreate(CamelModel):
    contact_id: int
    referred_to_contact_id: int | None = None
    referred_to_name: str | None = None
    referred_to_company: str | None = None
    service_description: str = Field(min_length=1)
    estimated_value: float = Field(default=0.0, ge=0)


class ReferralGivenDTO(ReferralGivenCreate):
    id: int
    given_by: str
    status: str
    outcome_notes: str | None = None
    closed_value: float
    closed_at: datetime | None = None
    created_at: datetime


class ReferralReceivedCreate(CamelModel):
    from_contact_id: int
    client_name: str = Field(min_length=1)
    client_company: str | None = None
    service_description: str = Field(min_length=1)
    estimated_value: float = Field(default=0.0, ge=0)


class ReferralReceivedDTO(ReferralReceivedCreate):
    id: int
    received_by: str
    status: str
    outcome_notes: str | None = None
    closed_value: float
    closed_at: datetime | None = None
    created_at: datetime


class ReferralStatusUpdate(CamelModel):
    status: str
    direction: Literal["given", "received"] = "given"
    closed_value: float | None = Field(default=None, ge=0)
    outcome_notes: str | None = None


class GoalDTO(CamelModel):
    id: int
    title: str
    description: str | None = None
    category: str
    status: str
    progress_percentage: int
    target_date: date | None = None
    project_id: int | None = None
    assigned_to: int | None = None
    linked_opportunity_id: int | None = None
    contact_id: int | None = None


class GiveReferralResponse(CamelModel):
    referral: ReferralGivenDTO
    goal: GoalDTO | None = None


class ReferralSummaryDTO(CamelModel):
    """Referral balance; an infinite ratio is sent as null with ``unbounded`` set."""
    given_count: int
    received_count: int
    givers_gain_ratio: float | None
    unbounded: bool
    total_business_generated: float
    total_business_received: float


# Relationship scoring

class NetworkValueDTO(CamelModel):
    contact_id: int
    total_referrals_given: int
    total_referrals_received: int
    total_business_generated: float
    total_business_received: float
    reciprocity_score: float
    relationship_strength: float
    lifetime_value: float
    last_interaction_date: datetime | None = None
    calculated_at: datetime


class FollowUpActionDTO(CamelModel):
    action: str
    priority: Priority
    rule_id: str


class RuleTraceDTO(CamelModel):
    rule_id: str
    name: str
    status: RuleStatus
    reason: str


class BNIMetricsDTO(CamelModel):
    contact_id: int
    relationship_strength: int
    givers_gain_score: int
    referrals_given: int
    referrals_received: int
    business_generated: float
    business_received: float
    days_since_last_contact: int
    total_meetings: int
    gains_completed: bool
    last_one_to_one_meeting: datetime | None = None
    ideal_referral: str | None = None
    how_to_help: str | None = None
    follow_up_actions: list[FollowUpActionDTO]
    rule_traces: list[RuleTraceDTO]


class GainsMeetingCreate(CamelModel):
    meeting_date: datetime | None = None
    goals: str | None = None
    accomplishments: str | None = None
    interests: str | None = None
    networks: str | None = None
    skills: str | None = None
    ideal_referral: str | None = None
    how_to_help: str | None = None
    target_market: str | None = None
    preparation_notes: str | None = None


class GainsMeetingDTO(GainsMeetingCreate):
    id: int
    contact_id: int
    conducted_by: str | None = None
    completed: bool


class GainsMeetingResponse(CamelModel):
    meeting: GainsMeetingDTO
    goals: list[GoalDTO]


class DecayingContactDTO(CamelModel):
    contact_id: int
    contact_name: str
    last_interaction_date: datetime | None = None
    days_since_last_interaction: int
    decay_rate: float
    current_strength: float
    original_strength: float
    decay_level: DecayLevel
    estimated_days_to_zero: int


class DecayReportDTO(CamelModel):
    contacts: list[DecayingContactDTO]
    critical_count: int
    warning_count: int


# Network

class NetworkNodeDTO(CamelModel):
    id: int
    name: str
    email: str
    company: str | None = None
    position: str | None = None
    avatar: str | None = None
    degree: int
    betweenness_centrality: float
    clustering_coefficient: float


class NetworkMetricsDTO(CamelModel):
    total_nodes: int
    total_edges: int
    avg_degree: float
    network_density: float
    largest_component_size: int
    avg_path_length: float
    key_connectors: list[NetworkNodeDTO]


class ConnectionDiagnosticsDTO(CamelModel):
    total_connection_references: int
    matched_connections: int
    unmatched_connections: list[str]
    isolated_contacts: list[NetworkNodeDTO]
    match_rate: int


class IntroductionPathDTO(CamelModel):
    contacts: list[NetworkNodeDTO]
    length: int
    warmth_score: int
    intermediaries: list[NetworkNodeDTO]
    last_interaction_in_path: datetime | None = None


class IntroductionPathResponse(CamelModel):
    path: IntroductionPathDTO | None = None


class MutualConnectionDTO(CamelModel):
    contact: NetworkNodeDTO
    mutual_with: list[int]
    mutual_count: int


class CommunityDTO(CamelModel):
    id: int
    members: list[NetworkNodeDTO]
    density: float
    avg_degree: float


class InfluenceFactorsDTO(CamelModel):
    degree: float
    betweenness: float
    clustering: float
    eigenvector: float


class InfluenceScoreDTO(CamelModel):
    node_id: int
    score: float
    rank: int
    factors: InfluenceFactorsDTO


class ContactSummaryDTO(CamelModel):
    id: int
    name: str
    company: str | None = None
    position: str | None = None
    offering: str | None = None
    looking_for: str | None = None


class IntroductionMatchDTO(CamelModel):
    contact1: ContactSummaryDTO
    contact2: ContactSummaryDTO
    match_score: float
    match_reason: str
    match_type: str
    interpretation: str


class IntroductionMatchResponse(CamelModel):
    pairs: list[IntroductionMatchDTO]


# Weekly commitments

class CommitmentDTO(CamelModel):
    id: int
    user_id: str
    week_start_date: date
    target_one_to_ones: int
    completed_one_to_ones: int
    target_referrals_given: int
    completed_referrals_given: int
    target_visibility_days: int
    completed_visibility_days: int
    target_follow_ups: int
    completed_follow_ups: int
    streak_weeks: int
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="completionPercentage")
    @property
    def completion_percentage(self) -> int:
        return commitment_completion(self)


class CommitmentUpdate(CamelModel):
    field: str
    value: int | str | None


class CommitmentIncrement(CamelModel):
    kind: Literal["one_to_ones", "referrals", "visibility", "follow_ups"]



# Team members

class TeamMemberCreate(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Email
    department: str | None = None
    role: str | None = None
    specializations: list[str] = Field(default_factory=list)
    bio: str | None = None


class TeamMemberUpdate(CamelModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: Email | None = None
    department: str | None = None
    role: str | None = None
    specializations: list[str] | None = None
    bio: str | None = None
    is_active: bool | None = None


class TeamMemberDTO(TeamMemberCreate):
    id: int
    name: str
    is_active: bool
    created_at: datetime


class TeamMemberSummaryDTO(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class AssignmentRequest(CamelModel):
    team_member_id: int
    role: str = "contributor"


# Projects and targets

class ProjectCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    type: str = "general"
    description: str | None = None
    status: str = "active"
    priority: Literal["low", "medium", "high"] = "medium"
    owner_id: int | None = None
    target_value: float | None = None
    current_value: float | None = None
    deadline: date | None = None


class ProjectUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    type: str | None = None
    description: str | None = None
    status: str | None = None
    priority: Literal["low", "medium", "high"] | None = None
    owner_id: int | None = None
    target_value: float | None = None
    current_value: float | None = None
    deadline: date | None = None


class ProjectAssignmentDTO(CamelModel):
    id: int
    team_member_id: int
    role: str
    assigned_at: datetime
    team_member: TeamMemberSummaryDTO


class ProjectDTO(ProjectCreate):
    id: int
    created_at: datetime
    updated_at: datetime
    assignments: list[ProjectAssignmentDTO]


class TargetCreate(CamelModel):
    project_id: int | None = None
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    target_date: date | None = None
    status: str = "active"
    progress_percentage: int = Field(default=0, ge=0, le=100)


class TargetUpdate(CamelModel):
    project_id: int | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    target_date: date | None = None
    status: str | None = None
    progress_percentage: int | None = Field(default=None, ge=0, le=100)


class MemberAssignmentDTO(CamelModel):
    id: int
    team_member_id: int
    assigned_at: datetime
    team_member: TeamMemberSummaryDTO


class TargetDTO(TargetCreate):
    id: int
    created_at: datetime
    updated_at: datetime
    assignments: list[MemberAssignmentDTO]


# Goals

class GoalCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: str = Field(min_length=1, max_length=50)
    status: str = "active"
    progress_percentage: int = Field(default=0, ge=0, le=100)
    target_date: date | None = None
    project_id: int | None = None
    assigned_to: int | None = None
    linked_opportunity_id: int | None = None
    contact_id: int | None = None
    team_member_ids: list[int] = Field(default_factory=list)


class GoalUpdate(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, min_length=1, max_length=50)
    status: str | None = None
    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    target_date: date | None = None
    project_id: int | None = None
    assigned_to: int | None = None
    linked_opportunity_id: int | None = None
    contact_id: int | None = None


class ProjectSummaryDTO(CamelModel):
    id: int
    title: str


class GoalDetailDTO(GoalDTO):
    """Goal with its assignees and project."""
    created_at: datetime
    updated_at: datetime
    assignments: list[MemberAssignmentDTO]
    project: ProjectSummaryDTO | None = None


class ContactGoalCreate(CamelModel):
    goal_id: int
    relevance_note: str | None = None


class RelevanceNoteUpdate(CamelModel):
    relevance_note: str | None = None


class GoalSummaryDTO(CamelModel):
    id: int
    title: str
    category: str
    status: str


class ContactGoalDTO(CamelModel):
    id: int
    contact_id: int
    goal_id: int
    relevance_note: str | None = None
    linked_by: str | None = None
    linked_at: datetime
    goal: GoalSummaryDTO


# Relationship analytics

class TrajectoryPointDTO(CamelModel):
    month: str
    strength: float
    business_value: float
    interactions: int


class RelationshipTrajectoryDTO(CamelModel):
    contact_id: int
    contact_name: str
    data_points: list[TrajectoryPointDTO]
    trend: Trend
    current_strength: float


class NetworkHealthDTO(CamelModel):
    overall_score: int
    engagement_momentum: float
    reciprocity_balance: float
    interaction_quality: float
    active_contacts: int
    at_risk_contacts: int
    growing_relationships: int


class ReciprocityInsightDTO(CamelModel):
    contact_id: int
    contact_name: str
    given: int
    received: int
    balance: Balance
    ratio: float


class RecommendationDTO(CamelModel):
    type: str
    priority: Priority
    contact_id: int
    contact_name: str
    reason: str
    potential_value: float
    confidence: float


class RelationshipAnalyticsDTO(CamelModel):
    trajectories: list[RelationshipTrajectoryDTO]
    network_health: NetworkHealthDTO | None = None
    reciprocity_insights: list[ReciprocityInsightDTO]
    recommendations: list[RecommendationDTO]
