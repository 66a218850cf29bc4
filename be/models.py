"""Core SQLAlchemy models (2.x style) for the CRM schema.

Contacts, their interactions and opportunities, the Giver's Gain referral
ledger, GAINS meetings, team members with their projects, targets and goals,
and weekly commitments. Integrity is left to foreign keys and unique
constraints; the application adds no ownership rules.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import JSON, Boolean, Date, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TeamMember(Base):
    """Institute staff who own contacts and goals."""
    __tablename__ = "team_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    department: Mapped[str | None] = mapped_column(String(100), index=True)
    role: Mapped[str | None] = mapped_column(String(100))
    specializations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    contacts: Mapped[list[Contact]] = relationship("Contact", back_populates="assignee")
    project_assignments: Mapped[list[ProjectAssignment]] = relationship(
        "ProjectAssignment",
        back_populates="team_member",
        cascade="all, delete-orphan",
    )
    goal_assignments: Mapped[list[GoalAssignment]] = relationship(
        "GoalAssignment",
        back_populates="team_member",
        cascade="all, delete-orphan",
    )
    target_assignments: Mapped[list[TargetAssignment]] = relationship(
        "TargetAssignment",
        back_populates="team_member",
        cascade="all, delete-orphan",
    )

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Contact(Base):
    """Professional contact."""
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str | None] = mapped_column(String(50))
    company: Mapped[str | None] = mapped_column(String(255), index=True)
    position: Mapped[str | None] = mapped_column(String(255))
    avatar: Mapped[str | None] = mapped_column(String(512))
    notes: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    affiliation: Mapped[str | None] = mapped_column(String(255))
    offering: Mapped[str | None] = mapped_column(Text)
    looking_for: Mapped[str | None] = mapped_column(Text)
    current_projects: Mapped[str | None] = mapped_column(Text)
    mutual_benefit: Mapped[str | None] = mapped_column(Text)
    referred_by: Mapped[str | None] = mapped_column(String(255))
    linkedin_connections: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    cooperation_rating: Mapped[int | None] = mapped_column(Integer)
    potential_score: Mapped[int | None] = mapped_column(Integer)
    last_contact: Mapped[datetime | None] = mapped_column()
    added_date: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    assigned_to: Mapped[int | None] = mapped_column(
        ForeignKey("team_members.id", ondelete="SET NULL"),
        index=True,
    )
    created_by: Mapped[str | None] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # Relationships
    assignee: Mapped[TeamMember | None] = relationship("TeamMember", back_populates="contacts")
    interactions: Mapped[list[Interaction]] = relationship(
        "Interaction",
        back_populates="contact",
        cascade="all, delete-orphan",
    )
    opportunities: Mapped[list[Opportunity]] = relationship(
        "Opportunity",
        back_populates="contact",
        cascade="all, delete-orphan",
    )
    gains_meetings: Mapped[list[GainsMeeting]] = relationship(
        "GainsMeeting",
        back_populates="contact",
        cascade="all, delete-orphan",
    )
    network_value: Mapped[ContactNetworkValue | None] = relationship(
        "ContactNetworkValue",
        back_populates="contact",
        uselist=False,
        cascade="all, delete-orphan",
    )
    referrals_given: Mapped[list[ReferralGiven]] = relationship(
        "ReferralGiven",
        foreign_keys="ReferralGiven.contact_id",
        back_populates="contact",
        cascade="all, delete-orphan",
    )
    referrals_received: Mapped[list[ReferralReceived]] = relationship(
        "ReferralReceived",
        back_populates="from_contact",
        cascade="all, delete-orphan",
    )
    goal_links: Mapped[list[ContactGoal]] = relationship(
        "ContactGoal",
        back_populates="contact",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_contacts_email_created", "email", "created_at"),
    )


class Interaction(Base):
    """Logged touchpoint with a contact."""
    __tablename__ = "interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)  # meeting, call, email, coffee, event, other
    date: Mapped[datetime] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    outcome: Mapped[str | None] = mapped_column(Text)
    contacted_by: Mapped[str | None] = mapped_column(String(255))
    channel: Mapped[str | None] = mapped_column(String(100))
    evaluation: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    contact: Mapped[Contact] = relationship("Contact", back_populates="interactions")


class Opportunity(Base):
    """Event, meeting or appointment involving a contact."""
    __tablename__ = "opportunities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    date: Mapped[datetime] = mapped_column(nullable=False, index=True)
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    registration_status: Mapped[str | None] = mapped_column(String(50))  # registered, considering, confirmed
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="manual")
    calendar_event_id: Mapped[int | None] = mapped_column(ForeignKey("calendar_events.id", ondelete="SET NULL"))
    synced_to_calendar: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    contact: Mapped[Contact | None] = relationship("Contact", back_populates="opportunities")

    __table_args__ = (
        Index("ix_opportunities_contact_date", "contact_id", "date"),
    )


class CalendarEvent(Base):
    """Calendar entry imported from an external calendar."""
    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_title: Mapped[str] = mapped_column(String(255), nullable=False)
    event_start: Mapped[datetime] = mapped_column(nullable=False, index=True)
    event_end: Mapped[datetime | None] = mapped_column()
    contact_ids: Mapped[list[int]] = mapped_column(JSON, default=list, nullable=False)
    source: Mapped[str | None] = mapped_column(String(50))
    opportunity_type: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class ReferralGiven(Base):
    """Referral passed by a user to a contact."""
    __tablename__ = "referrals_given"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    given_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_to_contact_id: Mapped[int | None] = mapped_column(
        ForeignKey("contacts.id", ondelete="SET NULL"),
        index=True,
    )
    referred_to_name: Mapped[str | None] = mapped_column(String(255))
    referred_to_company: Mapped[str | None] = mapped_column(String(255))
    service_description: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text)
    closed_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)

    contact: Mapped[Contact] = relationship(
        "Contact",
        foreign_keys=[contact_id],
        back_populates="referrals_given",
    )


class ReferralReceived(Base):
    """Referral a user received from a contact."""
    __tablename__ = "referrals_received"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    received_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    from_contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_company: Mapped[str | None] = mapped_column(String(255))
    service_description: Mapped[str] = mapped_column(Text, nullable=False)
    estimated_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text)
    closed_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False, index=True)

    from_contact: Mapped[Contact] = relationship("Contact", back_populates="referrals_received")


class ContactNetworkValue(Base):
    """Computed lifetime value of a relationship (one row per contact)."""
    __tablename__ = "contact_network_value"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(
        ForeignKey("contacts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    total_referrals_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_referrals_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_business_generated: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_business_received: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    reciprocity_score: Mapped[float] = mapped_column(Float, default=50.0, nullable=False)
    relationship_strength: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    lifetime_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False, index=True)
    last_interaction_date: Mapped[datetime | None] = mapped_column()
    calculated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    contact: Mapped[Contact] = relationship("Contact", back_populates="network_value")


class GainsMeeting(Base):
    """Structured one-to-one: Goals, Accomplishments, Interests, Networks, Skills."""
    __tablename__ = "gains_meetings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    conducted_by: Mapped[str | None] = mapped_column(String(64))
    meeting_date: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    goals: Mapped[str | None] = mapped_column(Text)
    accomplishments: Mapped[str | None] = mapped_column(Text)
    interests: Mapped[str | None] = mapped_column(Text)
    networks: Mapped[str | None] = mapped_column(Text)
    skills: Mapped[str | None] = mapped_column(Text)
    ideal_referral: Mapped[str | None] = mapped_column(Text)
    how_to_help: Mapped[str | None] = mapped_column(Text)
    target_market: Mapped[str | None] = mapped_column(Text)
    preparation_notes: Mapped[str | None] = mapped_column(Text)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    contact: Mapped[Contact] = relationship("Contact", back_populates="gains_meetings")


class Project(Base):
    """Grouping for goals and targets (e.g. the "Connect People" networking project)."""
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("team_members.id", ondelete="SET NULL"))
    target_value: Mapped[float | None] = mapped_column(Float)
    current_value: Mapped[float | None] = mapped_column(Float)
    deadline: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    goals: Mapped[list[Goal]] = relationship("Goal", back_populates="project")
    targets: Mapped[list[Target]] = relationship(
        "Target",
        back_populates="project",
        cascade="all, delete-orphan",
    )
    assignments: Mapped[list[ProjectAssignment]] = relationship(
        "ProjectAssignment",
        back_populates="project",
        cascade="all, delete-orphan",
    )


class ProjectAssignment(Base):
    """Team member working on a project."""
    __tablename__ = "project_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    team_member_id: Mapped[int] = mapped_column(ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="contributor", nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    project: Mapped[Project] = relationship("Project", back_populates="assignments")
    team_member: Mapped[TeamMember] = relationship("TeamMember", back_populates="project_assignments")

    __table_args__ = (
        UniqueConstraint("project_id", "team_member_id", name="uq_project_assignments_member"),
    )


class Target(Base):
    """Measurable milestone within a project."""
    __tablename__ = "targets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    target_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    project: Mapped[Project | None] = relationship("Project", back_populates="targets")
    assignments: Mapped[list[TargetAssignment]] = relationship(
        "TargetAssignment",
        back_populates="target",
        cascade="all, delete-orphan",
    )


class TargetAssignment(Base):
    """Team member responsible for a target."""
    __tablename__ = "target_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_id: Mapped[int] = mapped_column(ForeignKey("targets.id", ondelete="CASCADE"), nullable=False, index=True)
    team_member_id: Mapped[int] = mapped_column(ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    target: Mapped[Target] = relationship("Target", back_populates="assignments")
    team_member: Mapped[TeamMember] = relationship("TeamMember", back_populates="target_assignments")

    __table_args__ = (
        UniqueConstraint("target_id", "team_member_id", name="uq_target_assignments_member"),
    )


class Goal(Base):
    """Trackable goal, optionally under a project."""
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_date: Mapped[date | None] = mapped_column(Date)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("team_members.id", ondelete="SET NULL"))
    linked_opportunity_id: Mapped[int | None] = mapped_column(ForeignKey("opportunities.id", ondelete="SET NULL"))
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contacts.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    project: Mapped[Project | None] = relationship("Project", back_populates="goals")
    assignments: Mapped[list[GoalAssignment]] = relationship(
        "GoalAssignment",
        back_populates="goal",
        cascade="all, delete-orphan",
    )
    contact_links: Mapped[list[ContactGoal]] = relationship(
        "ContactGoal",
        back_populates="goal",
        cascade="all, delete-orphan",
    )


class GoalAssignment(Base):
    """Team member working towards a goal."""
    __tablename__ = "goal_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    goal_id: Mapped[int] = mapped_column(ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)
    team_member_id: Mapped[int] = mapped_column(ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    goal: Mapped[Goal] = relationship("Goal", back_populates="assignments")
    team_member: Mapped[TeamMember] = relationship("TeamMember", back_populates="goal_assignments")

    __table_args__ = (
        UniqueConstraint("goal_id", "team_member_id", name="uq_goal_assignments_member"),
    )


class ContactGoal(Base):
    """Link between a contact and a goal they can help with."""
    __tablename__ = "contact_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contact_id: Mapped[int] = mapped_column(ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    goal_id: Mapped[int] = mapped_column(ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)
    relevance_note: Mapped[str | None] = mapped_column(Text)
    linked_by: Mapped[str | None] = mapped_column(String(64))
    linked_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    contact: Mapped[Contact] = relationship("Contact", back_populates="goal_links")
    goal: Mapped[Goal] = relationship("Goal", back_populates="contact_links")

    __table_args__ = (
        UniqueConstraint("contact_id", "goal_id", name="uq_contact_goals_pair"),
    )


class WeeklyCommitment(Base):
    """A user's networking targets and progress for one ISO week."""
    __tablename__ = "weekly_commitments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    target_one_to_ones: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_one_to_ones: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_referrals_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_referrals_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_visibility_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_visibility_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_follow_ups: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_follow_ups: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    streak_weeks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "week_start_date", name="uq_weekly_commitments_user_week"),
    )
