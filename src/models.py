# src/models.py
from enum import Enum
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Boolean, ForeignKey, Sequence, Index, UniqueConstraint, text
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import relationship

from .database import Base

# JSONB / text[] on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
StringArray = ARRAY(String).with_variant(JSON(), "sqlite")

LIVE_ROWS = text("deleted_at IS NULL")


class ConnectionStatus(str, Enum):
    REQUESTED = "REQUESTED"
    ACCEPTED = "ACCEPTED"
    BLOCKED = "BLOCKED"
    REJECTED = "REJECTED"

class VisibilityPolicy(str, Enum):
    CURRENT = "CURRENT"       # same organization only
    ASSOCIATED = "ASSOCIATED" # same organization plus related organizations
    ALL = "ALL"

class SessionType(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"

class AttendeeType(str, Enum):
    ENROLLED = "ENROLLED"
    INVITED = "INVITED"

# Policy columns of an organization extension, in the order they are reported
ORG_POLICY_FIELDS = (
    "mentor_visibility_policy",
    "mentee_visibility_policy",
    "session_visibility_policy",
    "external_mentor_visibility_policy",
    "external_mentee_visibility_policy",
    "external_session_visibility_policy",
)


class Connection(Base):
    """One direction of an established relationship. Always written as a pair."""
    __tablename__ = "connections"

    id = Column(Integer, Sequence('connection_id_seq'), primary_key=True)
    user_id = Column(String, nullable=False)
    friend_id = Column(String, nullable=False)
    status = Column(String, nullable=False)
    meta = Column(JSONType, nullable=True)
    created_by = Column(String, nullable=False)
    updated_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "unique_user_id_friend_id_connections", "user_id", "friend_id",
            unique=True, sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
        ),
        Index("index_friend_id_connections", "friend_id"),
        Index("index_status_connections", "status"),
        Index("index_created_by_connections", "created_by"),
    )

    def __repr__(self):
        return f"<Connection(user_id='{self.user_id}', friend_id='{self.friend_id}', status='{self.status}')>"


class ConnectionRequest(Base):
    """One direction of a pending invitation. created_by is the requester on both rows."""
    __tablename__ = "connection_requests"

    id = Column(Integer, Sequence('connection_request_id_seq'), primary_key=True)
    user_id = Column(String, nullable=False)
    friend_id = Column(String, nullable=False)
    status = Column(String, nullable=False, default=ConnectionStatus.REQUESTED.value)
    meta = Column(JSONType, nullable=True)
    created_by = Column(String, nullable=False)
    updated_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "unique_user_id_friend_id_connection_requests", "user_id", "friend_id",
            unique=True, sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
        ),
    )

    def __repr__(self):
        return f"<ConnectionRequest(user_id='{self.user_id}', friend_id='{self.friend_id}', created_by='{self.created_by}', status='{self.status}')>"


class OrganizationExtension(Base):
    __tablename__ = "organization_extensions"

    id = Column(Integer, Sequence('organization_extension_id_seq'), primary_key=True)
    organization_id = Column(String, nullable=False)
    name = Column(String, nullable=True)

    # Defaults stamped on the organization's own mentors, mentees and sessions
    mentor_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)
    mentee_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)
    session_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)
    # What members of this organization may see of other organizations
    external_mentor_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)
    external_mentee_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)
    external_session_visibility_policy = Column(String, nullable=False, default=VisibilityPolicy.CURRENT.value)

    policy_version = Column(Integer, nullable=False, default=1)
    propagated_version = Column(Integer, nullable=False, default=1)
    active_policies = Column(JSONType, nullable=True) # policy set whose fan-out completed

    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "unique_organization_id_organization_extensions", "organization_id",
            unique=True, sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
        ),
    )

    def policies(self) -> dict:
        return {field: getattr(self, field) for field in ORG_POLICY_FIELDS}

    def active_policy(self, field: str):
        """Policy value read paths should honour until a newer version finishes propagating."""
        if self.active_policies:
            return self.active_policies.get(field)
        return getattr(self, field)

    @property
    def is_policy_active(self) -> bool:
        return (self.propagated_version or 0) >= (self.policy_version or 0)

    def __repr__(self):
        return f"<OrganizationExtension(organization_id='{self.organization_id}', policy_version={self.policy_version})>"


class UserExtension(Base):
    """Mentor or mentee profile extension, carrying its cached visibility snapshot."""
    __tablename__ = "user_extensions"

    id = Column(Integer, Sequence('user_extension_id_seq'), primary_key=True)
    user_id = Column(String, nullable=False)
    name = Column(String, nullable=False, index=True)
    designation = Column(String, nullable=True)
    about = Column(Text, nullable=True)
    organization_id = Column(String, nullable=True, index=True)
    is_mentor = Column(Boolean, nullable=False, default=False)

    mentor_visibility = Column(String, nullable=True)
    mentee_visibility = Column(String, nullable=True)
    external_mentor_visibility = Column(String, nullable=True)
    external_mentee_visibility = Column(String, nullable=True)
    external_session_visibility = Column(String, nullable=True)
    visible_to_organizations = Column(StringArray, nullable=True)
    policy_version = Column(Integer, nullable=False, default=0)

    settings = Column(JSONType, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "unique_user_id_user_extensions", "user_id",
            unique=True, sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
        ),
    )

    def __repr__(self):
        return f"<UserExtension(user_id='{self.user_id}', organization_id='{self.organization_id}', is_mentor={self.is_mentor})>"


class MentoringSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, Sequence('session_id_seq'), primary_key=True, index=True)
    title = Column(String, nullable=False)
    mentor_id = Column(String, nullable=True, index=True)
    created_by = Column(String, nullable=False)
    mentor_organization_id = Column(String, nullable=True, index=True)
    visibility = Column(String, nullable=True)
    visible_to_organizations = Column(StringArray, nullable=True)
    policy_version = Column(Integer, nullable=False, default=0)
    type = Column(String, nullable=False, default=SessionType.PUBLIC.value)
    status = Column(String, nullable=False, default="PUBLISHED")
    start_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    attendees = relationship("SessionAttendee", back_populates="session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<MentoringSession(id={self.id}, title='{self.title}', mentor_organization_id='{self.mentor_organization_id}')>"


class SessionAttendee(Base):
    __tablename__ = "session_attendees"

    id = Column(Integer, Sequence('session_attendee_id_seq'), primary_key=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    mentee_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False, default=AttendeeType.ENROLLED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("MentoringSession", back_populates="attendees")

    __table_args__ = (
        UniqueConstraint("session_id", "mentee_id", name="unique_session_id_mentee_id"),
    )

    def __repr__(self):
        return f"<SessionAttendee(session_id={self.session_id}, mentee_id='{self.mentee_id}')>"
