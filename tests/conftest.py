"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created per test
- A fixed organization directory (X, Y and Z, with Y affiliated to X)
- Services wired the way the API dependencies wire them
- Factories for organizations, profiles and sessions
"""
import os
from typing import Generator

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEFAULT_ORG_ID", "org-default")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.config import get_settings
from src.core.org_directory import StaticOrganizationDirectory
from src.core.policy_store import PolicyStore
from src.database import Base
from src.models import MentoringSession, ORG_POLICY_FIELDS, OrganizationExtension, SessionAttendee, UserExtension, VisibilityPolicy
from src.services import ConnectionService, PolicyService, ProfileService, VisibilityService

DEFAULT_ORG = "org-default"
ORG_X = "org-x"
ORG_Y = "org-y"
ORG_Z = "org-z"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def directory():
    directory = StaticOrganizationDirectory()
    directory.add(DEFAULT_ORG, name="Default")
    directory.add(ORG_X, name="Org X", related_orgs=[ORG_Y])
    directory.add(ORG_Y, name="Org Y", related_orgs=[ORG_X])
    directory.add(ORG_Z, name="Org Z")
    return directory


@pytest.fixture
def policy_store(db, settings):
    return PolicyStore(db, default_org_id=settings.DEFAULT_ORG_ID)


@pytest.fixture
def visibility_service(db, policy_store):
    return VisibilityService(db, policy_store)


@pytest.fixture
def profile_service(db, policy_store, directory):
    return ProfileService(db, policy_store, directory)


@pytest.fixture
def connection_service(db, visibility_service, profile_service):
    return ConnectionService(db, visibility_service, profile_service)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy_service(db, policy_store, directory, sleeps):
    return PolicyService(db, policy_store, directory, sleep=sleeps.append)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_org(db):
    """Inserts an organization whose policies are already active."""
    def factory(organization_id, **policies):
        values = {field: VisibilityPolicy.CURRENT.value for field in ORG_POLICY_FIELDS}
        values.update({field: VisibilityPolicy(value).value for field, value in policies.items()})
        org_extension = OrganizationExtension(
            organization_id=organization_id,
            policy_version=1,
            propagated_version=1,
            active_policies=dict(values),
            **values
        )
        db.add(org_extension)
        db.commit()
        return org_extension
    return factory


@pytest.fixture
def make_profile(db):
    def factory(user_id, organization_id, is_mentor=False, visibility=VisibilityPolicy.CURRENT.value,
                visible_to_organizations=None, name=None, policy_version=1):
        profile = UserExtension(
            user_id=user_id,
            name=name or f"User {user_id}",
            organization_id=organization_id,
            is_mentor=is_mentor,
            mentor_visibility=visibility,
            mentee_visibility=visibility,
            visible_to_organizations=visible_to_organizations if visible_to_organizations is not None else [organization_id],
            policy_version=policy_version,
            settings={"notifications": True},
        )
        db.add(profile)
        db.commit()
        return profile
    return factory


@pytest.fixture
def make_session(db):
    def factory(title, mentor_id, organization_id, session_type="PUBLIC", visibility=VisibilityPolicy.CURRENT.value,
                visible_to_organizations=None, created_by=None, attendees=()):
        session = MentoringSession(
            title=title,
            mentor_id=mentor_id,
            created_by=created_by or mentor_id,
            mentor_organization_id=organization_id,
            type=session_type,
            visibility=visibility,
            visible_to_organizations=visible_to_organizations if visible_to_organizations is not None else [organization_id],
        )
        db.add(session)
        db.flush()
        for mentee_id in attendees:
            db.add(SessionAttendee(session_id=session.id, mentee_id=mentee_id))
        db.commit()
        return session
    return factory
