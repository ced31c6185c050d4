from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Pydantic Settings will automatically look for these as environment variables
    # or in a .env file

    # Database Settings
    POSTGRES_USER: str = "user"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "mentoring_db"
    DATABASE_URL: Optional[str] = None # Overrides the POSTGRES_* settings when set

    # SQLAlchemy Connection Pooling Settings
    # Refer to https://docs.sqlalchemy.org/en/20/core/engines.html#connection-pooling-options
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30 # seconds
    DB_POOL_RECYCLE: int = 1800 # seconds (30 minutes) - recycle connections older than this

    # Auth Settings
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Organization Settings
    DEFAULT_ORG_ID: Optional[str] = None
    ORG_DIRECTORY_URL: str = "http://localhost:3001/user"
    ORG_DIRECTORY_TIMEOUT_SECONDS: float = 5.0

    # Policies applied to an organization the first time it is seen
    DEFAULT_MENTOR_VISIBILITY_POLICY: str = "CURRENT"
    DEFAULT_MENTEE_VISIBILITY_POLICY: str = "CURRENT"
    DEFAULT_SESSION_VISIBILITY_POLICY: str = "CURRENT"
    DEFAULT_EXTERNAL_MENTOR_VISIBILITY_POLICY: str = "CURRENT"
    DEFAULT_EXTERNAL_MENTEE_VISIBILITY_POLICY: str = "CURRENT"
    DEFAULT_EXTERNAL_SESSION_VISIBILITY_POLICY: str = "CURRENT"

    # Connection Settings
    CONNECTIONS_DEFAULT_PAGE_SIZE: int = 20
    CONNECTIONS_MAX_PAGE_SIZE: int = 100

    # Policy Propagation Settings
    POLICY_PROPAGATION_MAX_ATTEMPTS: int = 3
    POLICY_PROPAGATION_BASE_DELAY_SECONDS: float = 0.5
    POLICY_PROPAGATION_MAX_DELAY_SECONDS: float = 4.0
    POLICY_RECONCILE_INTERVAL_SECONDS: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore" # Ignore extra env variables not defined here
    )

    def default_org_policies(self) -> dict:
        """Returns the policy set a newly seen organization starts with."""
        return {
            "mentor_visibility_policy": self.DEFAULT_MENTOR_VISIBILITY_POLICY,
            "mentee_visibility_policy": self.DEFAULT_MENTEE_VISIBILITY_POLICY,
            "session_visibility_policy": self.DEFAULT_SESSION_VISIBILITY_POLICY,
            "external_mentor_visibility_policy": self.DEFAULT_EXTERNAL_MENTOR_VISIBILITY_POLICY,
            "external_mentee_visibility_policy": self.DEFAULT_EXTERNAL_MENTEE_VISIBILITY_POLICY,
            "external_session_visibility_policy": self.DEFAULT_EXTERNAL_SESSION_VISIBILITY_POLICY,
        }

@lru_cache() # Cache settings to avoid re-reading on every call
def get_settings():
    """Returns a cached instance of the Settings."""
    return Settings()
