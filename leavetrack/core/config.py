"""
Configuration management for the LeaveTrack engine
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    DATABASE_URL: str = Field(default="sqlite:///./leavetrack.db", description="Database URL")
    JWT_SECRET_KEY: str = Field(default="change-me-in-production", description="JWT secret key for token signing")

    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, description="JWT token expiration in minutes")

    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )

    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Date & window rules
    MAX_CONSECUTIVE_LEAVE_DAYS: int = Field(default=30, ge=1, description="Maximum inclusive span of one leave request")
    MIN_ADVANCE_NOTICE_DAYS: int = Field(default=2, ge=0, description="Days of notice required before leave starts")
    DUPLICATE_WINDOW_MINUTES: int = Field(default=5, ge=0, description="Identical submissions inside this window are rejected")

    # Balance ledger
    MAX_CARRY_FORWARD_DAYS: int = Field(default=10, ge=0, description="Cap on days rolled into the next year")
    PRO_RATE_ENABLED: bool = Field(default=True, description="Pro-rate entitlement for mid-year joiners")
    BALANCE_EPSILON: float = Field(default=0.01, description="Drift tolerated before reconciliation rewrites a balance")

    # Approval chain & escalation
    ESCALATION_ENABLED: bool = Field(default=True, description="Escalate approvals left pending too long")
    ESCALATION_THRESHOLD_DAYS: int = Field(default=3, ge=1, description="Days a PENDING approval may wait before escalation")
    MAX_ESCALATION_LEVELS: int = Field(default=3, ge=1, description="Highest approval level escalation may create")
    AUTO_APPROVE_AFTER_MAX_ESCALATIONS: bool = Field(
        default=False,
        description="Approve the request when no higher authority exists past the last level",
    )
    MAX_HIERARCHY_DEPTH: int = Field(default=5, ge=1, description="Hops walked up the manager chain")
    ESCALATION_FALLBACK_ROLES: str = Field(
        default="EXECUTIVE,HR",
        description="Comma-separated roles that receive escalations once the manager chain is exhausted",
    )

    # Reconciliation retention windows
    NOTIFICATION_RETENTION_DAYS: int = Field(default=30, ge=1)
    AUDIT_LOG_RETENTION_MONTHS: int = Field(default=6, ge=1)
    CANCELLED_REQUEST_RETENTION_MONTHS: int = Field(default=12, ge=1)
    ARCHIVE_AFTER_MONTHS: int = Field(default=24, ge=1)

    # WFH
    WFH_LOCATION_MIN_LENGTH: int = Field(default=3, ge=1)
    WFH_LOCATION_MAX_LENGTH: int = Field(default=100, ge=1)

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Throttle submission and approval endpoints")
    RATE_LIMIT_SUBMISSION_MAX: int = Field(default=10, ge=1, description="Submissions per window")
    RATE_LIMIT_SUBMISSION_WINDOW_SECONDS: int = Field(default=60, ge=1)
    RATE_LIMIT_APPROVAL_MAX: int = Field(default=20, ge=1, description="Approval actions per window")
    RATE_LIMIT_APPROVAL_WINDOW_SECONDS: int = Field(default=60, ge=1)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate APP_ENV"""
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: If production settings are invalid
        """
        if self.APP_ENV == "prod":
            if len(self.JWT_SECRET_KEY) < 32:
                raise ValueError(
                    "JWT_SECRET_KEY must be at least 32 characters in production environment"
                )
            if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
                raise ValueError(
                    "ALLOWED_ORIGINS must be explicitly set (not '*') in production environment"
                )
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must not point at SQLite in production environment")

    def get_allowed_origins_list(self) -> List[str]:
        """Get list of allowed CORS origins"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    def get_escalation_fallback_roles(self) -> List[str]:
        return [role.strip().upper() for role in self.ESCALATION_FALLBACK_ROLES.split(",") if role.strip()]


settings = Settings()

if settings.APP_ENV == "prod":
    settings.validate_production()
