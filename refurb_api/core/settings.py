from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from refurb_api.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Refurbishment Workflow API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for the refurbished IT equipment pipeline. "
            "Covers intake, inspection routing, coordinated parallel repair, "
            "spares issuance, QC, rack placement and shipment verification."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed racks and spare parts after migrations.",
    )

    # Token decoding (tokens are issued by the external identity service)
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC secret for bearer tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60)

    # Workflow tuning
    TAT_DAYS: int = Field(default=5, ge=1, description="Turnaround days stamped on a claimed repair job")
    TAT_WARNING_HOURS: int = Field(
        default=24, ge=1, description="Window before the TAT due date that counts as approaching"
    )
    VERIFICATION_EXTRA_TOLERANCE: int = Field(
        default=0, ge=0, description="Unexpected devices tolerated before a shipment is PARTIAL"
    )

    LOG_LEVEL: str = Field(default="INFO")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
