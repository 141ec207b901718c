"""Configuration management for billing-engine.

Settings are read from environment variables with the ``BILLING_`` prefix
(and an optional ``.env`` file) using Pydantic Settings.
"""

from __future__ import annotations

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from billing_engine.core.types import StorageBackend


class BillingConfig(BaseSettings):
    """Main configuration for the billing service.

    Example:
        ```python
        # BILLING_STORAGE_BACKEND=sqlalchemy
        # BILLING_DATABASE_URL=postgresql+asyncpg://...
        config = BillingConfig()

        # Or programmatically
        config = BillingConfig(
            storage_backend="sqlalchemy",
            database_url="sqlite+aiosqlite:///./billing.db",
            seed_demo_data=True,
        )
        ```

    Attributes:
        storage_backend: ``memory`` for development/tests, ``sqlalchemy`` otherwise
        database_url: Async SQLAlchemy URL (required for the SQL backend)
        seed_demo_data: Insert demo customers/products on first start
        debug_errors: Expose internal error details in 500 responses
    """

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __str__(self) -> str:
        """String representation with masked secrets."""
        result = super().__repr__()
        return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", result)

    ###########
    # Storage #
    ###########

    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Persistence backend for customers, products, bills and items",
    )

    database_url: str | None = Field(
        default=None,
        description="Async SQLAlchemy database URL (required for the sqlalchemy backend)",
    )

    database_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Database connection pool size",
    )

    database_max_overflow: int = Field(
        default=20,
        ge=0,
        le=200,
        description="Max overflow connections beyond pool size",
    )

    database_pool_recycle: int = Field(
        default=3600,
        ge=60,
        description="Connection recycle time in seconds",
    )

    database_echo: bool = Field(
        default=False,
        description="Enable SQL statement logging (development only)",
    )

    ###########
    # Runtime #
    ###########

    seed_demo_data: bool = Field(
        default=False,
        description="Insert demo customers and products when the store is empty",
    )

    debug_errors: bool = Field(
        default=False,
        description="Include internal error details in 500 responses",
    )

    api_prefix: str = Field(
        default="",
        description="Path prefix for all billing routes (e.g. '/api')",
    )

    ##############
    # Validators #
    ##############

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Normalise the database URL and warn about sync drivers.

        Args:
            v: Database URL to validate

        Returns:
            Validated URL string, or ``None`` when unset
        """
        if v is None:
            return None

        import warnings

        url_str = str(v).rstrip("/")
        _SYNC_ONLY_SCHEMES = ("postgresql://", "sqlite://", "mysql://")
        if any(url_str.startswith(s) for s in _SYNC_ONLY_SCHEMES):
            warnings.warn(
                "Database URL uses a synchronous driver scheme. "
                "Use an async driver instead (e.g. postgresql+asyncpg, "
                "sqlite+aiosqlite, mysql+aiomysql).",
                stacklevel=4,
            )
        return url_str

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        """Require a leading slash and strip the trailing one."""
        if v and not v.startswith("/"):
            raise ValueError("api_prefix must start with '/'")
        return v.rstrip("/")

    def model_post_init(self, __context: object) -> None:
        """Run cross-field validation right after construction."""
        self.validate_configuration()

    def validate_configuration(self) -> None:
        """Validate complete configuration consistency.

        Raises:
            ValueError: If configuration is inconsistent
        """
        if self.storage_backend == StorageBackend.SQLALCHEMY and not self.database_url:
            raise ValueError("the sqlalchemy storage backend requires database_url")


__all__ = ["BillingConfig"]
