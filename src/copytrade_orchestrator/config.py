"""Configuration for the copy-trade backend.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Everything has a default so the server can start with no configuration at all.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CopyTradeSettings(BaseSettings):
    """Settings for the store, the workflow service and the API.

    Environment variables:
    - LOG_LEVEL                     (optional)
    - COPYTRADE_SEED_SAMPLE_DATA    (optional)
    - COPYTRADE_STARTING_BALANCE    (optional)
    - COPYTRADE_WORKER_THREADS      (optional)
    - COPYTRADE_CORS_ORIGINS        (optional)
    - COPYTRADE_HOST / COPYTRADE_PORT

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `CopyTradeSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    seed_sample_data: bool = Field(
        default=True,
        validation_alias="COPYTRADE_SEED_SAMPLE_DATA",
        description="Populate the store with demo traders and trades at startup",
    )

    starting_balance: float = Field(
        default=10000.0,
        gt=0,
        validation_alias="COPYTRADE_STARTING_BALANCE",
        description="Balance credited to newly registered users",
    )

    worker_threads: int = Field(
        default=40,
        ge=1,
        le=1000,
        validation_alias="COPYTRADE_WORKER_THREADS",
        description=(
            "Size of the worker pool that runs request handlers (and therefore workflows). "
            "Each request runs its workflow to completion on one worker."
        ),
    )

    # Dev-friendly CORS (Vite). Override via COPYTRADE_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="COPYTRADE_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    host: str = Field(default="127.0.0.1", validation_alias="COPYTRADE_HOST")
    port: int = Field(default=8080, ge=1, le=65535, validation_alias="COPYTRADE_PORT")

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
