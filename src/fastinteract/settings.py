"""Run configuration loaded from the environment or a `.env` file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fastinteract.logging import LogFormat, LogLevel


class RankingSettings(BaseSettings):
    """Defaults for a ranking run.

    Every field can be set through an environment variable prefixed with
    `FASTINTERACT_`, e.g. `FASTINTERACT_N_WORKERS=8`.

    Attributes:
        n_workers (int): Number of scoring worker threads.
        log_level (LogLevel): Minimum level for the command-line log output.
        log_format (LogFormat): `"short"` or `"full"` log lines.
    """

    model_config = SettingsConfigDict(
        env_prefix="FASTINTERACT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    n_workers: int = Field(default=1, ge=1, description="Number of scoring worker threads.")
    log_level: LogLevel = Field(default="PROGRESS", description="Minimum level for log output.")
    log_format: LogFormat = Field(default="short", description='Log line format, "short" or "full".')
