"""Deployment settings read from ``OPSBOARD_*`` environment variables or a ``.env`` file."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from opsboard.windows import DEFAULT_TZ


DEFAULT_DATA_DIR = Path(__file__).resolve().parents[1] / "data"


class OpsboardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPSBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Field(default=DEFAULT_DATA_DIR, description="Directory holding one <entity>.json file per collection.")
    timezone: str = Field(default=DEFAULT_TZ, description="Zone that today / this week / this month are computed in.")
    weekly_goal_hours: float = Field(default=40.0, ge=0, description="Target hours per week for the time tracking goal.")
