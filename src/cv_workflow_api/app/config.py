"""Application settings."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_TEMPLATE_PATH = PACKAGE_ROOT / "templates" / "AW_cv_template.docx"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "cv-workflow-api"
    log_level: str = "INFO"

    # Remote extraction workflow.
    workflow_id: str = ""
    api_token: str = ""
    workflow_base_url: str = "https://app.noxus.ai/api/backend/v1"
    file_base_url: str = "https://app.noxus.ai/api/backend/file"
    workflow_input_field: str = "CV"
    request_timeout_s: float = Field(default=30.0, gt=0)

    # Polling bounds: worst-case wait is interval * attempts.
    poll_interval_s: float = Field(default=5.0, gt=0)
    poll_max_attempts: int = Field(default=60, ge=1)

    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    template_path: Path = DEFAULT_TEMPLATE_PATH
    frontend_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_prefix="CV_WORKFLOW_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_workflow_id(self) -> str:
        return (self.workflow_id or os.getenv("NOXUS_WORKFLOW_ID", "")).strip()

    def resolved_api_token(self) -> str:
        return (self.api_token or os.getenv("NOXUS_API_TOKEN", "")).strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
