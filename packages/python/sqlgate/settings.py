"""
Host configuration using Pydantic Settings.

Loads SQLGATE_* environment variables (and a .env file) into the objects
the gate is built from. The core classes never read settings themselves;
they receive configuration explicitly.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .analyzer import SqlAnalyzer
from .audit import JsonlAuditSink
from .channels import default_review_channel
from .gate import ConfirmationGate, ReviewPolicy
from .keywords import DEFAULT_ACTION_KEYWORDS
from .logs import configure_logging

if TYPE_CHECKING:
    from .channels import ReviewChannel


class Settings(BaseSettings):
    """Gate settings loaded from environment variables.

    List values are given as JSON, e.g.
    ``SQLGATE_ACTION_KEYWORDS='["DELETE", "DROP"]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Parsing
    dialect: str | None = None

    # Detection
    whole_text_keywords: list[str] = Field(default_factory=list)
    action_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_ACTION_KEYWORDS))

    # Review
    always_review_ddl: bool = True
    review_timeout_seconds: float = Field(default=300.0, gt=0)

    # Logging
    audit_log: bool = True
    audit_log_file: Path = Path("audit.log")
    console_log: bool = False
    log_level: str = "INFO"

    @field_validator("dialect")
    @classmethod
    def _blank_dialect_is_default(cls, value: str | None) -> str | None:
        return (value.strip().lower() or None) if value else None

    def build_analyzer(self) -> SqlAnalyzer:
        return SqlAnalyzer(
            dialect=self.dialect,
            whole_text_keywords=self.whole_text_keywords,
            action_keywords=self.action_keywords,
        )

    def review_policy(self) -> ReviewPolicy:
        return ReviewPolicy(always_review_ddl=self.always_review_ddl)

    def build_gate(self, channel: ReviewChannel | None = None) -> ConfirmationGate:
        """Assemble a gate; the default channel is picked for this host."""
        return ConfirmationGate(
            analyzer=self.build_analyzer(),
            channel=channel or default_review_channel(self.review_timeout_seconds),
            policy=self.review_policy(),
        )

    def build_audit_sink(self) -> JsonlAuditSink | None:
        """JSONL audit sink at ``audit_log_file``, or None when disabled."""
        if not self.audit_log:
            return None
        return JsonlAuditSink(self.audit_log_file)

    def setup_logging(self) -> None:
        """Install the stderr diagnostics handler, or silence it when console_log is off."""
        configure_logging(self.log_level, console=self.console_log)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
