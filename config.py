"""
Configuration settings for the pedagogy engine service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    agent_workspace: str = Field(
        default="./agent-workspace",
        description="Root of the agent workspace (skills, agent definitions, data)",
    )
    data_dir: str = Field(
        default="",
        description="Directory holding domains, learners, groups, lessons. Defaults to {agent_workspace}/data",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=3000,
        description="API server port",
    )
    frontend_url: str = Field(
        default="http://localhost:3001",
        description="Frontend origin, used for CORS and for portal/assessment links",
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Extra CORS origins besides frontend_url",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Agent Runtime
    # ========================================
    agent_runtime_url: str = Field(
        default="http://localhost:8787",
        description="Base URL of the external agent runtime",
    )
    agent_runtime_api_key: str | None = Field(
        default=None,
        description="Bearer token for the agent runtime",
    )
    agent_runtime_timeout: float = Field(
        default=300.0,
        description="Read timeout (seconds) for streamed agent queries",
    )
    agents_dir: str | None = Field(
        default=None,
        description="Directory of agent definition markdown files. Defaults to {agent_workspace}/.claude/agents",
    )
    educator_model: str = Field(default="opus", description="Model for educator conversations")
    assessment_model: str = Field(default="sonnet", description="Model for learner assessments")
    lesson_model: str = Field(default="opus", description="Model for the lesson composition agent")
    curriculum_model: str = Field(default="opus", description="Model for the curriculum agent")
    live_model: str = Field(default="sonnet", description="Model for the live teaching companion")

    # ========================================
    # Sessions
    # ========================================
    session_max_age_hours: float = Field(
        default=4.0,
        description="Idle sessions older than this are cleaned up",
    )
    session_cleanup_interval_minutes: float = Field(
        default=15.0,
        description="How often the stale session sweep runs",
    )

    # ========================================
    # Dependency Inference
    # ========================================
    inference_max_depth: int | None = Field(
        default=None,
        description="Maximum prerequisite hops from a demonstrated skill (None = unbounded)",
    )
    inference_min_confidence: float = Field(
        default=0.0,
        ge=0,
        le=1,
        description="Inferred confidences below this are not propagated further",
    )

    # ========================================
    # Skill Thresholds
    # ========================================
    skill_known_threshold: float = Field(
        default=0.5,
        description="Confidence at which a learner counts as having a skill",
    )
    skill_strong_threshold: float = Field(
        default=0.7,
        description="Confidence at which a learner can help peers with a skill",
    )
    prerequisite_weak_threshold: float = Field(
        default=0.6,
        description="Prerequisite confidence below this is flagged as weak",
    )
    curriculum_coverage_threshold: float = Field(
        default=0.7,
        description="Fraction of a group that must have a skill before it is skipped in a curriculum",
    )

    # ========================================
    # Portal
    # ========================================
    portal_code_length: int = Field(
        default=4,
        ge=2,
        le=12,
        description="Length of the random suffix of portal codes",
    )

    @model_validator(mode="after")
    def _default_paths(self) -> "Settings":
        if not self.data_dir:
            self.data_dir = str(Path(self.agent_workspace) / "data")
        if not self.agents_dir:
            self.agents_dir = str(Path(self.agent_workspace) / ".claude" / "agents")
        return self

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)

    def get_inference_config(self) -> dict[str, Any]:
        """Get dependency inference parameters as a dictionary."""
        return {
            "max_depth": self.inference_max_depth,
            "min_confidence": self.inference_min_confidence,
        }

    def get_threshold_config(self) -> dict[str, float]:
        """Get skill thresholds as a dictionary."""
        return {
            "known": self.skill_known_threshold,
            "strong": self.skill_strong_threshold,
            "weak_prerequisite": self.prerequisite_weak_threshold,
            "curriculum_coverage": self.curriculum_coverage_threshold,
        }

    def get_cors_origins(self) -> list[str]:
        origins = [self.frontend_url]
        origins.extend(o for o in self.cors_origins if o not in origins)
        return origins

    def has_agent_runtime_configured(self) -> bool:
        """Check if an agent runtime endpoint is configured."""
        return bool(self.agent_runtime_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
