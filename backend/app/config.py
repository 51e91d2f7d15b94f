"""Role Orchestrator configuration — scheduling, retry, and escalation settings."""

from typing import Literal

from pydantic_settings import BaseSettings

PriorityTier = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (only used when persistence_enabled is set)
    database_url: str = "sqlite:///data/orchestrator.db"
    persistence_enabled: bool = False

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:3000"

    # Scheduling
    scheduler_enabled: bool = True
    tick_interval_seconds: float = 5.0
    max_concurrent_tasks: int = 5

    # Retry policy
    max_task_retries: int = 3
    retry_priority_decay: int = 20

    # Escalation thresholds (currency units)
    single_expense_threshold: float = 10_000.0
    contract_value_threshold: float = 50_000.0
    auto_escalation_enabled: bool = True  # Run rule engine on every completed result

    # Responder (empty key = deterministic acknowledging responder)
    anthropic_api_key: str = ""
    responder_model: str = "claude-sonnet-4-5"
    responder_max_tokens: int = 1024
    responder_temperature: float = 0.0

    # Audit / events
    decision_log_path: str = ""  # Empty = in-memory only
    event_history_size: int = 500

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
