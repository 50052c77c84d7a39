"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_SUBAGENTS = (
    "browser-automation,content-creator,data-analyst,developer,"
    "documentation-agent,file-manager,problem-solver,research-agent,"
    "system-admin,worker-agent"
)


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Memory layer configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/memory.db"))

    # Turso (hosted libSQL); when set it overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Bootstrap threads
    default_resource_id: str = Field(default="main-user")
    default_conversation_id: str = Field(default="main-user")
    system_resource_id: str = Field(default="system")
    system_conversation_id: str = Field(default="history_entries")

    # Embeddings
    embedding_model: str = Field(default="all-MiniLM-L6-v2")

    # Retrieval
    vector_search_top_k: int = Field(default=5)
    recent_context_window: int = Field(default=10)
    subagent_context_window: int = Field(default=5)
    message_query_limit: int = Field(default=50)
    retriever_timeout_seconds: float = Field(default=10.0)
    subagent_names: str = Field(default=_DEFAULT_SUBAGENTS)

    # Summarization
    summarization_enabled: bool = Field(default=False)
    summarization_threshold: int = Field(default=20)
    summary_model: str = Field(default="claude-haiku-4-5-20251001")
    anthropic_api_key: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_subagent_names(self) -> list[str]:
        """Parse SUBAGENT_NAMES into a list of sub-agent resource IDs."""
        if not self.subagent_names.strip():
            return []
        return [name.strip() for name in self.subagent_names.split(",") if name.strip()]


settings = Settings()
