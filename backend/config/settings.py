"""Application settings loaded from environment variables."""
from functools import lru_cache
from pathlib import Path
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """Application configuration loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Gemini API (Primary for insight generation)
    gemini_api_key: str = Field(default="", description="Google Gemini API key")

    # Claude API (Fallback for clinical summaries)
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")

    # Azure OpenAI (Fallback for insight generation)
    azure_openai_api_key: str = Field(default="", description="Azure OpenAI API key")
    azure_openai_endpoint: str = Field(default="", description="Azure OpenAI endpoint URL")
    azure_openai_deployment: str = Field(default="gpt-4o", description="Azure OpenAI deployment name")
    azure_openai_api_version: str = Field(default="2024-02-15-preview", description="Azure OpenAI API version")

    # Application
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Model configurations
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model for insight generation")
    claude_model: str = Field(default="claude-sonnet-4-20250514", description="Claude model for clinical summaries")

    # Token limits
    gemini_max_output_tokens: int = Field(default=8192, description="Max output tokens for Gemini")
    claude_max_output_tokens: int = Field(default=4096, description="Max output tokens for Claude")
    azure_max_output_tokens: int = Field(default=4096, description="Max output tokens for Azure OpenAI")

    # Insight reconciliation
    insight_timeout_seconds: float = Field(default=25.0, description="Upper bound on a single insight LLM call")
    summary_timeout_seconds: float = Field(default=40.0, description="Upper bound on a clinical summary LLM call")
    cache_fallback_insights: bool = Field(
        default=False,
        description="Keep deterministic fallback insights in the per-patient cache"
    )

    # Longitudinal analytics
    trend_threshold_pct: float = Field(default=20.0, description="Relative change (%) separating a trend from noise")
    max_pathology_deltas: int = Field(default=6, description="Maximum pathology deltas returned per comparison")

    # Data sources (relative paths resolve against the project root)
    patients_csv_path: str = Field(default="data/patients/params_onco.csv", description="Patient CSV source file")
    prompts_dir: str = Field(default="prompts", description="Directory containing prompt templates")
    llm_routing_path: str = Field(default="data/config/llm_routing.json", description="Task to provider routing table")
    watch_data_file: bool = Field(default=False, description="Reload patients when the CSV changes on disk")

    def resolve_path(self, value: str) -> Path:
        """Resolve a configured path against the project root."""
        path = Path(value)
        return path if path.is_absolute() else PROJECT_ROOT / path


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
