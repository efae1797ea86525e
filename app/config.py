"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["openai", "gemini", "anthropic", "mock"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Text generation provider
    ai_provider: ProviderName = Field(
        default="mock",
        description="Active text-generation provider (openai, gemini, anthropic, mock)",
    )
    ai_model: str = Field(
        default="gpt-4o",
        description="Model identifier passed to the provider",
    )
    ai_api_key: Optional[str] = Field(
        default=None, description="API key for the active provider"
    )
    ai_base_url: Optional[str] = Field(
        default=None, description="Optional base URL override for the provider"
    )
    ai_temperature: float = Field(
        default=0.7, ge=0.0, le=2.0, description="Sampling temperature"
    )
    ai_max_tokens: int = Field(
        default=4000, ge=1, description="Maximum output length in tokens"
    )

    # Recovery parser
    parse_excerpt_chars: int = Field(
        default=500,
        ge=50,
        description="Maximum characters of raw output kept in parse error details",
    )

    # Diagrams
    diagram_output_dir: Path = Field(
        default=Path("./data/diagrams"),
        description="Directory for converted and generated diagram images",
    )

    # Database
    database_path: Path = Field(
        default=Path("./data/app.db"),
        description="Path to SQLite database file",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(
        default="development", description="Environment (development/production)"
    )

    # Security
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")
    rate_limit_per_minute: int = Field(
        default=60, ge=1, description="Rate limit per minute per IP"
    )

    def __init__(self, **kwargs):
        """Initialize settings and normalize path fields."""
        super().__init__(**kwargs)
        if isinstance(self.database_path, str):
            self.database_path = Path(self.database_path)
        if isinstance(self.diagram_output_dir, str):
            self.diagram_output_dir = Path(self.diagram_output_dir)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


class GeneratorConfig(BaseModel):
    """
    Immutable provider configuration handed to the request compiler and
    generator client.

    Each pipeline receives its own value, so several pipelines with
    different providers can run in the same process.
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderName = "mock"
    model: str = "gpt-4o"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 4000

    @classmethod
    def from_settings(cls, source: Settings) -> "GeneratorConfig":
        """Build a generator configuration from application settings."""
        return cls(
            provider=source.ai_provider,
            model=source.ai_model,
            api_key=source.ai_api_key,
            base_url=source.ai_base_url,
            temperature=source.ai_temperature,
            max_tokens=source.ai_max_tokens,
        )


# Global settings instance
settings = Settings()
