from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration using pydantic-settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    # Cache
    cache_database_url: str = Field(
        default="sqlite+aiosqlite:///./menu_cache.db",
        description="Menu cache database URL",
    )
    cache_sweep_interval: float = Field(
        default=3600.0,
        ge=0.0,
        description="Seconds between expired-entry sweeps (0 disables)",
    )

    # LLM Configuration
    openai_api_key: str = Field(default="", description="OpenAI API key")
    llm_model: str = Field(default="gpt-4o", description="LLM model to use")
    llm_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="LLM temperature (0.0-1.0, lower = more deterministic)",
    )

    # Fetching
    static_fetch_timeout: float = Field(
        default=10.0, gt=0.0, description="Static HTTP fetch timeout in seconds"
    )
    render_timeout: float = Field(
        default=20.0, gt=0.0, description="Headless browser navigation timeout in seconds"
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        description="User-Agent header sent by both fetchers",
    )

    # Application
    app_env: str = Field(
        default="development", description="Environment (development, production)"
    )
    debug: bool = Field(default=False, description="Debug mode")
    allowed_origins: str = Field(
        default="http://localhost:8000,http://127.0.0.1:8000",
        description="Comma-separated CORS allowed origins",
    )

    @property
    def cors_origins(self) -> list[str]:
        """Parse allowed origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
