"""
Configuration settings for the Comply-Desk kit generator.
Loads environment variables and provides application-wide settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI Configuration
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.35
    OPENAI_TIMEOUT: int = 60  # seconds per chat completion

    # Catalog Configuration
    PRODUCTS_FILE: str = "./static/products.json"
    # Reject requests whose productSlug is not in the catalog
    ENFORCE_KNOWN_PRODUCTS: bool = False

    # Document Configuration
    DEFAULT_KIT_TITLE: str = "Comply-Desk Compliance Kit"
    FILENAME_PREFIX: str = "comply-desk-"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8888"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
