"""Configuration settings for the application."""

from typing import Dict

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    DATA_DIR: str = "./data"
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Completion service (OpenAI-compatible Nexus gateway)
    ENDPOINT: str = "http://localhost:8000/llm"
    API_KEY: str = "not-used"  # Nexus holds the real key server-side
    MODEL: str | None = None
    STREAMING: bool = True
    REQUEST_TIMEOUT: float = 60.0
    SESSION_HEADERS: Dict[str, str] = {}

    # Request shaping: streaming and buffered requests use different limits
    STREAM_MAX_TOKENS: int = 4096
    BUFFERED_MAX_TOKENS: int = 1000
    BUFFERED_TEMPERATURE: float = 0.7

    # Tools
    TOOL_SET: str = "none"  # Options: none, discover, custom, or a preset name
    CUSTOM_TOOLS: str | None = None  # JSON text used when TOOL_SET=custom
    TOOL_SERVICE_URL: str | None = None
    MAX_TOOL_ROUNDS: int | None = None  # None = unbounded

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
