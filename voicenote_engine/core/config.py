"""Configuration module for Voice Note Engine.

This module handles all application configuration using pydantic-settings.
Values come from environment variables or a local .env file.
"""

import logging
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
from pydantic import Field

# Explicitly load .env file BEFORE BaseSettings reads environment variables
load_dotenv()

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Application settings class.

    This class defines all configuration settings for the application.
    Settings are loaded from environment variables with appropriate defaults.
    """

    # Application settings
    environment: str = "development"
    debug: bool = False
    log_level: str = Field(default="INFO", description="Root log level for the application loggers.")

    # Database settings
    database_url: str = Field(default="sqlite:///./data/voicenote_engine.db", description="Database connection string.")

    # --- LLM settings (structured extraction) ---
    llm_provider: str = Field(default="openai", description="LLM provider used for extraction ('openai' or 'ollama').")
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="API Key for OpenAI (used for structured item extraction)."
    )
    OPENAI_CHAT_MODEL_NAME: str = Field(
        default="gpt-4.1-nano",
        description="OpenAI chat model to use for structured item extraction."
    )
    ollama_base_url: str = Field(default="http://localhost:11434", description="Base URL for the Ollama API server.")
    default_model: str = Field(default="llama3.1:latest", description="Ollama model to use when llm_provider is 'ollama'.")
    extraction_temperature: float = Field(default=0.3, description="Sampling temperature for the extraction call.")
    extraction_max_tokens: int = Field(default=1000, description="Maximum tokens the model may produce for one extraction.")
    llm_request_timeout: float = Field(default=60.0, description="Timeout in seconds for a single LLM request.")
    user_timezone: str = Field(default="America/New_York", description="IANA time zone used to interpret spoken times.")

    # --- Google OAuth / Calendar Settings ---
    GOOGLE_CLIENT_ID: Optional[str] = Field(default=None, description="OAuth client ID from Google Cloud Console.")
    GOOGLE_CLIENT_SECRET: Optional[str] = Field(default=None, description="OAuth client secret from Google Cloud Console.")
    GOOGLE_OAUTH_REDIRECT_URI: str = Field(
        default="http://localhost:8000/auth/google/callback",
        description="OAuth redirect URI. Must match one configured in Google Cloud Console."
    )
    GOOGLE_CALENDAR_API_SCOPES: List[str] = Field(
        default=[
            "https://www.googleapis.com/auth/calendar.events",
            "https://www.googleapis.com/auth/calendar.readonly",
        ],
        description="Scopes for Google Calendar API access."
    )
    OAUTH_STATE_SECRET: Optional[str] = Field(
        default=None,
        description="Key for signing the OAuth `state` value. Falls back to GOOGLE_CLIENT_SECRET."
    )
    oauth_state_ttl_seconds: int = Field(default=600, description="How long a signed OAuth `state` stays valid.")
    GOOGLE_OAUTH_RESULT_REDIRECT: str = Field(
        default="/capture/profile",
        description="Where the OAuth callback sends the browser once the exchange finished (success or error query added)."
    )

    # --- Capture client settings ---
    capture_api_base_url: str = Field(default="http://localhost:8000", description="Base URL the capture client submits transcripts to.")
    capture_language: str = Field(default="en-US", description="Recognition language for new speech engines.")
    capture_completion_delay_seconds: float = Field(default=1.5, description="How long the 'done' state stays visible before returning to idle.")
    capture_error_clear_seconds: float = Field(default=5.0, description="How long a capture error message stays visible.")
    capture_request_timeout: float = Field(default=60.0, description="Timeout in seconds for the transcript submission request.")

    # API Server Configuration (for uvicorn)
    api_host: str = Field(default="0.0.0.0", description="Host for the FastAPI server.")
    api_port: int = Field(default=8000, description="Port for the FastAPI server.")
    api_reload: bool = Field(default=False, description="Enable auto-reload for the FastAPI server (development).")
    api_log_level: str = Field(default="info", description="Log level for the FastAPI server.")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra='ignore'
    )

def get_settings() -> Settings:
    """Get application settings.

    Loads settings from environment/.env on every call so that tests and
    dependency overrides always see the current environment.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
