"""Centralised application configuration.

Settings are loaded from environment variables or the `.env` file in the
project root. Using pydantic's BaseSettings provides convenient parsing
and type checking. The service instantiates Settings once at startup;
nothing re-reads the environment while requests are being served.
"""

from __future__ import annotations

from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Server
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST", "host"))
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "port"))
    # Comma-separated list; "*" allows any origin
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "cors_allow_origins"),
    )
    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )

    # Gemini
    google_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_API_KEY", "GEMINI_API_KEY", "google_api_key"
        ),
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash",
        validation_alias=AliasChoices("GEMINI_MODEL", "gemini_model"),
    )

    # Generation parameters (fixed for the lifetime of the process)
    temperature: float = Field(
        default=0.1, validation_alias=AliasChoices("GEMINI_TEMPERATURE", "temperature")
    )
    top_p: float = Field(
        default=0.95, validation_alias=AliasChoices("GEMINI_TOP_P", "top_p")
    )
    top_k: int = Field(default=64, validation_alias=AliasChoices("GEMINI_TOP_K", "top_k"))
    max_output_tokens: int = Field(
        default=8192,
        validation_alias=AliasChoices("GEMINI_MAX_OUTPUT_TOKENS", "max_output_tokens"),
    )
    response_mime_type: str = Field(
        default="text/plain",
        validation_alias=AliasChoices(
            "GEMINI_RESPONSE_MIME_TYPE", "response_mime_type"
        ),
    )

    # Logging/observability
    langfuse_enabled: bool = Field(False, validation_alias="LANGFUSE_ENABLED")
    langfuse_host: str = Field("", validation_alias="LANGFUSE_HOST")
    langfuse_public_key: str = Field("", validation_alias="LANGFUSE_PUBLIC_KEY")
    langfuse_secret_key: str = Field("", validation_alias="LANGFUSE_SECRET_KEY")
    trace_name: str = Field("askdeck-trace", validation_alias="TRACE_NAME")

    def allowed_origins(self) -> List[str]:
        """Split the CORS origin list, dropping blanks and trailing slashes."""
        origins = [
            o.strip().rstrip("/") for o in self.cors_allow_origins.split(",") if o.strip()
        ]
        return origins or ["*"]
