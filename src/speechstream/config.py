"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Provide complete, well-formed answers that "
    "finish your thoughts. Be concise but thorough. Always end your responses "
    "with proper punctuation. IMPORTANT: You have a token limit of approximately "
    "1500 tokens (about 1100 words). Always conclude your response before "
    "reaching this limit. If you find yourself approaching the limit, wrap up "
    "your current thought and end the response naturally with proper "
    "punctuation. Do not let your response get cut off mid-sentence."
)


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    chat_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("OPENAI_CHAT_MODEL", "chat_model"),
    )
    chat_max_tokens: int = Field(
        default=1500,
        ge=1,
        validation_alias=AliasChoices("OPENAI_MAX_TOKENS", "chat_max_tokens"),
    )
    max_continuation_count: int = Field(
        default=2,
        ge=0,
        validation_alias=AliasChoices(
            "MAX_CONTINUATION_COUNT", "max_continuation_count"
        ),
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("SYSTEM_PROMPT", "system_prompt"),
    )
    request_timeout: float = Field(
        default=120.0,
        ge=1,
        validation_alias=AliasChoices("OPENAI_TIMEOUT", "request_timeout"),
    )

    # Speech synthesis
    tts_model: str = Field(
        default="tts-1",
        validation_alias=AliasChoices("OPENAI_TTS_MODEL", "tts_model"),
    )
    tts_voice: str = Field(
        default="alloy",
        validation_alias=AliasChoices("OPENAI_TTS_VOICE", "tts_voice"),
    )
    tts_response_format: str = Field(
        default="mp3",
        validation_alias=AliasChoices("OPENAI_TTS_FORMAT", "tts_response_format"),
    )
    tts_max_chars: int = Field(
        default=4096,
        ge=1,
        validation_alias=AliasChoices("TTS_MAX_CHARS", "tts_max_chars"),
    )

    # Streaming pipeline
    max_sentence_length: int = Field(
        default=4000,
        ge=1,
        validation_alias=AliasChoices("MAX_SENTENCE_LENGTH", "max_sentence_length"),
    )
    segment_flush_threshold: int = Field(
        default=50,
        ge=0,
        validation_alias=AliasChoices(
            "SEGMENT_FLUSH_THRESHOLD", "segment_flush_threshold"
        ),
    )
    history_limit: int = Field(
        default=20,
        ge=0,
        validation_alias=AliasChoices("HISTORY_LIMIT", "history_limit"),
    )

    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "host"),
    )
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "port"),
    )

    @model_validator(mode="after")
    def _check_sentence_ceiling(self) -> "Settings":
        if self.max_sentence_length > self.tts_max_chars:
            raise ValueError(
                "max_sentence_length must not exceed tts_max_chars "
                f"({self.max_sentence_length} > {self.tts_max_chars})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_SYSTEM_PROMPT", "Settings", "get_settings"]
