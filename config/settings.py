"""
Configuration settings for Token Reducer.
Uses Pydantic Settings for type-safe configuration with validation.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prompts.summary import (
    MESSAGE_SUMMARY_PROMPT,
    SCENE_SUMMARY_PROMPT,
    KEYWORDS_PROMPT,
    RETRIEVAL_QUERY_PROMPT,
)
from prompts.timeline import TIMELINE_INJECTION_TEMPLATE
from prompts.arcs import ARC_ANALYZER_PROMPT


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field has a default so a session can be built without a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )

    # ==================== Generation ====================

    MODEL_SUMMARY: str = Field(
        default="gpt-4o-mini",
        description="LiteLLM model string used for every summarization call. "
                    "Empty disables generation.",
    )
    RATE_LIMIT: int = Field(
        default=60,
        description="Maximum summarization requests per minute",
        ge=1,
    )
    MAX_SUMMARY_TOKENS: int = Field(
        default=1024,
        description="Per-call token ceiling for generated summaries",
        ge=16,
    )
    MODEL_CONTEXT_LIMIT: int = Field(
        default=8192,
        description="Context window of the summarization model. Scenes larger than "
                    "this minus 500 tokens are summarized in chunks.",
        ge=1000,
    )
    MAX_CHUNK_PASSES: int = Field(
        default=3,
        description="Maximum re-summarization passes over chunk summaries",
        ge=1,
        le=10,
    )
    TOKENIZER_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Model name used to pick the tiktoken encoding",
    )

    # ==================== Per-Message Summarization ====================

    ENABLE_MESSAGE_SUMMARY: bool = Field(default=False)
    AUTO_SUMMARIZE: bool = Field(default=False)
    AUTO_SUMMARIZE_USER: bool = Field(
        default=False,
        description="Also auto-summarize user-authored messages",
    )
    AUTO_SUMMARIZE_ON_EDIT: bool = Field(default=False)
    AUTO_SUMMARIZE_ON_SWIPE: bool = Field(default=True)
    AUTO_SUMMARIZE_ON_CONTINUE: bool = Field(default=False)
    SUMMARY_DELAY_MESSAGES: int = Field(
        default=5,
        description="Messages newer than this many from the latest are never auto-summarized",
        ge=0,
    )
    REPLACE_WITH_SUMMARY: bool = Field(
        default=False,
        description="Treat a summarized message as its summary for accounting and context",
    )

    # ==================== Auto-Hide ====================

    COLLAPSE_SUMMARIZED: bool = Field(
        default=False,
        description="Collapse summarized messages for display (visual only)",
    )
    AUTO_HIDE_SUMMARIZED: bool = Field(
        default=False,
        description="Hide summarized messages from the AI context",
    )
    KEEP_RECENT_COUNT: int = Field(
        default=5,
        description="Number of most recent summarized messages left visible",
        ge=0,
    )

    # ==================== Scenes / Chapters ====================

    ENABLE_SCENE_MODE: bool = Field(default=False)
    AUTO_SCENE_INTERVAL: int = Field(
        default=0,
        description="Create a chapter automatically every N messages (0 disables)",
        ge=0,
    )
    HIDE_SUMMARIZED_SCENES: bool = Field(default=False)

    # ==================== Memory Storage ====================

    STORAGE_MODE: Literal["metadata", "store", "both"] = Field(
        default="metadata",
        description="'metadata' keeps memories on messages only, 'store' / 'both' "
                    "also writes entries to the named memory store",
    )
    MEMORY_STORE_DIR: str = Field(default="./data/memory_stores")
    TARGET_MEMORY_STORE: str = Field(
        default="",
        description="Explicit memory store name. Empty uses MEMORY_STORE_NAME_TEMPLATE.",
    )
    AUTO_CREATE_MEMORY_STORE: bool = Field(default=True)
    MEMORY_STORE_NAME_TEMPLATE: str = Field(default="TR_Memories_{{char}}")
    MEMORY_PREFIX: str = Field(default="")
    MEMORY_SUFFIX: str = Field(default="")
    MEMORY_DEPTH: int = Field(default=4, ge=0)
    MEMORY_ROLE: int = Field(default=0, ge=0, le=2, description="0=system, 1=user, 2=assistant")

    # ==================== Token Threshold ====================

    ENABLE_THRESHOLD: bool = Field(default=False)
    TOKEN_THRESHOLD_PCT: int = Field(
        default=70,
        description="Summarize oldest messages once the effective total passes this "
                    "percentage of MODEL_CONTEXT_LIMIT",
        ge=1,
        le=100,
    )

    # ==================== Smart Retrieval ====================

    ENABLE_SMART_RETRIEVAL: bool = Field(default=False)
    RETRIEVAL_ON_SEND: bool = Field(default=False)
    ENABLE_LLM_RETRIEVAL: bool = Field(
        default=False,
        description="Ask the model for a search query when none is given",
    )
    MAX_RETRIEVED_MEMORIES: int = Field(default=5, ge=1, le=50)

    # ==================== Timeline Injection ====================

    ENABLE_INJECTION: bool = Field(default=False)
    INJECTION_DEPTH: int = Field(default=0, ge=0)
    INJECTION_ROLE: int = Field(default=0, ge=0, le=2)
    INJECTION_TEMPLATE: str = Field(default=TIMELINE_INJECTION_TEMPLATE)

    # ==================== Prompts ====================

    SUMMARY_PROMPT: str = Field(default=MESSAGE_SUMMARY_PROMPT)
    SCENE_SUMMARY_PROMPT: str = Field(default=SCENE_SUMMARY_PROMPT)
    KEYWORDS_PROMPT: str = Field(default=KEYWORDS_PROMPT)
    RETRIEVAL_QUERY_PROMPT: str = Field(default=RETRIEVAL_QUERY_PROMPT)
    ARC_ANALYZER_PROMPT: str = Field(default=ARC_ANALYZER_PROMPT)

    # ==================== Presets ====================

    PRESETS_FILE: str = Field(default="./data/presets.json")

    @field_validator("SUMMARY_PROMPT", "SCENE_SUMMARY_PROMPT", "KEYWORDS_PROMPT", "ARC_ANALYZER_PROMPT")
    @classmethod
    def validate_prompt_placeholder(cls, v: str) -> str:
        """Summarization prompts must carry the {{content}} placeholder."""
        if "{{content}}" not in v:
            raise ValueError("prompt must contain the {{content}} placeholder")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    @property
    def writes_to_store(self) -> bool:
        """Check if memories are also written to the named memory store."""
        return self.STORAGE_MODE in ("store", "both")


# Create singleton instance with validation
# This will automatically load from .env and validate all fields
settings = Settings()
