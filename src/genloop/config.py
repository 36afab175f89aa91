"""Configuration system for genloop.

Uses pydantic-settings for declarative, layered configuration:
init kwargs -> environment variables (GENLOOP_*) -> .env file -> field defaults.

Command-line overrides are applied via resolve_config() which creates a new
config instance without mutating the defaults. The config is treated as
immutable once a generation controller has been built from it.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from genloop.exceptions import ConfigValidationError

_LOG_LEVELS: frozenset[str] = frozenset({"none", "summary", "full"})

# All known config field names (populated after class definition).
_ALL_FIELDS: frozenset[str] = frozenset()


class GenLoopConfig(BaseSettings):
    """Configuration for a genloop generation session.

    Resolution order: init kwargs -> env vars (GENLOOP_*) -> .env file -> defaults.

    Fields are divided into three groups:
    - **Sampling**: temperature, top-k, top-p and the seed of the session RNG.
    - **Generation**: step limit, repeat penalty and the EOS sentinel.
    - **Collaborators and logging**: model backend, tokenizer file, verbosity.
    """

    model_config = SettingsConfigDict(
        env_prefix="GENLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Sampling ---

    temperature: float | None = Field(
        default=None,
        description="Sampling temperature (None or <= 0 selects argmax)",
    )
    top_p: float | None = Field(
        default=None,
        description="Nucleus sampling probability cutoff in (0, 1]",
    )
    top_k: int | None = Field(
        default=None,
        description="Only sample among the top K tokens",
    )
    seed: int = Field(
        default=299792458,
        description="Seed of the per-session random generator",
    )

    # --- Generation ---

    sample_len: int = Field(
        default=10000,
        description="Maximum number of tokens to generate per prompt",
    )
    repeat_penalty: float = Field(
        default=1.1,
        description="Penalty applied to recently seen tokens (1.0 disables)",
    )
    repeat_last_n: int = Field(
        default=64,
        description="Number of most recent tokens the repeat penalty considers",
    )
    eos_token: str = Field(
        default="</s>",
        description="Vocabulary string of the end-of-sequence sentinel",
    )

    # --- Collaborators ---

    model: str = Field(
        default="random",
        description="Registered model backend name",
    )
    vocab_size: int = Field(
        default=32000,
        description="Vocabulary size for backends that need one (e.g. 'random')",
    )
    tokenizer_file: str | None = Field(
        default=None,
        description="Path to a tokenizer.json file",
    )

    # --- Logging ---

    log_level: str = Field(
        default="summary",
        description="Per-step logging verbosity: 'none', 'summary', 'full'",
    )
    diagnostic_mode: bool = Field(
        default=False,
        description="Store all step records in memory for analysis",
    )


# Populate _ALL_FIELDS now that the class is defined.
_ALL_FIELDS = frozenset(GenLoopConfig.model_fields.keys())


def validate_config(config: GenLoopConfig) -> None:
    """Check value ranges that pydantic types alone do not express.

    Sampling parameters are checked again when the policy is built; they
    are validated here too so a bad config fails before any collaborator
    is loaded.

    Args:
        config: The configuration to check.

    Raises:
        ConfigValidationError: If any field is out of range.
    """
    if config.sample_len < 1:
        raise ConfigValidationError(f"sample_len must be >= 1, got {config.sample_len}")
    if config.repeat_penalty <= 0:
        raise ConfigValidationError(
            f"repeat_penalty must be > 0, got {config.repeat_penalty}"
        )
    if config.repeat_last_n < 0:
        raise ConfigValidationError(
            f"repeat_last_n must be >= 0, got {config.repeat_last_n}"
        )
    if config.top_k is not None and config.top_k < 1:
        raise ConfigValidationError(f"top_k must be >= 1, got {config.top_k}")
    if config.top_p is not None and not 0.0 < config.top_p <= 1.0:
        raise ConfigValidationError(f"top_p must be in (0, 1], got {config.top_p}")
    if config.log_level not in _LOG_LEVELS:
        raise ConfigValidationError(
            f"log_level must be one of {sorted(_LOG_LEVELS)}, got {config.log_level!r}"
        )


def resolve_config(
    defaults: GenLoopConfig,
    overrides: dict[str, Any] | None,
) -> GenLoopConfig:
    """Create a new config instance merging defaults with explicit overrides.

    Keys whose value is ``None`` are treated as "not given" and skipped, so
    unset command-line flags leave the environment-derived value in place.

    Args:
        defaults: The base configuration loaded from environment.
        overrides: Field values to apply on top of *defaults*.

    Returns:
        A new GenLoopConfig with overrides applied, or *defaults* itself if
        nothing was overridden.

    Raises:
        ConfigValidationError: If any key is not a config field.
    """
    if not overrides:
        return defaults

    applied: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in _ALL_FIELDS:
            raise ConfigValidationError(f"Unknown config field: '{key}'")
        if value is not None:
            applied[key] = value

    if not applied:
        return defaults

    # model_copy(update=...) skips validation; model_validate coerces types.
    merged = defaults.model_dump()
    merged.update(applied)
    return GenLoopConfig.model_validate(merged)
