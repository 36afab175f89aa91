"""genloop: interactive, incremental text generation against an autoregressive model.

Drives a prompt through an opaque model-forward backend one token at a time,
applying a seeded sampling policy and a repeat penalty, and streams decoded
text without ever emitting a partial character.
"""

from __future__ import annotations

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("genloop")
except PackageNotFoundError:
    __version__ = "0.0.0"

from genloop.config import GenLoopConfig, resolve_config, validate_config
from genloop.exceptions import (
    CollaboratorError,
    ConfigValidationError,
    GenLoopError,
    ModelForwardError,
    SamplingError,
    TokenizerError,
    VocabularyError,
)
from genloop.generation import GenerationReport, GenerationState, TextGeneration
from genloop.streaming import StreamingDecoder

__all__ = [
    "CollaboratorError",
    "ConfigValidationError",
    "GenLoopConfig",
    "GenLoopError",
    "GenerationReport",
    "GenerationState",
    "ModelForwardError",
    "SamplingError",
    "StreamingDecoder",
    "TextGeneration",
    "TokenizerError",
    "VocabularyError",
    "__version__",
    "resolve_config",
    "validate_config",
]
