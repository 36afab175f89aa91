"""Diagnostic logging subsystem for genloop.

Provides immutable per-step records and a configurable logger that
supports none/summary/full verbosity and in-memory diagnostic mode.
"""

from genloop.logging.logger import GenerationLogger
from genloop.logging.types import StepRecord

__all__ = [
    "GenerationLogger",
    "StepRecord",
]
