"""Exception hierarchy for genloop.

All exceptions derive from GenLoopError, enabling broad catch patterns
at the application boundary while allowing fine-grained handling internally.
"""


class GenLoopError(Exception):
    """Base exception for all genloop errors."""


class ConfigValidationError(GenLoopError):
    """Configuration field validation failed.

    Raised when sampling parameters are out of range (non-positive
    temperature for a stochastic policy, top-p outside (0, 1], top-k < 1),
    or when config overrides name unknown fields.
    """


class VocabularyError(GenLoopError):
    """The tokenizer vocabulary lacks a token the session requires.

    Raised at session start when the end-of-sequence sentinel cannot be
    resolved, before any decode step runs.
    """


class SamplingError(GenLoopError):
    """Token sampling failed.

    Raised for an empty logits vector, a distribution with no probability
    mass left after filtering, or history ids outside the vocabulary.
    """


class CollaboratorError(GenLoopError):
    """An external collaborator (tokenizer or model) failed.

    Aborts the current session only. No retry is attempted: the model's
    incremental cache may be inconsistent after a failed call.
    """


class TokenizerError(CollaboratorError):
    """Tokenizer encode/decode or loading failed."""


class ModelForwardError(CollaboratorError):
    """The model forward call failed or returned unusable logits."""
