"""Data types for the diagnostic logging subsystem."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StepRecord:
    """Immutable record of a single decode step.

    Attributes:
        step: Zero-based decode step index within the session.
        position: Position offset passed to the model forward call.
        context_len: Number of tokens passed to the model forward call.
        token_id: Vocabulary index of the sampled token.
        token_rank: Rank of the sampled token (0 = most probable).
        token_prob: Probability of the sampled token after filtering.
        num_candidates: Number of tokens with non-zero probability.
        policy: Name of the sampling policy.
        forward_ms: Time spent in the model forward call (milliseconds).
        step_ms: Total time of the step, including penalty and sampling (ms).
        is_eos: True if the sampled token ended the session.
    """

    # Position
    step: int
    position: int
    context_len: int

    # Selection
    token_id: int
    token_rank: int
    token_prob: float
    num_candidates: int
    policy: str

    # Timing
    forward_ms: float
    step_ms: float

    is_eos: bool
