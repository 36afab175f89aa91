"""Seeded token sampler.

Implements the selection pipeline for every sampling policy:
temperature scaling -> top-k -> softmax -> top-p -> descending sort -> CDF ->
binary search with a uniform value drawn from the session generator.

The generator is a ``numpy.random.Generator`` seeded once per session. Each
stochastic draw consumes exactly one uniform value, so for a fixed seed,
policy and logits sequence the drawn tokens are reproducible.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from genloop.exceptions import SamplingError
from genloop.sampling.policy import (
    Deterministic,
    SamplingPolicy,
    TopK,
    TopKThenTopP,
    TopP,
    validate_policy,
)
from genloop.sampling.types import SelectionResult


def sample(logits: Any, policy: SamplingPolicy, rng: np.random.Generator) -> SelectionResult:
    """Select the next token id from *logits* under *policy*.

    ``Deterministic`` never touches *rng*. Every other policy advances it
    by one draw.

    Args:
        logits: 1-D logit vector (vocab_size,).
        policy: Sampling policy chosen at session start.
        rng: Session-scoped random generator.

    Returns:
        SelectionResult with the selected token and diagnostics.

    Raises:
        SamplingError: If *logits* is empty or not 1-D, contains NaN, or no
            candidate keeps any probability mass after filtering.
        ConfigValidationError: If *policy* violates its invariants.
    """
    values = _as_logits(logits)

    if isinstance(policy, Deterministic):
        # np.argmax returns the first occurrence, i.e. the lowest index on ties.
        token_id = int(np.argmax(values))
        return SelectionResult(
            token_id=token_id,
            token_rank=0,
            token_prob=1.0,
            num_candidates=1,
            diagnostics={"policy": policy.name},
        )

    validate_policy(policy)

    # 1. Temperature scaling.
    scaled = _scale_logits(values, policy.temperature)

    # 2. Top-k filtering.
    effective_k = len(scaled)
    if isinstance(policy, (TopK, TopKThenTopP)):
        scaled, effective_k = _apply_top_k(scaled, policy.k)

    # 3. Softmax.
    probs = _stable_softmax(scaled)

    # 4. Top-p (nucleus) filtering.
    if isinstance(policy, (TopP, TopKThenTopP)):
        probs = _apply_top_p(probs, policy.p)

    # 5-7. CDF selection.
    u = float(rng.random())
    token_id, rank, prob, num_candidates = _cdf_select(probs, u)

    return SelectionResult(
        token_id=token_id,
        token_rank=rank,
        token_prob=prob,
        num_candidates=num_candidates,
        diagnostics={
            "policy": policy.name,
            "effective_top_k": effective_k,
            "u": u,
        },
    )


class Sampler:
    """Session-scoped sampler owning a seeded random generator.

    A new Sampler must be built for each generation session so that every
    session starting from the same seed replays the same draws.
    """

    def __init__(self, policy: SamplingPolicy, seed: int) -> None:
        validate_policy(policy)
        self._policy = policy
        self._seed = seed
        self._rng = np.random.default_rng(seed)

    @property
    def policy(self) -> SamplingPolicy:
        return self._policy

    @property
    def seed(self) -> int:
        return self._seed

    def sample(self, logits: Any) -> SelectionResult:
        """Sample one token, advancing the session generator."""
        return sample(logits, self._policy, self._rng)


def _as_logits(logits: Any) -> np.ndarray:
    """Convert *logits* to a 1-D float64 array, rejecting unusable input."""
    values = np.asarray(logits, dtype=np.float64)
    if values.ndim != 1:
        raise SamplingError(f"Expected a 1-D logits vector, got shape {values.shape}")
    if values.size == 0:
        raise SamplingError("Cannot sample from an empty logits vector")
    if np.isnan(values).any():
        raise SamplingError("Logits vector contains NaN")
    return values


def _scale_logits(logits: np.ndarray, temperature: float) -> np.ndarray:
    """Divide *logits* by *temperature* after shifting the finite maximum to 0.

    The shift leaves the softmax unchanged and keeps a tiny temperature from
    overflowing the best logit to +inf. Logits pushed below the float range
    become -inf and get no mass.
    """
    finite_mask = np.isfinite(logits)
    if not np.any(finite_mask):
        return logits
    with np.errstate(over="ignore"):
        shifted = logits - np.max(logits[finite_mask])
        scaled: np.ndarray = shifted / temperature
    return scaled


def _apply_top_k(logits: np.ndarray, k: int) -> tuple[np.ndarray, int]:
    """Keep only the top-k logits, setting the rest to -inf.

    Args:
        logits: 1-D logit array. Not modified.
        k: Number of top tokens to keep, clamped to the vocabulary size.

    Returns:
        Tuple of (filtered logits, effective k).
    """
    vocab_size = len(logits)
    if k >= vocab_size:
        return logits, vocab_size

    # argpartition selects exactly k indices even when logits tie at the cutoff.
    threshold_idx = vocab_size - k
    partitioned = np.argpartition(logits, threshold_idx)
    below_k = partitioned[:threshold_idx]

    result = logits.copy()
    result[below_k] = -np.inf
    return result, k


def _stable_softmax(logits: np.ndarray) -> np.ndarray:
    """Numerically stable softmax via shift-by-max.

    Args:
        logits: 1-D logit array (may contain -inf for masked tokens).

    Returns:
        Probability array of the same shape, summing to 1.0. If any logit
        is +inf, those tokens share all of the mass equally.

    Raises:
        SamplingError: If no logit is finite or +inf.
    """
    posinf_mask = np.isposinf(logits)
    if np.any(posinf_mask):
        uniform: np.ndarray = posinf_mask / np.sum(posinf_mask)
        return uniform

    finite_mask = np.isfinite(logits)
    if not np.any(finite_mask):
        raise SamplingError("No finite logits left to sample from")

    max_logit = np.max(logits[finite_mask])
    # Masked (-inf) entries get zero mass.
    shifted = np.where(finite_mask, logits - max_logit, -np.inf)
    exp_shifted = np.exp(shifted)
    total = np.sum(exp_shifted)
    if total == 0.0:
        raise SamplingError("Softmax produced zero total probability mass")

    result: np.ndarray = exp_shifted / total
    return result


def _apply_top_p(probs: np.ndarray, top_p: float) -> np.ndarray:
    """Nucleus filtering: keep the smallest set of tokens with mass >= top_p.

    The token that crosses the threshold is kept, so at least one token
    always survives. Survivors are renormalized.

    Args:
        probs: Probability array (vocab_size,).
        top_p: Cumulative probability threshold in (0, 1].

    Returns:
        Renormalized probability array.
    """
    if top_p >= 1.0:
        return probs

    sorted_indices = np.argsort(-probs, kind="stable")
    cumulative = np.cumsum(probs[sorted_indices])

    cutoff_mask = cumulative >= top_p
    cutoff_idx = int(np.argmax(cutoff_mask)) if np.any(cutoff_mask) else len(probs) - 1

    result = np.zeros_like(probs)
    surviving = sorted_indices[: cutoff_idx + 1]
    result[surviving] = probs[surviving]

    total = np.sum(result)
    if total == 0.0:
        raise SamplingError("No probability mass survived top-p filtering")
    out: np.ndarray = result / total
    return out


def _cdf_select(probs: np.ndarray, u: float) -> tuple[int, int, float, int]:
    """Select a token via CDF binary search.

    Sorts candidates by descending probability (ties by lowest index),
    builds a CDF and finds the first entry > *u*.

    Args:
        probs: Probability array (vocab_size,). Must sum to ~1.0.
        u: Uniform random value in [0, 1).

    Returns:
        Tuple of (vocabulary index, rank, probability, num_candidates).

    Raises:
        SamplingError: If no tokens have non-zero probability.
    """
    nonzero_mask = probs > 0
    num_candidates = int(np.sum(nonzero_mask))
    if num_candidates == 0:
        raise SamplingError("No tokens with non-zero probability for CDF selection")

    sorted_indices = np.argsort(-probs, kind="stable")
    candidate_indices = sorted_indices[:num_candidates]
    candidate_probs = probs[candidate_indices]

    cdf = np.cumsum(candidate_probs)
    rank = int(np.searchsorted(cdf, u, side="right"))
    # Rounding can leave cdf[-1] fractionally below u.
    rank = min(rank, num_candidates - 1)

    return int(candidate_indices[rank]), rank, float(candidate_probs[rank]), num_candidates
