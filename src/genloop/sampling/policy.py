"""Sampling policies.

A policy is chosen once at session start and never changes during the
session. The variants form a closed set; the sampler dispatches on the
variant type and nothing else needs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from genloop.exceptions import ConfigValidationError


@dataclass(frozen=True, slots=True)
class Deterministic:
    """Always pick the highest logit (ties go to the lowest index)."""

    name = "argmax"


@dataclass(frozen=True, slots=True)
class Temperature:
    """Sample from the full softmax(logits / temperature) distribution."""

    temperature: float
    name = "all"


@dataclass(frozen=True, slots=True)
class TopK:
    """Sample among the *k* highest logits only."""

    k: int
    temperature: float
    name = "top_k"


@dataclass(frozen=True, slots=True)
class TopP:
    """Nucleus sampling: smallest prefix of tokens with mass >= *p*."""

    p: float
    temperature: float
    name = "top_p"


@dataclass(frozen=True, slots=True)
class TopKThenTopP:
    """Top-k restriction first, then nucleus filtering within it."""

    k: int
    p: float
    temperature: float
    name = "top_k_then_top_p"


SamplingPolicy = Union[Deterministic, Temperature, TopK, TopP, TopKThenTopP]


def validate_policy(policy: SamplingPolicy) -> None:
    """Check the invariants of a policy.

    Args:
        policy: Policy to check.

    Raises:
        ConfigValidationError: If ``temperature <= 0`` for a stochastic
            variant, ``k < 1`` or ``p`` outside ``(0, 1]``.
    """
    if isinstance(policy, Deterministic):
        return
    if not isinstance(policy, (Temperature, TopK, TopP, TopKThenTopP)):
        raise ConfigValidationError(f"Unknown sampling policy: {policy!r}")
    if not policy.temperature > 0:
        raise ConfigValidationError(
            f"{policy.name} sampling requires temperature > 0, got {policy.temperature}"
        )
    if isinstance(policy, (TopK, TopKThenTopP)) and policy.k < 1:
        raise ConfigValidationError(f"top_k must be >= 1, got {policy.k}")
    if isinstance(policy, (TopP, TopKThenTopP)) and not 0.0 < policy.p <= 1.0:
        raise ConfigValidationError(f"top_p must be in (0, 1], got {policy.p}")


def build_policy(
    temperature: float | None,
    top_k: int | None = None,
    top_p: float | None = None,
) -> SamplingPolicy:
    """Choose the sampling policy from command-line style parameters.

    A missing or non-positive temperature selects argmax regardless of the
    cutoffs. Otherwise the variant depends on which cutoffs are given.

    Args:
        temperature: Sampling temperature, or ``None``.
        top_k: Top-k cutoff, or ``None``.
        top_p: Nucleus cutoff, or ``None``.

    Returns:
        A validated SamplingPolicy.

    Raises:
        ConfigValidationError: If a given cutoff is out of range.
    """
    if temperature is None or temperature <= 0:
        return Deterministic()

    policy: SamplingPolicy
    if top_k is None and top_p is None:
        policy = Temperature(temperature)
    elif top_p is None:
        policy = TopK(top_k, temperature)  # type: ignore[arg-type]
    elif top_k is None:
        policy = TopP(top_p, temperature)
    else:
        policy = TopKThenTopP(top_k, top_p, temperature)

    validate_policy(policy)
    return policy
