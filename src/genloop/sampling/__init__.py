"""Sampling subsystem for genloop.

Closed set of sampling policies and a seeded sampler implementing argmax,
temperature, top-k, top-p and top-k-then-top-p selection.
"""

from genloop.sampling.policy import (
    Deterministic,
    SamplingPolicy,
    Temperature,
    TopK,
    TopKThenTopP,
    TopP,
    build_policy,
    validate_policy,
)
from genloop.sampling.sampler import Sampler, sample
from genloop.sampling.types import SelectionResult

__all__ = [
    "Deterministic",
    "Sampler",
    "SamplingPolicy",
    "SelectionResult",
    "Temperature",
    "TopK",
    "TopKThenTopP",
    "TopP",
    "build_policy",
    "sample",
    "validate_policy",
]
