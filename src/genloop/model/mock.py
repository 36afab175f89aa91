"""Seeded random-logits backend for smoke runs and tests.

Produces Gaussian logits without any weights, while enforcing the same
position bookkeeping a real key/value cache would.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from genloop.exceptions import ModelForwardError
from genloop.model.base import ModelForward
from genloop.model.registry import register_model

if TYPE_CHECKING:
    from genloop.config import GenLoopConfig


@register_model("random")
class RandomLogitsModel(ModelForward):
    """Returns ``N(0, 1)`` logits over ``config.vocab_size`` tokens.

    The generator is reseeded from ``config.seed`` on :meth:`reset`, so two
    sessions over the same prompt see the same logits sequence.

    Args:
        config: Provides ``vocab_size`` and ``seed``.
    """

    def __init__(self, config: GenLoopConfig) -> None:
        if config.vocab_size < 1:
            raise ModelForwardError(f"vocab_size must be >= 1, got {config.vocab_size}")
        self._vocab_size = config.vocab_size
        self._seed = config.seed
        self._rng = np.random.default_rng(self._seed)
        self._position = 0

    @property
    def name(self) -> str:
        """Return ``'random'``."""
        return "random"

    @property
    def vocab_size(self) -> int:
        return self._vocab_size

    @property
    def position(self) -> int:
        """Number of tokens consumed since the last reset."""
        return self._position

    def forward(self, context: Sequence[int], position_offset: int) -> np.ndarray:
        if not context:
            raise ModelForwardError("forward() needs at least one context token")
        if position_offset != self._position:
            raise ModelForwardError(
                f"Cache holds {self._position} positions but step starts at {position_offset}"
            )
        self._position += len(context)
        return self._rng.standard_normal(self._vocab_size)

    def reset(self) -> None:
        self._rng = np.random.default_rng(self._seed)
        self._position = 0
