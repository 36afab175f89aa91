"""Abstract base class for model-forward backends.

The generation loop treats the model as an opaque function from a context
slice and its position offset to next-token logits. Backends keep their own
incremental (key/value) cache keyed by position: after the first step of a
session they are handed only the newest token.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import numpy as np

from genloop.exceptions import ModelForwardError


class ModelForward(ABC):
    """Abstract base for all model backends.

    Calls within one session must never interleave with calls of another
    session on the same cache; :meth:`reset` starts a fresh cache.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend identifier (e.g., ``'random'``)."""

    @property
    @abstractmethod
    def vocab_size(self) -> int:
        """Length of the logits vector returned by :meth:`forward`."""

    @abstractmethod
    def forward(self, context: Sequence[int], position_offset: int) -> Any:
        """Run one step and return logits for the next token.

        Args:
            context: Token ids not yet seen by the cache.
            position_offset: Number of tokens already consumed by the cache.

        Returns:
            Logits for the last position: a numpy array or a tensor exposing
            ``detach().cpu().numpy()``. Shapes ``(V,)``, ``(T, V)`` and
            ``(1, T, V)`` are accepted.

        Raises:
            ModelForwardError: On shape or resource errors.
        """

    @abstractmethod
    def reset(self) -> None:
        """Drop the incremental cache before a new session."""

    def close(self) -> None:
        """Release resources. The default implementation does nothing."""


def to_logits_vector(output: Any) -> np.ndarray:
    """Convert a backend's forward output to a 1-D float64 logits vector.

    Multi-position outputs are reduced to their last position.

    Args:
        output: A numpy array or tensor.

    Returns:
        1-D numpy array (vocab_size,).

    Raises:
        ModelForwardError: If the output has an unsupported shape.
    """
    if not isinstance(output, np.ndarray):
        # .cpu() moves GPU tensors (CUDA/MPS) to host memory; no-op on CPU.
        try:
            output = output.detach().cpu().numpy()
        except AttributeError:
            output = np.asarray(output)

    values = np.asarray(output, dtype=np.float64)
    if values.ndim == 3 and values.shape[0] == 1:
        values = values[0]
    if values.ndim == 2:
        if values.shape[0] == 0:
            raise ModelForwardError("Model returned logits for zero positions")
        values = values[-1]
    if values.ndim != 1:
        raise ModelForwardError(f"Unsupported logits shape {np.shape(output)}")
    return values
