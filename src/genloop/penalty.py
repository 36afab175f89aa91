"""Repeat-penalty transform.

Scales down the logits of tokens seen in the recent history so the sampler
is less likely to pick them again. Positive logits are divided by the
penalty and negative logits multiplied by it, which lowers the score in
both cases.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from genloop.exceptions import SamplingError


def history_tail(history: Sequence[int], repeat_last_n: int) -> Sequence[int]:
    """Return the last *repeat_last_n* tokens of *history*.

    Args:
        history: Token history of the session.
        repeat_last_n: Lookback window. ``0`` yields an empty tail.

    Returns:
        The tail slice; shorter than *repeat_last_n* if history is.
    """
    if repeat_last_n <= 0:
        return history[:0]
    start = max(len(history) - repeat_last_n, 0)
    return history[start:]


def apply_repeat_penalty(logits: Any, tail: Sequence[int], penalty: float) -> Any:
    """Penalize every distinct token id in *tail*.

    ``penalty == 1.0`` returns *logits* itself without copying. Otherwise the
    result is a new array and *logits* is left untouched. A token occurring
    several times in *tail* is penalized once.

    Args:
        logits: 1-D logit vector (vocab_size,).
        tail: Recent token ids (see :func:`history_tail`).
        penalty: Penalty factor; ``1.0`` disables the transform.

    Returns:
        The penalized logits.

    Raises:
        SamplingError: If a token id in *tail* is outside the vocabulary.
    """
    if penalty == 1.0:
        return logits

    result = np.array(logits, dtype=np.float64, copy=True)
    if len(tail) == 0:
        return result

    ids = np.unique(np.asarray(tail, dtype=np.int64))
    if ids[0] < 0 or ids[-1] >= result.shape[-1]:
        raise SamplingError(
            f"History token ids must be in [0, {result.shape[-1]}), "
            f"got range [{ids[0]}, {ids[-1]}]"
        )

    selected = result[ids]
    result[ids] = np.where(selected >= 0, selected / penalty, selected * penalty)
    return result
