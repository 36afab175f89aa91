"""Shared pytest fixtures for genloop tests.

Provides a byte-level fake tokenizer (so multi-byte characters really do
span several tokens), a scripted model backend, and config objects that
ignore any local .env file.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import pytest

from genloop.config import GenLoopConfig
from genloop.exceptions import TokenizerError
from genloop.model.base import ModelForward
from genloop.tokenizer import Tokenizer

LogitsFn = Callable[[int, list[int], int], np.ndarray]


class ByteTokenizer(Tokenizer):
    """One token per UTF-8 byte, plus ``<s>`` (id 0) and ``</s>`` (id 1).

    Decoding skips both special tokens and replaces incomplete UTF-8
    sequences with U+FFFD, like byte-fallback tokenizers do.
    """

    BOS_ID = 0
    EOS_ID = 1
    VOCAB_SIZE = 258

    def __init__(self, with_eos: bool = True) -> None:
        self._with_eos = with_eos
        self.decode_calls = 0

    @staticmethod
    def byte_id(value: int) -> int:
        return 2 + value

    def ids_for(self, text: str) -> list[int]:
        """Token ids of *text* without special tokens."""
        return [self.byte_id(b) for b in text.encode("utf-8")]

    def encode(self, text: str, add_special_tokens: bool = True) -> list[int]:
        ids = self.ids_for(text)
        return [self.BOS_ID, *ids] if add_special_tokens else ids

    def decode(self, ids: Sequence[int]) -> str:
        self.decode_calls += 1
        raw = bytes(i - 2 for i in ids if i >= 2)
        return raw.decode("utf-8", errors="replace")

    def token_id_for(self, text: str) -> int | None:
        if text == "<s>":
            return self.BOS_ID
        if text == "</s>" and self._with_eos:
            return self.EOS_ID
        return None


class FailingTokenizer(ByteTokenizer):
    """Raises on encode."""

    def encode(self, text: str, add_special_tokens: bool = True) -> list[int]:
        raise TokenizerError(f"cannot encode {text!r}")


class ScriptedModel(ModelForward):
    """Model backend whose logits come from a callback.

    Records every forward call as ``(context, position_offset)`` and checks
    the position bookkeeping the way a key/value cache would.

    Args:
        logits_fn: ``(step, context, position_offset) -> logits``. The step
            counter restarts at 0 on every reset.
        vocab_size: Length of the logits vector.
        fail_at_step: If set, forward raises RuntimeError at that step.
    """

    def __init__(
        self,
        logits_fn: LogitsFn,
        vocab_size: int = ByteTokenizer.VOCAB_SIZE,
        fail_at_step: int | None = None,
    ) -> None:
        self._logits_fn = logits_fn
        self._vocab_size = vocab_size
        self._fail_at_step = fail_at_step
        self.calls: list[tuple[list[int], int]] = []
        self.reset_count = 0
        self.closed = False
        self._step = 0
        self._position = 0

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def vocab_size(self) -> int:
        return self._vocab_size

    def forward(self, context: Sequence[int], position_offset: int) -> Any:
        if self._fail_at_step is not None and self._step == self._fail_at_step:
            raise RuntimeError("device out of memory")
        if position_offset != self._position:
            raise AssertionError(
                f"cache holds {self._position} positions, got offset {position_offset}"
            )
        self.calls.append((list(context), position_offset))
        logits = self._logits_fn(self._step, list(context), position_offset)
        self._step += 1
        self._position += len(context)
        return logits

    def reset(self) -> None:
        self.reset_count += 1
        self._step = 0
        self._position = 0

    def close(self) -> None:
        self.closed = True


def peaked_logits(token_id: int, vocab_size: int = ByteTokenizer.VOCAB_SIZE) -> np.ndarray:
    """Logits with *token_id* far above every other token."""
    logits = np.zeros(vocab_size, dtype=np.float64)
    logits[token_id] = 10.0
    return logits


@pytest.fixture()
def byte_tokenizer() -> ByteTokenizer:
    """Byte-level tokenizer with an end-of-sequence token."""
    return ByteTokenizer()


@pytest.fixture()
def tokenizer_without_eos() -> ByteTokenizer:
    """Byte-level tokenizer whose vocabulary lacks ``</s>``."""
    return ByteTokenizer(with_eos=False)


@pytest.fixture()
def failing_tokenizer() -> FailingTokenizer:
    return FailingTokenizer()


@pytest.fixture()
def scripted_model() -> Callable[..., ScriptedModel]:
    """Factory building a ScriptedModel from a logits callback."""
    return ScriptedModel


@pytest.fixture()
def peaked() -> Callable[..., np.ndarray]:
    """Factory for logits peaked at one token id."""
    return peaked_logits


@pytest.fixture()
def default_config() -> GenLoopConfig:
    """Return a GenLoopConfig with all default values, ignoring .env."""
    return GenLoopConfig(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture()
def greedy_config() -> GenLoopConfig:
    """Argmax sampling, no repeat penalty, short step limit, no logging."""
    return GenLoopConfig(  # type: ignore[call-arg]
        _env_file=None,
        temperature=None,
        repeat_penalty=1.0,
        sample_len=16,
        log_level="none",
    )


@pytest.fixture()
def sample_logits_peaked() -> np.ndarray:
    """Token 0 has logit 10.0; the other 99 tokens have 0.0."""
    logits = np.zeros(100, dtype=np.float64)
    logits[0] = 10.0
    return logits


@pytest.fixture()
def sample_logits_large_vocab() -> np.ndarray:
    """Random logits over a 32000-token vocabulary (fixed seed)."""
    rng = np.random.default_rng(seed=12345)
    return rng.standard_normal(32000).astype(np.float64)
