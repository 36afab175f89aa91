"""Generation controller: the incremental decoding loop.

Orchestrates one generation session per prompt:
    resolve EOS -> encode prompt -> echo through the streaming decoder ->
    per step: model forward -> repeat penalty -> sample -> append -> decode.

The first step hands the model the whole prompt; every later step hands it
only the newest token together with its position, relying on the model's
incremental cache for everything before it.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from genloop.config import GenLoopConfig, validate_config
from genloop.exceptions import (
    GenLoopError,
    ModelForwardError,
    TokenizerError,
    VocabularyError,
)
from genloop.logging.logger import GenerationLogger
from genloop.logging.types import StepRecord
from genloop.model.base import to_logits_vector
from genloop.penalty import apply_repeat_penalty, history_tail
from genloop.sampling.policy import build_policy
from genloop.sampling.sampler import Sampler
from genloop.streaming import StreamingDecoder

if TYPE_CHECKING:
    from genloop.model.base import ModelForward
    from genloop.sampling.policy import SamplingPolicy
    from genloop.tokenizer import Tokenizer

logger = logging.getLogger("genloop")


class GenerationState(enum.Enum):
    """Lifecycle of the controller within one session."""

    IDLE = "idle"
    PREFILL = "prefill"
    DECODE = "decode"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class GenerationReport:
    """Outcome of one generation session.

    Attributes:
        prompt_tokens: Number of tokens the prompt encoded to.
        generated_tokens: Number of sampled tokens, excluding the EOS token.
        elapsed_s: Wall-clock time of the decode loop (seconds).
        stop_reason: ``"eos"`` or ``"length"``.
        text: Everything emitted, prompt echo included.
    """

    prompt_tokens: int
    generated_tokens: int
    elapsed_s: float
    stop_reason: str
    text: str

    @property
    def tokens_per_s(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.generated_tokens / self.elapsed_s

    def summary(self) -> str:
        """One-line throughput summary."""
        return f"{self.generated_tokens} tokens generated ({self.tokens_per_s:.2f} token/s)"


class _Session:
    """Per-prompt state, discarded once the session terminates.

    Attributes:
        history: Prompt tokens followed by sampled tokens.
        sampler: Sampler with a generator freshly seeded for this session.
        generated_tokens: Count of emitted (non-EOS) sampled tokens.
        fragments: Text fragments emitted so far.
    """

    __slots__ = ("fragments", "generated_tokens", "history", "sampler")

    def __init__(self, history: list[int], sampler: Sampler) -> None:
        self.history = history
        self.sampler = sampler
        self.generated_tokens = 0
        self.fragments: list[str] = []


class TextGeneration:
    """Drives generation sessions against one model and tokenizer.

    The configuration is validated and the sampling policy chosen once, at
    construction, so configuration errors surface before any generation
    work. Sessions run strictly one after another.

    Args:
        model: Model backend; its cache is reset at the start of every session.
        tokenizer: Tokenizer shared by prompt encoding and streaming decode.
        config: Immutable generation settings.
    """

    def __init__(
        self,
        model: ModelForward,
        tokenizer: Tokenizer,
        config: GenLoopConfig,
    ) -> None:
        validate_config(config)
        self._policy = build_policy(config.temperature, config.top_k, config.top_p)
        self._model = model
        self._tokenizer = tokenizer
        self._config = config
        self._decoder = StreamingDecoder(tokenizer)
        self._logger = GenerationLogger(config)
        self._state = GenerationState.IDLE
        self._history: list[int] = []

        logger.info(
            "TextGeneration initialized: model=%s, policy=%s, seed=%d, "
            "repeat_penalty=%.3f, repeat_last_n=%d",
            model.name,
            self._policy,
            config.seed,
            config.repeat_penalty,
            config.repeat_last_n,
        )

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def policy(self) -> SamplingPolicy:
        return self._policy

    @property
    def config(self) -> GenLoopConfig:
        return self._config

    @property
    def history(self) -> list[int]:
        """Token history of the most recent session."""
        return list(self._history)

    @property
    def sampling_logger(self) -> GenerationLogger:
        """The per-step diagnostic logger."""
        return self._logger

    def run(
        self,
        prompt: str,
        emit: Callable[[str], Any] | None = None,
        sample_len: int | None = None,
    ) -> GenerationReport:
        """Run one session from *prompt* to termination.

        Args:
            prompt: User prompt text.
            emit: Called with every text fragment as soon as it is printable.
            sample_len: Maximum number of decode steps; defaults to ``config.sample_len``.

        Returns:
            GenerationReport for the session.

        Raises:
            TokenizerError: If the prompt cannot be encoded or decoded.
            VocabularyError: If the EOS token is missing from the vocabulary.
            ModelForwardError: If a model forward call fails.
            SamplingError: If a step's logits cannot be sampled.
        """
        max_steps = self._config.sample_len if sample_len is None else sample_len
        try:
            return self._run(prompt, emit, max_steps)
        finally:
            self._state = GenerationState.TERMINATED

    def _run(
        self,
        prompt: str,
        emit: Callable[[str], Any] | None,
        max_steps: int,
    ) -> GenerationReport:
        # --- Prefill ---
        self._state = GenerationState.PREFILL
        self._decoder.clear()
        eos_token = self._decoder.get_token(self._config.eos_token)
        if eos_token is None:
            raise VocabularyError(f"cannot find the {self._config.eos_token} token")
        self._reset_model()

        tokens = self._encode(prompt)
        prompt_len = len(tokens)
        self._logger.begin_session(prompt_len)
        session = _Session(tokens, Sampler(self._policy, self._config.seed))
        self._history = session.history

        for token in tokens:
            self._emit(session, self._decode_next(token), emit)

        # --- Decode ---
        self._state = GenerationState.DECODE
        history = session.history
        stop_reason = "length"
        t_start_ns = time.perf_counter_ns()

        for index in range(max_steps):
            t_step_ns = time.perf_counter_ns()

            context_size = len(history) if index == 0 else 1
            start_pos = len(history) - context_size
            context = history[start_pos:]

            logits = self._forward(context, start_pos)
            t_forward_ns = time.perf_counter_ns()

            logits = apply_repeat_penalty(
                logits,
                history_tail(history, self._config.repeat_last_n),
                self._config.repeat_penalty,
            )
            selection = session.sampler.sample(logits)
            next_token = selection.token_id
            history.append(next_token)
            is_eos = next_token == eos_token

            self._logger.log_step(
                StepRecord(
                    step=index,
                    position=start_pos,
                    context_len=context_size,
                    token_id=next_token,
                    token_rank=selection.token_rank,
                    token_prob=selection.token_prob,
                    num_candidates=selection.num_candidates,
                    policy=self._policy.name,
                    forward_ms=(t_forward_ns - t_step_ns) / 1_000_000.0,
                    step_ms=(time.perf_counter_ns() - t_step_ns) / 1_000_000.0,
                    is_eos=is_eos,
                )
            )

            if is_eos:
                stop_reason = "eos"
                break

            session.generated_tokens += 1
            self._emit(session, self._decode_next(next_token), emit)

        elapsed_s = (time.perf_counter_ns() - t_start_ns) / 1_000_000_000.0

        # --- Terminated ---
        self._emit(session, self._decode_rest(), emit)

        report = GenerationReport(
            prompt_tokens=prompt_len,
            generated_tokens=session.generated_tokens,
            elapsed_s=elapsed_s,
            stop_reason=stop_reason,
            text="".join(session.fragments),
        )
        self._logger.end_session(report)
        return report

    @staticmethod
    def _emit(
        session: _Session,
        fragment: str | None,
        emit: Callable[[str], Any] | None,
    ) -> None:
        if not fragment:
            return
        session.fragments.append(fragment)
        if emit is not None:
            emit(fragment)

    def _encode(self, prompt: str) -> list[int]:
        try:
            tokens = list(self._tokenizer.encode(prompt, add_special_tokens=True))
        except GenLoopError:
            raise
        except Exception as exc:
            raise TokenizerError(f"Failed to encode prompt: {exc}") from exc
        if not tokens:
            raise TokenizerError("Prompt encoded to zero tokens")
        return tokens

    def _decode_next(self, token: int) -> str | None:
        try:
            return self._decoder.next_token(token)
        except GenLoopError:
            raise
        except Exception as exc:
            raise TokenizerError(f"Failed to decode token {token}: {exc}") from exc

    def _decode_rest(self) -> str | None:
        try:
            return self._decoder.decode_rest()
        except GenLoopError:
            raise
        except Exception as exc:
            raise TokenizerError(f"Failed to flush decoder: {exc}") from exc

    def _forward(self, context: Sequence[int], start_pos: int) -> Any:
        try:
            output = self._model.forward(context, start_pos)
        except GenLoopError:
            raise
        except Exception as exc:
            raise ModelForwardError(
                f"Model forward failed at position {start_pos}: {exc}"
            ) from exc
        return to_logits_vector(output)

    def _reset_model(self) -> None:
        try:
            self._model.reset()
        except GenLoopError:
            raise
        except Exception as exc:
            raise ModelForwardError(f"Model cache reset failed: {exc}") from exc
