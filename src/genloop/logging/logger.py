"""Per-step and per-session diagnostics for the generation loop.

Everything goes through the ``"genloop"`` logger; the CLI decides where it
ends up. ``log_level`` only governs per-step lines. The end-of-session
throughput line is always logged at INFO.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from genloop.config import GenLoopConfig
    from genloop.generation import GenerationReport
    from genloop.logging.types import StepRecord

logger = logging.getLogger("genloop")


def _format_step(record: StepRecord) -> str:
    flag = " [EOS]" if record.is_eos else ""
    return (
        f"step={record.step} pos={record.position} ctx={record.context_len} "
        f"token={record.token_id} rank={record.token_rank} prob={record.token_prob:.4f} "
        f"policy={record.policy}{flag} "
        f"forward={record.forward_ms:.2f}ms total={record.step_ms:.2f}ms"
    )


class GenerationLogger:
    """Step logger bracketed by :meth:`begin_session` / :meth:`end_session`.

    Levels for per-step output:
        ``"none"``: nothing.
        ``"summary"``: one line per step (:func:`_format_step`).
        ``"full"``: the record as JSON, tagged with its session number.

    With ``diagnostic_mode`` every record is kept, paired with the number
    of the session that produced it, for :meth:`get_summary_stats`.
    """

    def __init__(self, config: GenLoopConfig) -> None:
        self._log_level = config.log_level
        self._diagnostic_mode = config.diagnostic_mode
        self._session = 0
        self._records: list[tuple[int, StepRecord]] = []

    @property
    def session(self) -> int:
        """Number of the current (or last) session; 0 before the first."""
        return self._session

    def begin_session(self, prompt_tokens: int) -> None:
        self._session += 1
        logger.debug("session %d: prompt of %d tokens", self._session, prompt_tokens)

    def log_step(self, record: StepRecord) -> None:
        """Record one decode step of the current session."""
        if self._diagnostic_mode:
            self._records.append((self._session, record))

        if self._log_level == "none" or not logger.isEnabledFor(logging.INFO):
            return
        if self._log_level == "summary":
            logger.info("%s", _format_step(record))
        elif self._log_level == "full":
            payload = {"session": self._session, **asdict(record)}
            logger.info("step_record: %s", json.dumps(payload, default=str))

    def end_session(self, report: GenerationReport) -> None:
        logger.info("%s, stop=%s", report.summary(), report.stop_reason)

    def get_diagnostic_data(self, session: int | None = None) -> list[StepRecord]:
        """Stored records, optionally only those of *session*."""
        return [r for s, r in self._records if session is None or s == session]

    def clear(self) -> None:
        """Forget stored records; session numbering continues."""
        self._records.clear()

    def get_summary_stats(self) -> dict[str, Any]:
        """Aggregate the stored records; empty dict when there are none."""
        if not self._records:
            return {}

        records = [r for _, r in self._records]
        step_ms = np.array([r.step_ms for r in records])
        forward_ms = np.array([r.forward_ms for r in records])
        total_step_ms = float(step_ms.sum())
        return {
            "sessions": len({s for s, _ in self._records}),
            "total_steps": len(records),
            "eos_count": sum(r.is_eos for r in records),
            "mean_rank": float(np.mean([r.token_rank for r in records])),
            "mean_prob": float(np.mean([r.token_prob for r in records])),
            "mean_step_ms": float(step_ms.mean()),
            "p95_step_ms": float(np.percentile(step_ms, 95)),
            "max_step_ms": float(step_ms.max()),
            "forward_share": float(forward_ms.sum()) / total_step_ms if total_step_ms > 0 else 0.0,
        }
