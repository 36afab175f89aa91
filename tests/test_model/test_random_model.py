"""Tests for RandomLogitsModel and logits normalisation."""

from __future__ import annotations

import numpy as np
import pytest

from genloop.config import GenLoopConfig
from genloop.exceptions import ModelForwardError
from genloop.model.base import to_logits_vector
from genloop.model.mock import RandomLogitsModel


def _model(**overrides: object) -> RandomLogitsModel:
    values: dict[str, object] = {"_env_file": None, "vocab_size": 16, "seed": 5}
    values.update(overrides)
    return RandomLogitsModel(GenLoopConfig(**values))  # type: ignore[arg-type]


class TestRandomLogitsModel:
    """Seeded logits with cache-style position checks."""

    def test_shape(self) -> None:
        model = _model()
        assert model.name == "random"
        assert model.forward([1, 2, 3], 0).shape == (16,)
        assert model.position == 3

    def test_incremental_positions(self) -> None:
        model = _model()
        model.forward([1, 2], 0)
        model.forward([3], 2)
        model.forward([4], 3)
        assert model.position == 4

    def test_position_mismatch_raises(self) -> None:
        model = _model()
        model.forward([1, 2], 0)
        with pytest.raises(ModelForwardError, match="Cache holds 2"):
            model.forward([3], 5)

    def test_empty_context_raises(self) -> None:
        with pytest.raises(ModelForwardError):
            _model().forward([], 0)

    def test_reset_replays_sequence(self) -> None:
        model = _model()
        first = [model.forward([1], 0), model.forward([2], 1)]
        model.reset()
        assert model.position == 0
        second = [model.forward([1], 0), model.forward([2], 1)]
        for a, b in zip(first, second):
            np.testing.assert_array_equal(a, b)

    def test_different_seeds_differ(self) -> None:
        a = _model(seed=1).forward([1], 0)
        b = _model(seed=2).forward([1], 0)
        assert not np.array_equal(a, b)

    def test_invalid_vocab_size(self) -> None:
        with pytest.raises(ModelForwardError, match="vocab_size"):
            _model(vocab_size=0)


class TestToLogitsVector:
    """Reduction of backend outputs to one logits row."""

    def test_one_dimensional_passthrough(self) -> None:
        out = to_logits_vector(np.array([1.0, 2.0], dtype=np.float32))
        assert out.dtype == np.float64
        np.testing.assert_array_equal(out, [1.0, 2.0])

    def test_last_position_of_matrix(self) -> None:
        out = to_logits_vector(np.array([[1.0, 2.0], [3.0, 4.0]]))
        np.testing.assert_array_equal(out, [3.0, 4.0])

    def test_batch_of_one(self) -> None:
        out = to_logits_vector(np.arange(6, dtype=np.float64).reshape(1, 3, 2))
        np.testing.assert_array_equal(out, [4.0, 5.0])

    def test_list_input(self) -> None:
        np.testing.assert_array_equal(to_logits_vector([0.5, 1.5]), [0.5, 1.5])

    def test_tensor_like_input(self) -> None:
        class _Tensor:
            def detach(self) -> _Tensor:
                return self

            def cpu(self) -> _Tensor:
                return self

            def numpy(self) -> np.ndarray:
                return np.array([[0.0, 1.0, 2.0]])

        np.testing.assert_array_equal(to_logits_vector(_Tensor()), [0.0, 1.0, 2.0])

    def test_zero_positions_raises(self) -> None:
        with pytest.raises(ModelForwardError, match="zero positions"):
            to_logits_vector(np.zeros((0, 4)))

    def test_batch_larger_than_one_raises(self) -> None:
        with pytest.raises(ModelForwardError, match="Unsupported"):
            to_logits_vector(np.zeros((2, 3, 4)))
