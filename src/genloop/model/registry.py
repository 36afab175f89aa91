"""Model backend lookup and construction.

Backends register under a name with ``@register_model``. A name that is not
registered in-process is looked up once in the ``genloop.models``
entry-point group, so backends shipped by other distributions (for example
a real transformer wrapper) plug in without code changes here.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import TYPE_CHECKING, ClassVar

from genloop.exceptions import ConfigValidationError, GenLoopError, ModelForwardError

if TYPE_CHECKING:
    from collections.abc import Callable

    from genloop.config import GenLoopConfig
    from genloop.model.base import ModelForward

logger = logging.getLogger("genloop")

_ENTRY_POINT_GROUP = "genloop.models"


class ModelRegistry:
    """Maps ``config.model`` names to backend classes.

    In-process registrations win over entry points with the same name.
    Every backend class is constructed with the active ``GenLoopConfig``.
    """

    _backends: ClassVar[dict[str, type[ModelForward]]] = {}
    _plugins_scanned: ClassVar[bool] = False

    @classmethod
    def register(cls, name: str) -> Callable[[type[ModelForward]], type[ModelForward]]:
        """Class decorator registering a backend under *name*."""

        def decorator(model_cls: type[ModelForward]) -> type[ModelForward]:
            previous = cls._backends.get(name)
            if previous is not None and previous is not model_cls:
                logger.warning(
                    "Model backend %r: %s replaces %s",
                    name,
                    model_cls.__qualname__,
                    previous.__qualname__,
                )
            cls._backends[name] = model_cls
            return model_cls

        return decorator

    @classmethod
    def build(cls, config: GenLoopConfig) -> ModelForward:
        """Construct the backend named by ``config.model``.

        Args:
            config: Active configuration, handed to the backend constructor.

        Returns:
            A ready backend with a non-empty vocabulary.

        Raises:
            ConfigValidationError: If no backend is known under that name.
            ModelForwardError: If the backend fails to start or reports an
                empty vocabulary.
        """
        model_cls = cls._lookup(config.model)
        try:
            model = model_cls(config)  # type: ignore[call-arg]
        except GenLoopError:
            raise
        except Exception as exc:
            raise ModelForwardError(
                f"Failed to start model backend {config.model!r}: {exc}"
            ) from exc

        if model.vocab_size < 1:
            model.close()
            raise ModelForwardError(
                f"Model backend {config.model!r} reports vocab_size={model.vocab_size}"
            )

        logger.info("Model backend %r ready (vocab_size=%d)", model.name, model.vocab_size)
        return model

    @classmethod
    def _lookup(cls, name: str) -> type[ModelForward]:
        model_cls = cls._backends.get(name)
        if model_cls is None and not cls._plugins_scanned:
            cls._scan_plugins()
            model_cls = cls._backends.get(name)
        if model_cls is None:
            known = ", ".join(sorted(cls._backends)) or "(none)"
            raise ConfigValidationError(f"Unknown model backend: {name!r}. Available: {known}")
        return model_cls

    @classmethod
    def _scan_plugins(cls) -> None:
        """Register entry-point backends; a plugin that fails to import is skipped."""
        cls._plugins_scanned = True
        for ep in importlib.metadata.entry_points(group=_ENTRY_POINT_GROUP):
            if ep.name in cls._backends:
                continue
            try:
                cls._backends[ep.name] = ep.load()
            except Exception:  # one broken plugin must not hide the others
                logger.warning("Skipping model backend plugin %r", ep.name, exc_info=True)


register_model = ModelRegistry.register
