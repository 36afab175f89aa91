"""Model backend subsystem for genloop.

Re-exports the ABC, registry, and the built-in backend::

    from genloop.model import ModelForward, ModelRegistry
    from genloop.model import RandomLogitsModel
"""

from genloop.model.base import ModelForward, to_logits_vector
from genloop.model.mock import RandomLogitsModel
from genloop.model.registry import ModelRegistry, register_model

__all__ = [
    "ModelForward",
    "ModelRegistry",
    "RandomLogitsModel",
    "register_model",
    "to_logits_vector",
]
