"""Tokenizer interface and the Hugging Face ``tokenizers`` adapter.

The generation loop only needs three operations from a tokenizer: encode a
prompt, decode a token sequence, and look up the id of a vocabulary string
(used to resolve the end-of-sequence sentinel).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

from genloop.exceptions import TokenizerError

if TYPE_CHECKING:
    import tokenizers


class Tokenizer(ABC):
    """Abstract tokenizer used by the streaming decoder and the controller."""

    @abstractmethod
    def encode(self, text: str, add_special_tokens: bool = True) -> list[int]:
        """Encode *text* into token ids.

        Raises:
            TokenizerError: If the input cannot be encoded.
        """

    @abstractmethod
    def decode(self, ids: Sequence[int]) -> str:
        """Decode token ids into text.

        Incomplete multi-byte sequences at the end of *ids* must decode to
        the U+FFFD replacement character rather than raise.

        Raises:
            TokenizerError: If the ids cannot be decoded.
        """

    @abstractmethod
    def token_id_for(self, text: str) -> int | None:
        """Return the id of vocabulary entry *text*, or ``None`` if absent."""


class HFTokenizer(Tokenizer):
    """Adapter over a ``tokenizers.Tokenizer``.

    Args:
        tokenizer: A loaded Hugging Face tokenizer.
    """

    def __init__(self, tokenizer: tokenizers.Tokenizer) -> None:
        self._tokenizer = tokenizer

    @classmethod
    def from_file(cls, path: str) -> HFTokenizer:
        """Load a ``tokenizer.json`` file.

        Raises:
            TokenizerError: If the file is missing or malformed.
        """
        import tokenizers

        try:
            return cls(tokenizers.Tokenizer.from_file(path))
        except Exception as exc:  # tokenizers raises bare Exception subclasses
            raise TokenizerError(f"Failed to load tokenizer from {path!r}: {exc}") from exc

    @property
    def vocab_size(self) -> int:
        return int(self._tokenizer.get_vocab_size())

    def encode(self, text: str, add_special_tokens: bool = True) -> list[int]:
        try:
            encoding = self._tokenizer.encode(text, add_special_tokens=add_special_tokens)
        except Exception as exc:
            raise TokenizerError(f"Failed to encode prompt: {exc}") from exc
        return list(encoding.ids)

    def decode(self, ids: Sequence[int]) -> str:
        try:
            return str(self._tokenizer.decode(list(ids), skip_special_tokens=True))
        except Exception as exc:
            raise TokenizerError(f"Failed to decode {len(ids)} tokens: {exc}") from exc

    def token_id_for(self, text: str) -> int | None:
        token_id = self._tokenizer.token_to_id(text)
        return None if token_id is None else int(token_id)
