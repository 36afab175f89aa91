"""Streaming token-to-text decoder.

Sub-word tokens often only form valid text once several of them have been
seen (a multi-byte character split across byte-fallback tokens, or a word
piece whose leading space depends on its neighbour). The decoder therefore
re-decodes the whole token buffer on every token and only emits the part
of the text that is new and does not end on a truncated character.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from genloop.tokenizer import Tokenizer

# Tokenizers decode an incomplete UTF-8 tail to the replacement character.
_REPLACEMENT_CHAR = "\ufffd"


class StreamingDecoder:
    """Incrementally converts token ids into displayable text fragments.

    Call :meth:`clear` before each new prompt so that nothing buffered in a
    previous session leaks into the next one.
    """

    def __init__(self, tokenizer: Tokenizer) -> None:
        self._tokenizer = tokenizer
        self._tokens: list[int] = []
        self._emitted_len = 0

    @property
    def tokenizer(self) -> Tokenizer:
        return self._tokenizer

    @property
    def tokens(self) -> list[int]:
        """Copy of the buffered token ids."""
        return list(self._tokens)

    def get_token(self, text: str) -> int | None:
        """Look up the id of vocabulary entry *text*."""
        return self._tokenizer.token_id_for(text)

    def next_token(self, token: int) -> str | None:
        """Consume one token and return the newly printable text, if any.

        Returns ``None`` while the buffered text has not grown or ends in
        the middle of a character.
        """
        self._tokens.append(token)
        text = self._tokenizer.decode(self._tokens)
        if len(text) > self._emitted_len and not text.endswith(_REPLACEMENT_CHAR):
            fragment = text[self._emitted_len :]
            self._emitted_len = len(text)
            return fragment
        return None

    def decode_rest(self) -> str | None:
        """Flush whatever text has not been emitted yet.

        Returns ``None`` when everything was already emitted.
        """
        text = self._tokenizer.decode(self._tokens)
        if len(text) > self._emitted_len:
            fragment = text[self._emitted_len :]
            self._emitted_len = len(text)
            return fragment
        return None

    def decode_all(self) -> str:
        """Decode the whole buffer in one shot."""
        return self._tokenizer.decode(self._tokens)

    def clear(self) -> None:
        """Drop the token buffer and the emitted-length marker."""
        self._tokens.clear()
        self._emitted_len = 0
