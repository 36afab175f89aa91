"""Tests for the streaming text decoder."""

from __future__ import annotations

import pytest

from genloop.streaming import StreamingDecoder


def _stream(decoder: StreamingDecoder, ids: list[int]) -> list[str | None]:
    return [decoder.next_token(t) for t in ids]


class TestNextToken:
    """Incremental emission."""

    def test_ascii_emits_every_token(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        assert _stream(decoder, byte_tokenizer.ids_for("abc")) == ["a", "b", "c"]

    def test_multibyte_character_held_until_complete(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        fragments = _stream(decoder, byte_tokenizer.ids_for("é"))
        assert fragments == [None, "é"]

    def test_four_byte_character(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        fragments = _stream(decoder, byte_tokenizer.ids_for("a😀b"))
        assert fragments == ["a", None, None, None, "😀", "b"]

    def test_special_tokens_emit_nothing(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        assert decoder.next_token(byte_tokenizer.BOS_ID) is None
        assert decoder.next_token(byte_tokenizer.byte_id(ord("x"))) == "x"

    def test_no_fragment_ends_mid_character(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        for fragment in _stream(decoder, byte_tokenizer.ids_for("naïve « 日本語 » ✓")):
            if fragment is not None:
                assert not fragment.endswith("\ufffd")


class TestConcatenation:
    """Fragments plus the final flush equal a one-shot decode."""

    @pytest.mark.parametrize(
        "text",
        ["", "hello", "héllo wörld", "日本語のテキスト", "emoji 🎉🎉 end", "mixé😀日"],
    )
    def test_fragments_equal_whole_decode(self, byte_tokenizer, text: str) -> None:
        ids = byte_tokenizer.encode(text)
        decoder = StreamingDecoder(byte_tokenizer)
        pieces = [f for f in _stream(decoder, ids) if f is not None]
        rest = decoder.decode_rest()
        if rest is not None:
            pieces.append(rest)
        assert "".join(pieces) == byte_tokenizer.decode(ids)

    def test_truncated_tail_flushed_by_decode_rest(self, byte_tokenizer) -> None:
        """A dangling lead byte is never streamed but is flushed at the end."""
        ids = [*byte_tokenizer.ids_for("ok"), byte_tokenizer.byte_id(0xE6)]
        decoder = StreamingDecoder(byte_tokenizer)
        assert _stream(decoder, ids) == ["o", "k", None]
        assert decoder.decode_rest() == "\ufffd"
        assert decoder.decode_all() == "ok\ufffd"

    def test_decode_rest_none_when_all_emitted(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        _stream(decoder, byte_tokenizer.ids_for("done"))
        assert decoder.decode_rest() is None

    def test_decode_rest_does_not_repeat(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        decoder.next_token(byte_tokenizer.byte_id(0xC3))
        assert decoder.decode_rest() == "\ufffd"
        assert decoder.decode_rest() is None


class TestClear:
    """Session isolation."""

    def test_clear_drops_buffered_state(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        _stream(decoder, byte_tokenizer.ids_for("old") + [byte_tokenizer.byte_id(0xC3)])
        decoder.clear()
        assert decoder.tokens == []
        fragments = _stream(decoder, byte_tokenizer.ids_for("new"))
        assert fragments == ["n", "e", "w"]
        assert decoder.decode_rest() is None

    def test_without_clear_state_carries_over(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        decoder.next_token(byte_tokenizer.byte_id(0xC3))
        # 0xC3 0xA9 completes "é" across what would be a session boundary.
        assert decoder.next_token(byte_tokenizer.byte_id(0xA9)) == "é"

    def test_get_token(self, byte_tokenizer) -> None:
        decoder = StreamingDecoder(byte_tokenizer)
        assert decoder.get_token("</s>") == byte_tokenizer.EOS_ID
        assert decoder.get_token("<unk>") is None
        assert decoder.tokenizer is byte_tokenizer
