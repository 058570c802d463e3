"""
Unit tests for stream chunk normalizers.
"""

from types import SimpleNamespace

import pytest

from ensemble.core.chunk_normalizers import (
    anthropic_block_delta,
    get_normalizer,
    openai_delta,
    strands_event,
    text_accessor
)


class TestChunkNormalizers:
    """Test the built-in normalizers."""

    def test_openai_delta(self):
        """Test the choices[0].delta.content shape, dict or attribute style."""
        assert openai_delta({"choices": [{"delta": {"content": "Hel"}}]}) == "Hel"
        chunk = SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content="lo"))])
        assert openai_delta(chunk) == "lo"

    def test_openai_delta_without_text(self):
        assert openai_delta({"choices": [{"delta": {"role": "assistant"}}]}) is None
        assert openai_delta({"choices": []}) is None
        assert openai_delta({"usage": {}}) is None

    def test_anthropic_block_delta(self):
        """Test that only text deltas of content blocks produce text."""
        chunk = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}
        assert anthropic_block_delta(chunk) == "Hi"
        assert anthropic_block_delta({"type": "message_start"}) is None
        assert anthropic_block_delta(
            {"type": "content_block_delta", "delta": {"type": "input_json_delta", "partial_json": "{"}}
        ) is None

    def test_text_accessor(self):
        """Test plain strings, text attributes and text methods."""
        assert text_accessor("abc") == "abc"
        assert text_accessor("") is None
        assert text_accessor(SimpleNamespace(text="attr")) == "attr"
        assert text_accessor(SimpleNamespace(text=lambda: "method")) == "method"
        assert text_accessor(SimpleNamespace(other=1)) is None

    def test_strands_event(self):
        assert strands_event({"data": "tok"}) == "tok"
        assert strands_event({"current_tool_use": {}}) is None
        assert strands_event({"data": {"nested": True}}) is None
        assert strands_event("raw") is None

    def test_get_normalizer(self):
        assert get_normalizer("openai_delta") is openai_delta
        assert get_normalizer("strands_event") is strands_event
        with pytest.raises(ValueError):
            get_normalizer("morse")
