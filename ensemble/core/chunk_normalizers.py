"""
Chunk normalizers mapping native provider stream chunks to text deltas.

Each provider registers exactly one normalizer; adding a provider with a new
wire format only requires a new function here.
"""

from typing import Any, Callable, Dict, Optional


ChunkNormalizer = Callable[[Any], Optional[str]]


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def openai_delta(chunk: Any) -> Optional[str]:
    """Extract ``choices[0].delta.content`` from a delta-style chunk."""
    choices = _get(chunk, "choices")
    if not choices:
        return None
    delta = _get(choices[0], "delta")
    if delta is None:
        return None
    content = _get(delta, "content")
    return content or None


def anthropic_block_delta(chunk: Any) -> Optional[str]:
    """Extract ``delta.text`` from a ``content_block_delta`` / ``text_delta`` chunk."""
    if _get(chunk, "type") != "content_block_delta":
        return None
    delta = _get(chunk, "delta")
    if delta is None or _get(delta, "type") != "text_delta":
        return None
    return _get(delta, "text") or None


def text_accessor(chunk: Any) -> Optional[str]:
    """Extract text from a chunk exposing a ``text`` accessor or attribute."""
    if isinstance(chunk, str):
        return chunk or None
    text = _get(chunk, "text")
    if callable(text):
        text = text()
    return text or None


def strands_event(chunk: Any) -> Optional[str]:
    """Extract the ``data`` text delta from an agent SDK stream event."""
    if not isinstance(chunk, dict):
        return None
    data = chunk.get("data")
    if isinstance(data, str):
        return data or None
    return None


BUILTIN_NORMALIZERS: Dict[str, ChunkNormalizer] = {
    "openai_delta": openai_delta,
    "anthropic_block_delta": anthropic_block_delta,
    "text": text_accessor,
    "strands_event": strands_event,
}


def get_normalizer(chunk_format: str) -> ChunkNormalizer:
    """
    Look up a built-in normalizer by format name.

    Args:
        chunk_format: Name of the chunk format

    Returns:
        The normalizer function

    Raises:
        ValueError: If the format is unknown
    """
    try:
        return BUILTIN_NORMALIZERS[chunk_format]
    except KeyError:
        raise ValueError(f"Unknown chunk format '{chunk_format}'")
