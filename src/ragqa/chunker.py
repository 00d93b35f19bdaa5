from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True, slots=True)
class TextSplitter:
    """Split text into overlapping character windows.

    Sizes are counted in code points (Python ``str`` indices), so multi-byte
    characters never get cut in half. Text no longer than ``chunk_size`` is
    returned untouched as a single chunk; otherwise every window is stripped
    of surrounding whitespace. Whitespace-only windows become empty strings
    but keep their position in the sequence.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if self.chunk_overlap < 0:
            raise ValueError("chunk_overlap must be a non-negative integer")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

    def split(self, text: str) -> list[str]:
        if len(text) <= self.chunk_size:
            return [text]
        return [text[start:end].strip() for start, end in self.windows(text)]

    def windows(self, text: str) -> list[tuple[int, int]]:
        """Return the untrimmed ``(start, end)`` offsets :meth:`split` uses."""

        text_length = len(text)
        if text_length <= self.chunk_size:
            return [(0, text_length)]

        offsets: list[tuple[int, int]] = []
        start = 0
        while True:
            end = min(start + self.chunk_size, text_length)
            offsets.append((start, end))
            if end == text_length:
                break
            start = max(end - self.chunk_overlap, 0)
        return offsets


def split_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split *text* with a throwaway :class:`TextSplitter`."""

    return TextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split(text)


__all__ = ["DEFAULT_CHUNK_OVERLAP", "DEFAULT_CHUNK_SIZE", "TextSplitter", "split_text"]
