"""Utilities for constructing the grounded-answer prompt."""
from __future__ import annotations

from typing import Iterable

from ragqa.models import DocumentChunk

CONTEXT_SEPARATOR = "\n\n"

_PROMPT_TEMPLATE = (
    "Context information:\n"
    "{context}\n"
    "\n"
    "Question: {question}\n"
    "\n"
    "Please answer the question based on the context provided. "
    "If the answer is not in the context, say "
    "\"I don't have enough information to answer this question.\""
)


def build_context(chunks: Iterable[DocumentChunk]) -> str:
    """Join chunk contents in retrieval order, separated by a blank line."""

    return CONTEXT_SEPARATOR.join(chunk.content for chunk in chunks)


def build_prompt(question: str, chunks: Iterable[DocumentChunk]) -> str:
    """Compose the prompt sent to the chat model for *question*."""

    if question is None:
        raise ValueError("question must not be None")
    return _PROMPT_TEMPLATE.format(context=build_context(chunks), question=question)


__all__ = ["CONTEXT_SEPARATOR", "build_context", "build_prompt"]
