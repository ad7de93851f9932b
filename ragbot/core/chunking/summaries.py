"""
Extractive summaries.

Cheap, model-free summaries used for chunk metadata and for the
"summarize" document action.

Dependencies: re (stdlib)
System role: Summary text without an LLM round-trip
"""

import re

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def split_sentences(text: str) -> list[str]:
    """Split text into trimmed sentences; text without terminators is one sentence."""
    sentences = [s.strip() for s in _SENTENCE.findall(text) if s.strip()]
    return sentences or ([text.strip()] if text.strip() else [])


def fallback_chunk_summary(content: str, max_length: int = 200) -> str:
    """First two non-blank lines of a chunk, capped at ``max_length``."""
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    return " ".join(lines[:2])[:max_length]


def extractive_summary(text: str, max_length: int = 500) -> str:
    """
    Summarize text by sampling sentences.

    Keeps the first sentence, up to three evenly spaced middle sentences
    and the last sentence.

    Args:
        text: Text to summarize
        max_length: Maximum summary length; longer output ends with "..."

    Returns:
        str: Summary text
    """
    sentences = split_sentences(text)
    if len(sentences) <= 3:
        summary = " ".join(sentences)
    else:
        step = max(len(sentences) // 5, 1)
        middle = [s for i, s in enumerate(sentences[1:-1]) if i % step == 0][:3]
        summary = " ".join([sentences[0], *middle, sentences[-1]])

    if len(summary) > max_length:
        return summary[:max_length] + "..."
    return summary


def recursive_summary(texts: list[str], max_length: int = 800) -> str:
    """
    Fold chunk summaries into one running summary, in document order.

    Args:
        texts: Chunk texts in document order
        max_length: Cap for the running summary

    Returns:
        str: Summary of all texts
    """
    if not texts:
        return "No content to summarize"
    if len(texts) == 1:
        return extractive_summary(texts[0])

    running = ""
    for i, text in enumerate(texts):
        piece = extractive_summary(text)
        running = piece if i == 0 else extractive_summary(f"{running}\n\n{piece}", max_length)
    return running
