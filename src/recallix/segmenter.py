"""
Text Segmentation

Splits a memorization text into speakable chunks. Paragraphs are kept whole
when they fit the word budget; longer ones are packed sentence by sentence
into lettered parts. Sentences are never split, so a single sentence longer
than the budget becomes a part of its own.
"""

import re
from typing import List

from .models import TextSegment

MAX_SEGMENT_WORDS = 150
PARAGRAPH_SPLIT = re.compile(r"\n+")
SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+")


def count_words(text: str) -> int:
    return len(text.split())


def part_label(position: int) -> str:
    """Letter label of the n-th part, counting from 0: A..Z, then AA, AB, ..."""
    label = ""
    position += 1
    while position:
        position, remainder = divmod(position - 1, 26)
        label = chr(ord("A") + remainder) + label
    return label


def _title(number: int, word_count: int, part: str = "") -> str:
    suffix = f" (Part {part})" if part else ""
    return f"Paragraph {number}{suffix} ({word_count} words • ~90s)"


def split_sentences(paragraph: str) -> List[re.Match]:
    """Sentence-like spans ending in '.', '!' or '?', plus any unterminated tail."""
    return list(SENTENCE_PATTERN.finditer(paragraph))


def _split_paragraph(
    paragraph: str, number: int, max_words: int
) -> List[TextSegment]:
    parts: List[TextSegment] = []
    part_number = 0
    start = end = None
    running_words = 0

    for span in split_sentences(paragraph):
        sentence_words = count_words(span.group())
        if running_words + sentence_words > max_words and running_words > 0:
            parts.append(
                TextSegment(
                    title=_title(number, running_words, part_label(part_number)),
                    text=paragraph[start:end].strip(),
                )
            )
            part_number += 1
            start, end = span.start(), span.end()
            running_words = sentence_words
        else:
            if start is None:
                start = span.start()
            end = span.end()
            running_words += sentence_words

    if start is not None and paragraph[start:end].strip():
        parts.append(
            TextSegment(
                title=_title(number, running_words, part_label(part_number)),
                text=paragraph[start:end].strip(),
            )
        )
    return parts


def segment_text(text: str, max_words: int = MAX_SEGMENT_WORDS) -> List[TextSegment]:
    """
    Split raw text into ordered, labeled chunks.

    Args:
        text: Raw text, paragraphs separated by newlines
        max_words: Soft word budget per chunk

    Returns:
        Segments in paragraph order, then part order
    """
    blocks = [b for b in PARAGRAPH_SPLIT.split(text) if b.strip()]
    segments: List[TextSegment] = []

    for number, block in enumerate(blocks, start=1):
        word_count = count_words(block)
        if word_count == 0:
            continue
        if word_count <= max_words:
            segments.append(TextSegment(title=_title(number, word_count), text=block))
        else:
            segments.extend(_split_paragraph(block, number, max_words))
    return segments
