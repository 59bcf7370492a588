import re
from typing import List

_NON_WORD = re.compile(r"[^\w]")
_HINT_MASK = re.compile(r"[a-zA-Z0-9]")
_EDGE_PUNCTUATION = re.compile(r"^[^\w]+|[^\w]+$")


def normalize(text: str) -> str:
    """Normalize a word for comparison: lowercase, drop everything but letters, digits and '_'."""
    return _NON_WORD.sub("", text.lower())


def is_match(expected: str, spoken: str) -> bool:
    """Exact match after normalization. Empty words never match."""
    e = normalize(expected)
    s = normalize(spoken)
    if not e or not s:
        return False
    return e == s


def word_tokens(text: str) -> List[str]:
    """Word tokens of a text, punctuation-only tokens excluded and edge punctuation trimmed."""
    return [
        _EDGE_PUNCTUATION.sub("", token)
        for token in text.split()
        if normalize(token)
    ]


def masked_hint(text: str) -> str:
    # first letter of each word stays visible
    return " ".join(
        word[0] + _HINT_MASK.sub("_", word[1:]) for word in text.split()
    )
