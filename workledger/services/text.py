"""
Text canonicalization and word shingling for overlap detection.
"""

import re
from typing import FrozenSet

from workledger import config

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

def normalize(text: str) -> str:
    """
    Canonicalize text for comparison.

    Lowercases, turns every character outside ASCII letters/digits into a
    space, collapses whitespace runs and trims. Idempotent.
    """
    if not text:
        return ""
    return _NON_ALNUM.sub(" ", text.lower()).strip()

def shingles(normalized_text: str, n: int = config.SHINGLE_SIZE) -> FrozenSet[str]:
    """
    Set of all contiguous n-word windows of an already normalized text.

    Repeated windows count once. Fewer than n tokens gives the empty set.
    """
    if n < 1:
        raise ValueError(f"Shingle size must be at least 1, got {n}")

    tokens = normalized_text.split()
    if len(tokens) < n:
        return frozenset()
    return frozenset(" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1))

def fingerprint(text: str, n: int = config.SHINGLE_SIZE) -> FrozenSet[str]:
    """Normalize raw text and shingle it in one step."""
    return shingles(normalize(text), n)
