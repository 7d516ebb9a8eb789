"""Similarity primitives: cosine similarity, content normalization, fuzzy score."""

import re
from collections.abc import Sequence

import numpy as np

from knowledge_lifecycle.errors import DimensionMismatch

_WHITESPACE_RE = re.compile(r"\s+")
# Japanese and ASCII sentence punctuation, plus their full-width variants
_PUNCTUATION_RE = re.compile(r"[。、！？.,!?，．]")
_CJK = r"\u3000-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff\uff00-\uffef"
# CJK text has no word spacing, so a space next to a CJK character is noise
_CJK_SPACE_RE = re.compile(rf"(?<=[{_CJK}]) | (?=[{_CJK}])")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Normalized dot product of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, similarity))


def normalize_content(text: str) -> str:
    """Lowercase, collapse whitespace, strip punctuation, trim.

    Spaces touching a CJK character are dropped, so "報告書の  作成" and
    "報告書の作成" normalize alike while "hello world" keeps its space.
    """
    collapsed = _CJK_SPACE_RE.sub("", _WHITESPACE_RE.sub(" ", text.lower()))
    return _PUNCTUATION_RE.sub("", collapsed).strip()


def is_exact_duplicate(a: str, b: str) -> bool:
    """True when both contents normalize to the same string."""
    return normalize_content(a) == normalize_content(b)


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def fuzzy_score(a: str, b: str) -> float:
    """Levenshtein similarity of the normalized contents, in [0, 1]."""
    na = normalize_content(a)
    nb = normalize_content(b)
    longest = max(len(na), len(nb))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(na, nb) / longest
