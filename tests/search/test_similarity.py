"""Tests for the similarity primitives."""

import pytest

from knowledge_lifecycle.errors import DimensionMismatch, InputError
from knowledge_lifecycle.search.similarity import (
    cosine_similarity,
    fuzzy_score,
    is_exact_duplicate,
    levenshtein_distance,
    normalize_content,
)

# --- cosine_similarity ---


@pytest.mark.parametrize(
    "vec",
    [[1.0, 0.0], [0.3, -0.7, 2.5], [1e-3, 1e-3, 1e-3, 1e-3], [-4.0, 9.0, 0.5]],
)
def test_cosine_self_similarity_is_one(vec):
    assert cosine_similarity(vec, vec) == pytest.approx(1.0)


def test_cosine_symmetric():
    a = [0.1, 0.9, -0.4]
    b = [0.7, -0.2, 0.3]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_orthogonal_and_opposite():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_cosine_scale_invariant():
    assert cosine_similarity([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == pytest.approx(1.0)


def test_cosine_zero_magnitude_returns_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0], [0.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
    assert exc_info.value.left == 2
    assert exc_info.value.right == 3
    assert isinstance(exc_info.value, InputError)


def test_cosine_stays_in_range():
    value = cosine_similarity([0.1] * 50, [0.1] * 50)
    assert -1.0 <= value <= 1.0


# --- normalize_content ---


def test_normalize_japanese_spacing_and_punctuation():
    assert normalize_content("統合報告書の  作成について。。。") == normalize_content(
        "統合報告書の作成について"
    )


def test_normalize_lowercases_and_collapses_whitespace():
    assert normalize_content("  Hello\t\n  World!  ") == "hello world"


def test_normalize_strips_punctuation_set():
    assert normalize_content("a.b,c!d?e。f、g！h？") == "abcdefgh"


def test_normalize_keeps_other_symbols():
    assert normalize_content("C++ & Rust: 2 langs") == "c++ & rust: 2 langs"


def test_normalize_drops_spaces_next_to_cjk_only():
    assert normalize_content("統合報告書の  作成について。。。") == "統合報告書の作成について"
    assert normalize_content("Use 統合 report  now") == "use統合report now"
    assert normalize_content("hello   world") == "hello world"


def test_is_exact_duplicate():
    assert is_exact_duplicate("Use WAL mode.", "use  wal mode")
    assert not is_exact_duplicate("Use WAL mode", "Use journal mode")


# --- levenshtein / fuzzy_score ---


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("", "", 0),
        ("abc", "", 3),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ],
)
def test_levenshtein_distance(a, b, expected):
    assert levenshtein_distance(a, b) == expected


@pytest.mark.parametrize("text", ["", "a", "統合報告書", "The quick brown fox"])
def test_fuzzy_self_score_is_one(text):
    assert fuzzy_score(text, text) == 1.0


def test_fuzzy_empty_strings():
    assert fuzzy_score("", "") == 1.0
    # Punctuation-only normalizes to empty
    assert fuzzy_score("。。。", "!?") == 1.0


def test_fuzzy_symmetric():
    a = "Deploy with blue green strategy"
    b = "Deploy using a blue-green strategy"
    assert fuzzy_score(a, b) == fuzzy_score(b, a)


def test_fuzzy_score_value():
    # "kitten" vs "sitting": distance 3, longest 7
    assert fuzzy_score("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_fuzzy_completely_different():
    assert fuzzy_score("abc", "xyz") == 0.0
    assert fuzzy_score("abc", "") == 0.0
