"""Fuzzy name matching for healthcare organization names."""

import re

from rapidfuzz.distance import Levenshtein

# Boilerplate terms dropped during normalization
STRIP_TERMS = {
    "llc", "inc", "corp", "corporation", "associates", "assoc",
    "group", "medical", "med", "center", "centre", "clinic",
    "pa", "pc", "md", "do", "dds", "dpm", "healthcare",
    "health", "services", "practice", "partners", "pllc", "ltd",
}

PUNCTUATION = re.compile(r"[.'’,\-/\\()]")


def normalize_name(name: str) -> str:
    """Lowercase, replace punctuation with spaces and drop boilerplate terms.

    If every token is a boilerplate term the original tokens are kept, so
    "LLC Medical" normalizes to "llc medical" rather than "".
    """
    tokens = PUNCTUATION.sub(" ", name.lower()).split()
    filtered = [t for t in tokens if t not in STRIP_TERMS]
    return " ".join(filtered or tokens)


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character inserts, deletes or substitutions."""
    return Levenshtein.distance(a, b)


def token_jaccard(a: str, b: str) -> float:
    """Jaccard index of the whitespace token sets; 0.0 when both are empty."""
    set_a = set(a.split())
    set_b = set(b.split())
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def fuzzy_name_match(a: str, b: str) -> float:
    """
    Similarity of two organization names in [0.0, 1.0].

    Both names are normalized first; identical normal forms score exactly 1.0.
    Otherwise the result is the larger of token Jaccard similarity and
    length-normalized Levenshtein similarity.
    """
    na = normalize_name(a)
    nb = normalize_name(b)

    if na == nb:
        return 1.0

    jaccard = token_jaccard(na, nb)

    max_len = max(len(na), len(nb))
    leven_sim = 1.0 if max_len == 0 else 1 - levenshtein_distance(na, nb) / max_len

    return max(jaccard, leven_sim)
