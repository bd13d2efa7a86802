from typing import List


def levenshtein(a: str, b: str) -> int:
    """Classical edit distance (insert, delete and substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous: List[int] = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``(maxLen - distance) / maxLen``; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def _normalize(answer: str) -> str:
    return (answer or "").strip().lower()


def exact_match(answer: str, expected: str) -> float:
    return 1.0 if _normalize(answer) == _normalize(expected) else 0.0


def similarity_credit(answer: str, expected: str) -> float:
    """Partial credit for a short answer from normalized edit-distance similarity."""
    ratio = similarity(_normalize(answer), _normalize(expected))
    if ratio >= 0.9:
        return 1.0
    if ratio >= 0.7:
        return 0.75
    if ratio >= 0.5:
        return 0.5
    return 0.0
