import random
import re
from typing import Dict, List, Optional

from lingua_eval.models.evaluation import round_half_up
from lingua_eval.services.evaluation.rules import grammar_error_weight

_WORD_RE = re.compile(r"\b\w+\b")
_PARAGRAPH_RE = re.compile(r"\n\n+")
_SENTENCE_RE = re.compile(r"[.!?]+")

NEUTRAL_SCORE = 70
SPEAKING_WEIGHTS = {"pronunciation": 0.4, "vocabulary": 0.3, "grammar": 0.3}
WRITING_WEIGHTS = {"grammar": 0.4, "vocabulary": 0.35, "structure": 0.25}


def words(text: str) -> List[str]:
    return _WORD_RE.findall((text or "").lower())


def count_words(text: str) -> int:
    return len(words(text))


def grammar_score(text: str) -> int:
    """100 minus twice the weighted rule hits, at most 40 off, never below 60."""
    deduction = min(40, grammar_error_weight(text or "") * 2)
    return max(60, 100 - deduction)


def vocabulary_score(text: str) -> int:
    tokens = words(text)
    if not tokens:
        return 60
    lexical_diversity = len(set(tokens)) / len(tokens)
    advanced_ratio = sum(1 for w in tokens if len(w) > 7) / len(tokens)
    score = 60 + lexical_diversity * 50 + advanced_ratio * 100
    return round_half_up(min(95, score))


def structure_score(text: str, word_count: Optional[int] = None) -> int:
    text = text or ""
    word_count = count_words(text) if word_count is None else word_count
    paragraphs = [p for p in _PARAGRAPH_RE.split(text) if p.strip()]
    sentences = [s for s in _SENTENCE_RE.split(text) if s.strip()]

    score = 60
    if 100 <= word_count <= 500:
        score += 15
    elif 50 <= word_count < 100:
        score += 10

    if 2 <= len(paragraphs) <= 5:
        score += 15
    elif len(paragraphs) >= 1:
        score += 8

    if sentences:
        avg_sentence_length = word_count / len(sentences)
        if 10 <= avg_sentence_length <= 25:
            score += 10

    return round_half_up(min(95, score))


def pronunciation_from_duration(duration: Optional[float], rng: Optional[random.Random] = None) -> int:
    """Pseudo-pronunciation from response length.

    With ``rng`` the base value is scaled by a factor drawn from [0.8, 1.2];
    the result is always clamped to [0, 100].
    """
    if duration is None:
        return NEUTRAL_SCORE
    base = min(100.0, duration / 120 * 50 + 30)
    if rng is not None:
        base *= rng.uniform(0.8, 1.2)
    return round_half_up(max(0.0, min(100.0, base)))


def weighted_overall(scores: Dict[str, float], weights: Dict[str, float]) -> int:
    return round_half_up(sum(scores[name] * weight for name, weight in weights.items()))


def writing_overall(grammar: float, vocabulary: float, structure: float) -> int:
    return weighted_overall(
        {"grammar": grammar, "vocabulary": vocabulary, "structure": structure}, WRITING_WEIGHTS
    )


def speaking_overall(pronunciation: float, vocabulary: float, grammar: float) -> int:
    return weighted_overall(
        {"pronunciation": pronunciation, "vocabulary": vocabulary, "grammar": grammar}, SPEAKING_WEIGHTS
    )
