"""Fixed rule tables shared by the deterministic scoring and mistake fallbacks."""
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Pattern, Tuple


@dataclass(frozen=True)
class GrammarRule:
    name: str
    pattern: Pattern[str]
    weight: int
    error_type: str
    severity: str
    suggestion: str
    correct: Callable[["re.Match[str]"], str]


def _capitalized_like(word: str, template: str) -> str:
    return word[:1].upper() + word[1:] if template[:1].isupper() else word


def _fix_third_person(m: "re.Match[str]") -> str:
    return f"{m.group(1)} is"


def _fix_plural_is(m: "re.Match[str]") -> str:
    subject = m.group(1)
    return f"{subject} {'am' if subject.lower() == 'i' else 'are'}"


def _fix_a_to_an(m: "re.Match[str]") -> str:
    return f"{_capitalized_like('an', m.group(0))} {m.group(1)}"


def _fix_an_to_a(m: "re.Match[str]") -> str:
    return f"{_capitalized_like('a', m.group(0))} {m.group(1)}"


def _fix_there_is(m: "re.Match[str]") -> str:
    return f"{_capitalized_like('there', m.group(0))} {m.group(2)} {m.group(1)}"


def _fix_negative_past(m: "re.Match[str]") -> str:
    return f"{m.group(1)} {m.group(2)}"


def _fix_spacing(m: "re.Match[str]") -> str:
    return " "


def _fix_sentence_break(m: "re.Match[str]") -> str:
    text = m.group(0)
    return f"{text[0]}. {text[2]}"


GRAMMAR_RULES: Tuple[GrammarRule, ...] = (
    GrammarRule(
        name="subject-verb agreement",
        pattern=re.compile(r"\b(he|she|it)\s+(?:am|are)\b", re.IGNORECASE),
        weight=3,
        error_type="grammar",
        severity="critical",
        suggestion="Use 'is' with third-person singular (he/she/it)",
        correct=_fix_third_person,
    ),
    GrammarRule(
        name="subject-verb agreement",
        pattern=re.compile(r"\b(I|you|we|they)\s+is\b", re.IGNORECASE),
        weight=3,
        error_type="grammar",
        severity="critical",
        suggestion="Use 'am' with I, 'are' with you/we/they",
        correct=_fix_plural_is,
    ),
    GrammarRule(
        name="article usage",
        pattern=re.compile(r"\ba\s+([aeiou]\w*)", re.IGNORECASE),
        weight=2,
        error_type="grammar",
        severity="major",
        suggestion="Use 'an' before vowel sounds",
        correct=_fix_a_to_an,
    ),
    GrammarRule(
        name="article usage",
        pattern=re.compile(r"\ban\s+([^aeiou\W]\w*)", re.IGNORECASE),
        weight=2,
        error_type="grammar",
        severity="major",
        suggestion="Use 'a' before consonant sounds",
        correct=_fix_an_to_a,
    ),
    GrammarRule(
        name="existential agreement",
        pattern=re.compile(r"\bthere\s+is\s+(\w+)\s+(are|were)\b", re.IGNORECASE),
        weight=2,
        error_type="grammar",
        severity="major",
        suggestion="Use 'there are' or 'there were' with plural nouns",
        correct=_fix_there_is,
    ),
    GrammarRule(
        name="verb form after negative",
        pattern=re.compile(r"\b(don't|doesn't|didn't|won't)\s+(\w+?)ed\b", re.IGNORECASE),
        weight=3,
        error_type="grammar",
        severity="major",
        suggestion="Use the base form after negative auxiliary verbs",
        correct=_fix_negative_past,
    ),
    GrammarRule(
        name="extra spacing",
        pattern=re.compile(r"[ \t]{2,}"),
        weight=1,
        error_type="punctuation",
        severity="minor",
        suggestion="Use a single space between words",
        correct=_fix_spacing,
    ),
    GrammarRule(
        name="sentence boundary",
        pattern=re.compile(r"[a-z]\.[A-Z]"),
        weight=2,
        error_type="punctuation",
        severity="minor",
        suggestion="Leave a space after the full stop before starting a new sentence",
        correct=_fix_sentence_break,
    ),
)

SPELLING_CORRECTIONS: Dict[str, str] = {
    "recieve": "receive",
    "occured": "occurred",
    "seperate": "separate",
    "definately": "definitely",
    "thier": "their",
}

_SPELLING_RE = re.compile(r"\b(" + "|".join(SPELLING_CORRECTIONS) + r")\b", re.IGNORECASE)


@dataclass(frozen=True)
class PhonemeRule:
    label: str
    pattern: Pattern[str]
    suggestion: str
    severity: str


PHONEME_RULES: Tuple[PhonemeRule, ...] = (
    PhonemeRule(
        label="TH sound pronunciation",
        pattern=re.compile(r"\b(th|the|that|this)\b", re.IGNORECASE),
        suggestion="Practice 'th' sound - tongue between teeth",
        severity="major",
    ),
    PhonemeRule(
        label="R sound clarity",
        pattern=re.compile(r"\b(r|right|read|run)\b", re.IGNORECASE),
        suggestion="Ensure clear 'r' sound without 'l' substitution",
        severity="minor",
    ),
    PhonemeRule(
        label="V sound pronunciation",
        pattern=re.compile(r"\b(v|very|have|voice)\b", re.IGNORECASE),
        suggestion="Distinguish 'v' from 'w' - teeth touch lower lip",
        severity="minor",
    ),
)

# phoneme cluster must repeat more than this many times to be flagged
PHONEME_MIN_OCCURRENCES = 3
PHONEME_PRONUNCIATION_CEILING = 75


def iter_grammar_matches(text: str) -> Iterator[Tuple[GrammarRule, "re.Match[str]"]]:
    """Every rule hit in ``text``, rule by rule, left to right."""
    for rule in GRAMMAR_RULES:
        for match in rule.pattern.finditer(text):
            yield rule, match


def grammar_error_weight(text: str) -> int:
    return sum(rule.weight for rule, _ in iter_grammar_matches(text))


def iter_misspellings(text: str) -> Iterator[Tuple["re.Match[str]", str]]:
    for match in _SPELLING_RE.finditer(text):
        yield match, SPELLING_CORRECTIONS[match.group(1).lower()]


def phoneme_hits(transcript: str) -> List[Tuple[PhonemeRule, int]]:
    return [(rule, len(rule.pattern.findall(transcript))) for rule in PHONEME_RULES]
