# src/style/analyzer.py - v1
"""Local text analysis: turns a piece of writing into StyleParameters.

All heuristics are deterministic and make no network calls:
- tone: formal vs casual markers and contractions, 1 (casual) .. 10 (formal)
- sentence_length: mean words per sentence (abbreviation-aware segmentation)
- vocabulary_complexity: Flesch-Kincaid grade, clamped to 1..16
- bullet_ratio: share of non-empty lines that start with a list marker
- technical_depth: acronyms and technical terms per word, 1..10
- length_preference: total words / 40, 1..10 (200 words -> 5)
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from draftsmith.core.models import StyleParameters


@dataclass(frozen=True)
class DimensionSpec:
    """Valid range and neutral value of one style dimension."""

    low: float
    high: float
    neutral: float

    @property
    def span(self) -> float:
        return self.high - self.low

    def clamp(self, value: float) -> float:
        return min(self.high, max(self.low, value))

    def normalize(self, value: float) -> float:
        """Map `value` onto [0, 1] relative to the range."""
        return (self.clamp(value) - self.low) / self.span


DIMENSION_SPECS: dict[str, DimensionSpec] = {
    "tone": DimensionSpec(1.0, 10.0, 5.0),
    "sentence_length": DimensionSpec(1.0, 40.0, 15.0),
    "vocabulary_complexity": DimensionSpec(1.0, 16.0, 8.0),
    "bullet_ratio": DimensionSpec(0.0, 1.0, 0.2),
    "technical_depth": DimensionSpec(1.0, 10.0, 5.0),
    "length_preference": DimensionSpec(1.0, 10.0, 5.0),
}

_ABBREVIATIONS = frozenset({
    "Mr", "Mrs", "Ms", "Dr", "Prof", "Sr", "Jr", "vs", "etc", "i.e", "e.g",
    "Inc", "Ltd", "Corp", "Co",
})
_TERMINATORS = ".!?"

_FORMAL_MARKERS = (
    "therefore", "consequently", "furthermore", "moreover", "nevertheless",
    "however", "regarding", "pursuant", "hereby", "wherein", "thereof",
    "aforementioned", "notwithstanding", "accordingly",
)
_CASUAL_MARKERS = (
    "hey", "gonna", "wanna", "stuff", "things", "awesome", "cool", "great",
    "yeah", "yep", "nope", "kinda", "sorta", "lots", "tons",
)
_TECH_TERMS = (
    "api", "database", "framework", "algorithm", "implementation", "architecture",
    "backend", "frontend", "deployment", "integration", "optimization",
    "authentication", "encryption", "server", "client", "protocol", "interface",
    "repository", "pipeline", "infrastructure",
)
_BULLET_PREFIXES = ("-", "•", "*", "→", "1.", "2.", "3.", "4.", "5.")

WORDS_PER_LENGTH_POINT = 40.0
MAX_COMMON_PHRASES = 5


def segment_sentences(text: str) -> list[str]:
    """Split on . ! ? runs, skipping common abbreviations."""
    sentences: list[str] = []
    current: list[str] = []
    for i, ch in enumerate(text):
        current.append(ch)
        if ch not in _TERMINATORS:
            continue
        if i + 1 < len(text) and text[i + 1] in _TERMINATORS:
            continue
        candidate = "".join(current).strip()
        words = candidate.split()
        if words and words[-1].rstrip(_TERMINATORS) in _ABBREVIATIONS:
            continue
        if candidate:
            sentences.append(candidate)
        current = []
    tail = "".join(current).strip()
    if tail:
        sentences.append(tail)
    return sentences


def count_syllables(word: str) -> int:
    """Vowel-group syllable heuristic with silent-e handling."""
    w = word.lower()
    if not w:
        return 0
    count = 0
    prev_vowel = False
    for i, ch in enumerate(w):
        is_vowel = i > 0 if ch == "y" else ch in "aeiou"
        if is_vowel and not prev_vowel:
            count += 1
        prev_vowel = is_vowel

    if len(w) >= 2 and w[-1] == "e" and count > 1:
        # Consonant + "le" (table, simple) keeps its syllable.
        if w[-2] == "l" and len(w) >= 3 and w[-3] not in "aeiou":
            return max(count, 1)
        if w[-2] not in "aeiou":
            count -= 1
    return max(count, 1)


def average_sentence_length(sentences: list[str]) -> float:
    if not sentences:
        return 0.0
    return sum(len(s.split()) for s in sentences) / len(sentences)


def flesch_kincaid_grade(text: str) -> float:
    sentences = segment_sentences(text)
    words = text.split()
    if not sentences or not words:
        return 1.0
    syllables = sum(count_syllables(w) for w in words)
    grade = 0.39 * (len(words) / len(sentences)) + 11.8 * (syllables / len(words)) - 15.59
    return DIMENSION_SPECS["vocabulary_complexity"].clamp(grade)


def tone_score(text: str) -> float:
    words = text.split()
    if not words:
        return 5.0
    lowered = [w.lower() for w in words]
    formal = sum(1 for w in lowered if any(m in w for m in _FORMAL_MARKERS))
    casual = sum(1 for w in lowered if any(m in w for m in _CASUAL_MARKERS))
    contractions = sum(1 for w in words if "'" in w)
    total = formal + casual + contractions
    if total == 0:
        return 5.0
    ratio = (formal - casual - contractions) / total
    return DIMENSION_SPECS["tone"].clamp(5.0 + ratio * 5.0)


def bullet_ratio(text: str) -> float:
    content = [line.strip() for line in text.splitlines() if line.strip()]
    if not content:
        return 0.0
    bullets = sum(1 for line in content if line.startswith(_BULLET_PREFIXES))
    return bullets / len(content)


def technical_depth(text: str) -> float:
    words = text.split()
    if not words:
        return 1.0
    technical = 0
    for word in words:
        letters = [c for c in word if c.isalpha()]
        if len(word) >= 2 and letters and all(c.isupper() for c in letters):
            technical += 1
        elif any(term in word.lower() for term in _TECH_TERMS):
            technical += 1
    return DIMENSION_SPECS["technical_depth"].clamp(technical / len(words) * 100.0)


def length_preference(text: str) -> float:
    return DIMENSION_SPECS["length_preference"].clamp(len(text.split()) / WORDS_PER_LENGTH_POINT)


def common_phrases(text: str, limit: int = MAX_COMMON_PHRASES) -> list[str]:
    """3- to 5-word phrases occurring at least twice, most frequent first."""
    words = [w.lower() for w in text.split()]
    counts: Counter[str] = Counter()
    for n in range(3, 6):
        for i in range(len(words) - n + 1):
            counts[" ".join(words[i:i + n])] += 1
    repeated = [(phrase, c) for phrase, c in counts.items() if c >= 2]
    repeated.sort(key=lambda item: (-item[1], item[0]))
    return [phrase for phrase, _ in repeated[:limit]]


def analyze_text(text: str) -> StyleParameters:
    """Analyze one piece of writing."""
    sentences = segment_sentences(text)
    return StyleParameters(
        tone=tone_score(text),
        sentence_length=average_sentence_length(sentences),
        vocabulary_complexity=flesch_kincaid_grade(text),
        bullet_ratio=bullet_ratio(text),
        technical_depth=technical_depth(text),
        length_preference=length_preference(text),
        common_phrases=common_phrases(text),
    )


def neutral_parameters() -> StyleParameters:
    return StyleParameters(**{name: spec.neutral for name, spec in DIMENSION_SPECS.items()})


def dimension_magnitude(name: str, value: float) -> float:
    """|value - neutral| relative to the dimension range."""
    spec = DIMENSION_SPECS[name]
    return abs(spec.clamp(value) - spec.neutral) / spec.span
