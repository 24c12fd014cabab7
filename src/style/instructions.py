# src/style/instructions.py - v1
"""Render style parameters as prompt directives.

Each numeric dimension becomes one directive line. The context builder may
pass `dimensions` to keep only the highest-magnitude ones.
"""

from __future__ import annotations

from draftsmith.core.models import STYLE_DIMENSIONS, StyleParameters

MAX_SIGNATURE_PHRASES = 3

HEADER = "VOICE CALIBRATION (match the user's natural writing style):"
DEFAULT_VOICE_NOTE = (
    "No writing samples have been learned yet; use a balanced, professional voice."
)


def tone_label(score: float) -> str:
    bucket = int(score)
    if 1 <= bucket <= 3:
        return "casual and conversational"
    if 7 <= bucket <= 10:
        return "professional and formal"
    return "balanced (professional yet approachable)"


def technical_depth_label(score: float) -> str:
    bucket = int(score)
    if 1 <= bucket <= 3:
        return "layman (avoid jargon, explain concepts simply)"
    if 7 <= bucket <= 10:
        return "expert (use domain terminology freely)"
    return "intermediate (some technical terms are fine)"


def sentence_length_label(avg_words: float) -> str:
    bucket = int(avg_words)
    if bucket <= 12:
        return "short"
    if bucket <= 20:
        return "moderate"
    return "longer"


def length_label(score: float) -> str:
    bucket = int(score)
    if bucket <= 3:
        return "brief (well under 150 words)"
    if bucket >= 7:
        return "detailed (up to 300 words)"
    return "standard (around 200 words)"


def directive_for(name: str, params: StyleParameters) -> str:
    if name == "tone":
        return f"- Tone: Write in a {tone_label(params.tone)} tone (calibrated score: {params.tone:.1f}/10)"
    if name == "sentence_length":
        return (
            f"- Sentence length: Use {sentence_length_label(params.sentence_length)} sentences "
            f"(target avg: {params.sentence_length:.0f} words)"
        )
    if name == "vocabulary_complexity":
        return f"- Vocabulary: Target Flesch-Kincaid grade level {params.vocabulary_complexity:.1f}"
    if name == "bullet_ratio":
        bullets = round(params.bullet_ratio * 100)
        return f"- Structure: Mix paragraphs {100 - bullets}% and bullet points {bullets}%"
    if name == "technical_depth":
        return (
            f"- Technical depth: {technical_depth_label(params.technical_depth)} "
            f"(calibrated: {params.technical_depth:.1f}/10)"
        )
    if name == "length_preference":
        return f"- Length: {length_label(params.length_preference)}"
    raise KeyError(name)


def build_style_directives(
    params: StyleParameters,
    dimensions: list[str] | None = None,
    is_default: bool = False,
) -> str:
    """Assemble the voice-calibration block for the system prompt."""
    selected = [d for d in STYLE_DIMENSIONS if dimensions is None or d in dimensions]
    lines = [HEADER]
    if is_default:
        lines.append(f"- {DEFAULT_VOICE_NOTE}")
    lines.extend(directive_for(name, params) for name in selected)
    if params.common_phrases:
        phrases = ", ".join(f'"{p}"' for p in params.common_phrases[:MAX_SIGNATURE_PHRASES])
        lines.append(f"- Signature phrases: Naturally incorporate variations of: {phrases}")
    return "\n".join(lines)
