# src/prompt/context_builder.py - v1
"""Token-budgeted prompt assembly for the generate stage.

The system prompt carries base instructions, the selected template and the
style directives. Caller-supplied job text is sanitized and appears only in
the user message, inside the <job_content> block.

On overflow, compression tiers are applied in order, re-estimating after
each step and stopping as soon as the prompt fits:
  1. job facts reduced to key entities (verbatim text dropped)
  2. template examples reduced to `min_examples`, then to none
  3. style directives trimmed to the `style_top_n` highest-magnitude dimensions
Every tier only removes content, so estimates never grow from one tier to
the next. Text is never cut mid-sentence: if all tiers are exhausted the
build fails with ContextTooLargeError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from draftsmith.config.settings import Settings
from draftsmith.core.errors import ContextTooLargeError
from draftsmith.core.models import STYLE_DIMENSIONS, JobAnalysis, StyleParameters, Template
from draftsmith.llm.models import Message, Prompt
from draftsmith.llm.token_budget import estimate_tokens, fits_budget
from draftsmith.prompt.sanitizer import sanitize, wrap_content
from draftsmith.prompt.templates import BASE_INSTRUCTIONS
from draftsmith.style.analyzer import dimension_magnitude
from draftsmith.style.instructions import build_style_directives

logger = logging.getLogger(__name__)

USER_INSTRUCTION = "Generate a proposal for this job."


@dataclass
class PromptBundle:
    """Assembled prompt plus budgeting metadata."""

    system: str
    messages: list[Message]
    estimated_tokens: int
    tiers_applied: list[int] = field(default_factory=list)
    step_estimates: list[int] = field(default_factory=list)

    def to_prompt(self, max_tokens: int = 1024, temperature: float = 0.7) -> Prompt:
        return Prompt(
            system=self.system,
            messages=list(self.messages),
            max_tokens=max_tokens,
            temperature=temperature,
        )


@dataclass
class _Layout:
    include_verbatim: bool = True
    example_count: int | None = None
    style_dimensions: list[str] | None = None


class ContextBuilder:
    """Builds role-separated prompts within a fixed token budget."""

    def __init__(
        self,
        max_tokens: int = 6000,
        min_examples: int = 1,
        style_top_n: int = 3,
    ) -> None:
        self.max_tokens = max_tokens
        self.min_examples = min_examples
        self.style_top_n = style_top_n

    @classmethod
    def from_settings(cls, settings: Settings) -> ContextBuilder:
        return cls(
            max_tokens=settings.context_max_tokens,
            min_examples=settings.context_min_examples,
            style_top_n=settings.context_style_top_n,
        )

    def build(
        self,
        job_analysis: JobAnalysis,
        template: Template,
        style: StyleParameters,
        style_is_default: bool = False,
    ) -> PromptBundle:
        """Assemble the prompt, compressing tier by tier on overflow.

        Raises:
            ContextTooLargeError: Still over budget after every tier.
        """
        layout = _Layout()
        tiers: list[int] = []
        bundle = self._render(job_analysis, template, style, style_is_default, layout, tiers)
        estimates = [bundle.estimated_tokens]

        for tier, expand in self._tier_steps(template, style):
            if fits_budget(bundle.estimated_tokens, self.max_tokens):
                break
            steps = expand(layout)
            if not steps:
                continue
            tiers.append(tier)
            for step in steps:
                layout = step
                bundle = self._render(job_analysis, template, style, style_is_default, layout, tiers)
                estimates.append(bundle.estimated_tokens)
                if fits_budget(bundle.estimated_tokens, self.max_tokens):
                    break

        bundle.step_estimates = estimates
        if not fits_budget(bundle.estimated_tokens, self.max_tokens):
            logger.warning(
                "Prompt over budget after all tiers: %d > %d", bundle.estimated_tokens, self.max_tokens
            )
            raise ContextTooLargeError(bundle.estimated_tokens, self.max_tokens)
        if tiers:
            logger.info("Prompt compressed with tiers %s -> %d tokens", tiers, bundle.estimated_tokens)
        return bundle

    # --- Tiers ---

    def _tier_steps(self, template: Template, style: StyleParameters):
        def drop_verbatim(layout: _Layout) -> list[_Layout]:
            return [_Layout(False, layout.example_count, layout.style_dimensions)]

        def reduce_examples(layout: _Layout) -> list[_Layout]:
            current = len(template.examples) if layout.example_count is None else layout.example_count
            counts = sorted({c for c in (min(self.min_examples, current), 0) if c < current}, reverse=True)
            return [_Layout(layout.include_verbatim, c, layout.style_dimensions) for c in counts]

        def trim_style(layout: _Layout) -> list[_Layout]:
            return [_Layout(layout.include_verbatim, layout.example_count, self.top_dimensions(style))]

        return ((1, drop_verbatim), (2, reduce_examples), (3, trim_style))

    def top_dimensions(self, style: StyleParameters) -> list[str]:
        """Top-N dimensions by |value - neutral| / range; ties keep canonical order."""
        values = style.dimensions()
        ranked = sorted(
            STYLE_DIMENSIONS,
            key=lambda name: (-dimension_magnitude(name, values[name]), STYLE_DIMENSIONS.index(name)),
        )
        return ranked[: self.style_top_n]

    # --- Rendering ---

    def _render(
        self,
        analysis: JobAnalysis,
        template: Template,
        style: StyleParameters,
        style_is_default: bool,
        layout: _Layout,
        tiers: list[int],
    ) -> PromptBundle:
        examples = template.examples if layout.example_count is None else template.examples[: layout.example_count]
        system_parts = [BASE_INSTRUCTIONS, _render_template(template, examples)]
        system_parts.append(
            build_style_directives(style, dimensions=layout.style_dimensions, is_default=style_is_default)
        )
        system = "\n\n".join(system_parts)

        facts = _render_job_facts(analysis, include_verbatim=layout.include_verbatim)
        user = f"{wrap_content(facts)}\n\n{USER_INSTRUCTION}"
        messages = [Message(role="user", content=user)]
        return PromptBundle(
            system=system,
            messages=messages,
            estimated_tokens=estimate_tokens(system) + estimate_tokens(user),
            tiers_applied=list(tiers),
        )


def _render_template(template: Template, examples: list[str]) -> str:
    lines = [f"OPENING STRATEGY: {template.name}", template.instructions]
    if examples:
        lines.append("Example openings:")
        lines.extend(f"- {e}" for e in examples)
    return "\n".join(lines)


def _render_job_facts(analysis: JobAnalysis, include_verbatim: bool) -> str:
    lines: list[str] = []
    if analysis.title:
        lines.append(f"Title: {sanitize(analysis.title)}")
    if analysis.key_entities:
        lines.append("Key entities: " + ", ".join(sanitize(e) for e in analysis.key_entities))
    if include_verbatim:
        if analysis.skills:
            lines.append("Skills: " + ", ".join(sanitize(s) for s in analysis.skills))
        if analysis.budget:
            lines.append(f"Budget: {sanitize(analysis.budget)}")
        if analysis.hidden_needs:
            lines.append("Hidden needs: " + ", ".join(sanitize(n) for n in analysis.hidden_needs))
        lines.append("")
        lines.append(sanitize(analysis.raw_text))
    return "\n".join(lines).strip()
