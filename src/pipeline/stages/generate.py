# src/pipeline/stages/generate.py - v2
"""Phase 2: draft generation (critical, no fallback).

Builds the budgeted prompt, streams the completion and feeds fragments to a
TokenBatcher that publishes TokenBatch events. Cancellation is checked on
every fragment; text received so far is kept on the context as partial
output whatever the outcome.

When the runner retries after a mid-stream failure, the new stream is
checked against the text already published and only the remainder is
emitted, so the joined TokenBatch text always equals the generated text.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from draftsmith.collaborators.job_analyzer import passthrough_analysis
from draftsmith.core.errors import CancellationRequested, GenerationServiceError
from draftsmith.core.models import STAGE_GENERATE, StageResult
from draftsmith.llm.base_client import BaseGenerationClient
from draftsmith.llm.models import TokenUsage
from draftsmith.llm.token_budget import estimate_tokens
from draftsmith.pipeline.events import TokenBatch
from draftsmith.pipeline.stages.base_stage import BaseStage
from draftsmith.pipeline.state import RunContext
from draftsmith.pipeline.streaming import DEFAULT_FLUSH_INTERVAL_S, DEFAULT_QUEUE_SIZE, TokenBatcher
from draftsmith.prompt.context_builder import ContextBuilder
from draftsmith.prompt.templates import GENERIC_TEMPLATE

logger = logging.getLogger(__name__)


@dataclass
class GenerationOutput:
    text: str
    usage: TokenUsage
    model: str
    usage_estimated: bool = False


class GenerateStage(BaseStage):
    critical = True

    def __init__(
        self,
        client: BaseGenerationClient,
        context_builder: ContextBuilder,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        flush_interval_s: float = DEFAULT_FLUSH_INTERVAL_S,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._client = client
        self._builder = context_builder
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.flush_interval_s = flush_interval_s
        self.queue_size = queue_size

    @property
    def name(self) -> str:
        return STAGE_GENERATE

    async def execute(self, ctx: RunContext) -> GenerationOutput:
        bundle = self._builder.build(
            ctx.job_analysis or passthrough_analysis(ctx.request.job),
            ctx.template or GENERIC_TEMPLATE,
            ctx.style,
            style_is_default=ctx.style_is_default,
        )
        ctx.prompt_bundle = bundle
        prompt = bundle.to_prompt(self.max_tokens, self.temperature)

        def emit(text: str, count: int, sequence: int) -> None:
            ctx.streamed_text += text
            ctx.stream_sequence = sequence
            ctx.emit(TokenBatch(run_id=ctx.run_id, text=text, fragment_count=count, sequence=sequence))

        # A retried attempt replays text observers already have; only the
        # part beyond it is published.
        delivered = ctx.streamed_text
        if delivered:
            logger.info("Resuming stream after %d already delivered chars", len(delivered))
        batcher = TokenBatcher(
            emit,
            flush_interval_s=self.flush_interval_s,
            max_queue=self.queue_size,
            is_cancelled=lambda: ctx.cancelled,
            sequence_offset=ctx.stream_sequence,
        )
        consumer = asyncio.ensure_future(batcher.run())
        received = ""
        usage: TokenUsage | None = None
        model: str | None = None
        try:
            async for chunk in self._client.stream(prompt):
                if ctx.cancelled:
                    break
                if chunk.text:
                    fresh = _unsent_suffix(delivered, received, chunk.text)
                    received += chunk.text
                    if fresh:
                        await batcher.put(fresh)
                if chunk.usage is not None:
                    usage = chunk.usage
                if chunk.model:
                    model = chunk.model
        finally:
            batcher.close()
            await consumer
            ctx.partial_text = max(received, ctx.streamed_text, key=len)

        if ctx.cancelled:
            raise CancellationRequested(f"Run {ctx.run_id} cancelled during generation")
        if len(received) < len(delivered):
            raise GenerationServiceError(
                "Retried stream ended before the text already delivered to observers"
            )

        text = received.strip()
        if not text:
            raise GenerationServiceError("Generation service returned no text")

        estimated = usage is None
        if estimated:
            usage = TokenUsage(input_tokens=bundle.estimated_tokens, output_tokens=estimate_tokens(text))
            logger.warning("No usage reported by generation service; using estimate")
        logger.info(
            "Generated %d chars in %d batch(es), %d tokens",
            len(text), batcher.flush_count, usage.total_tokens,
        )
        return GenerationOutput(text, usage, model or self._client.model_name, estimated)

    def apply(self, ctx: RunContext, result: StageResult) -> None:
        output: GenerationOutput = result.payload
        ctx.output_text = output.text
        ctx.usage = output.usage
        ctx.model = output.model
        ctx.run.output_text = output.text


def _unsent_suffix(delivered: str, received: str, fragment: str) -> str:
    """Return the part of `fragment` that extends past `delivered`.

    `received` is the text of the current attempt before `fragment`. The
    overlap with `delivered` must match exactly: observers cannot un-see
    text, so a retry that rewrites it is a permanent failure.
    """
    start = len(received)
    end = start + len(fragment)
    if start < len(delivered):
        overlap = min(end, len(delivered))
        if fragment[: overlap - start] != delivered[start:overlap]:
            raise GenerationServiceError(
                "Retried stream diverged from the text already delivered to observers"
            )
    return fragment[max(len(delivered) - start, 0):]
