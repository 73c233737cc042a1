"""
Three-tier render cascade.

    tier 1  DirectRenderTier        render the normalized source
    tier 2  CollaboratorRepairTier  ask the collaborator to fix the original source
    tier 3  FallbackTier            build a linear diagram from the step text

Each tier either succeeds, hands over to the next tier, or (tier 3 only)
raises. ParseDefectError and RepairFailedError are recorded on the context
and never leave the cascade.
"""

import logging
from typing import List, Optional

from app.config import COLLABORATOR_TIMEOUT
from app.dsl.mermaid import is_empty_diagram, normalize_mermaid
from app.dsl.steps import build_mermaid_from_steps
from app.inference.collaborator import Collaborator, call_collaborator
from app.inference.prompt import build_repair_prompt
from app.ir.diagram import RenderResult
from app.ir.errors import (
    CollaboratorError,
    DiagramPipelineError,
    EmptyInputError,
    FatalRenderError,
    ParseDefectError,
    RendererError,
    RepairFailedError,
)
from app.pipeline.context import PipelineContext
from app.pipeline.stage import CascadeTier, TierOutcome
from app.renderer.mermaid_renderer import VectorRenderer, render_svg
from app.validation.diagram_validator import get_validation_summary

logger = logging.getLogger(__name__)


def _record(context: PipelineContext, error: DiagramPipelineError) -> TierOutcome:
    context.add_error(f"{type(error).__name__}: {error.message}")
    logger.warning("[CASCADE] %s", error.message)
    return TierOutcome.NEXT_TIER


class DirectRenderTier(CascadeTier):
    name = "direct_render"
    tier = 1

    def __init__(self, renderer: VectorRenderer):
        self.renderer = renderer

    async def run(self, context: PipelineContext) -> TierOutcome:
        source = context.diagram_source or ""
        logger.info("[CASCADE] tier 1 source check: %s", get_validation_summary(source))

        # A source without statements renders as a blank diagram
        if is_empty_diagram(source):
            context.last_render_error = "Source declares no nodes or edges"
            return _record(context, ParseDefectError(
                "Source contains no diagram statements",
                diagram_source=source,
            ))

        try:
            svg_markup = await render_svg(self.renderer, source)
        except RendererError as e:
            context.last_render_error = e.message
            return _record(context, ParseDefectError(
                f"Direct render failed: {e.message}",
                diagram_source=source,
            ))

        context.svg_markup = svg_markup
        context.tier = self.tier
        return TierOutcome.SUCCESS


class CollaboratorRepairTier(CascadeTier):
    name = "collaborator_repair"
    tier = 2

    def __init__(
        self,
        renderer: VectorRenderer,
        collaborator: Optional[Collaborator],
        timeout: float = COLLABORATOR_TIMEOUT,
    ):
        self.renderer = renderer
        self.collaborator = collaborator
        self.timeout = timeout

    async def run(self, context: PipelineContext) -> TierOutcome:
        broken = context.original_source or context.diagram_source or ""

        if self.collaborator is None:
            return _record(context, RepairFailedError(
                "No collaborator configured for repair",
                diagram_source=broken,
            ))

        prompt = build_repair_prompt(broken, context.last_render_error, context.direction)
        try:
            response = await call_collaborator(self.collaborator, prompt, self.timeout)
        except CollaboratorError as e:
            return _record(context, RepairFailedError(
                f"Repair not available: {e.message}",
                diagram_source=broken,
            ))

        repaired = normalize_mermaid(response, context.direction)
        if is_empty_diagram(repaired):
            return _record(context, RepairFailedError(
                "Repaired source contains no diagram statements",
                diagram_source=repaired,
            ))

        try:
            svg_markup = await render_svg(self.renderer, repaired)
        except RendererError as e:
            context.last_render_error = e.message
            return _record(context, RepairFailedError(
                f"Repaired source failed to render: {e.message}",
                diagram_source=repaired,
            ))

        context.diagram_source = repaired
        context.svg_markup = svg_markup
        context.tier = self.tier
        return TierOutcome.SUCCESS


class FallbackTier(CascadeTier):
    name = "deterministic_fallback"
    tier = 3

    def __init__(self, renderer: VectorRenderer):
        self.renderer = renderer

    async def run(self, context: PipelineContext) -> TierOutcome:
        try:
            source = build_mermaid_from_steps(context.steps_text, context.direction)
        except EmptyInputError as e:
            e.diagram_source = context.diagram_source
            raise

        try:
            svg_markup = await render_svg(self.renderer, source)
        except RendererError as e:
            raise FatalRenderError(
                f"Fallback diagram could not be rendered: {e.message}",
                diagram_source=source,
            ) from e

        context.diagram_source = source
        context.svg_markup = svg_markup
        context.tier = self.tier
        return TierOutcome.SUCCESS


class RepairCascade:
    """
    Runs the tiers in order, once each, and stops at the first success.

    Usage:
        cascade = RepairCascade.default(renderer, collaborator)
        result = await cascade.run(context)
    """

    def __init__(self, tiers: List[CascadeTier]):
        self.tiers = tiers

    @classmethod
    def default(
        cls,
        renderer: VectorRenderer,
        collaborator: Optional[Collaborator] = None,
        timeout: float = COLLABORATOR_TIMEOUT,
    ) -> "RepairCascade":
        return cls([
            DirectRenderTier(renderer),
            CollaboratorRepairTier(renderer, collaborator, timeout),
            FallbackTier(renderer),
        ])

    async def run(self, context: PipelineContext) -> RenderResult:
        for tier in self.tiers:
            context.attempts.append(tier.name)
            logger.info("[CASCADE] tier %s: %s", tier.tier, tier.name)

            outcome = await tier.run(context)
            if outcome is TierOutcome.SUCCESS:
                logger.info("[CASCADE] rendered at tier %s", tier.tier)
                return RenderResult.success(context.svg_markup)

        # Only reachable with a custom tier list that ends in a non-fatal tier
        raise FatalRenderError(
            "Every render tier failed",
            diagram_source=context.diagram_source,
        )
