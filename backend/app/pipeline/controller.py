import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from app.config import COLLABORATOR_TIMEOUT, RASTER_PADDING, RASTER_PIXEL_RATIO
from app.dsl.mermaid import is_empty_diagram, looks_like_mermaid, normalize_mermaid
from app.dsl.steps import build_mermaid_from_steps
from app.inference.collaborator import Collaborator, call_collaborator, collaborator_from_client
from app.inference.config import get_llm_client
from app.inference.prompt import build_draft_prompt
from app.ir.diagram import Direction, ImageArtifact
from app.ir.errors import CollaboratorError, EmptyInputError, FatalRenderError
from app.pipeline.cascade import DirectRenderTier, RepairCascade
from app.pipeline.context import PipelineContext
from app.pipeline.stage import TierOutcome
from app.renderer.mermaid_renderer import VectorRenderer, get_renderer
from app.renderer.rasterizer import EncodeStrategy, rasterize_svg

logger = logging.getLogger(__name__)


@dataclass
class SynthesisResult:
    diagram_source: str
    svg_markup: str
    tier: int
    errors: List[str] = field(default_factory=list)


class DiagramPipeline:
    """
    Caller-facing entry point: steps -> diagram source -> SVG -> PNG.

    Holds collaborators only; every call gets its own PipelineContext.
    """

    def __init__(
        self,
        renderer: VectorRenderer,
        collaborator: Optional[Collaborator] = None,
        strategies: Optional[Sequence[EncodeStrategy]] = None,
        collaborator_timeout: float = COLLABORATOR_TIMEOUT,
        padding: int = RASTER_PADDING,
        pixel_ratio: float = RASTER_PIXEL_RATIO,
    ):
        self.renderer = renderer
        self.collaborator = collaborator
        self.strategies = strategies
        self.collaborator_timeout = collaborator_timeout
        self.padding = padding
        self.pixel_ratio = pixel_ratio

    @classmethod
    def from_config(cls) -> "DiagramPipeline":
        return cls(
            renderer=get_renderer(),
            collaborator=collaborator_from_client(get_llm_client()),
        )

    async def _draft_source(self, context: PipelineContext) -> Tuple[str, str]:
        """
        Decide the tier-1 source. Returns (original, normalized).

        Pre-formatted diagram text is used as-is; prose steps are drafted by
        the collaborator, or built heuristically when drafting fails.
        """
        steps = context.steps_text

        if looks_like_mermaid(steps):
            return steps, normalize_mermaid(steps, context.direction)

        if self.collaborator is not None:
            prompt = build_draft_prompt(steps, context.direction)
            try:
                drafted = await call_collaborator(self.collaborator, prompt, self.collaborator_timeout)
                normalized = normalize_mermaid(drafted, context.direction)
                if is_empty_diagram(normalized):
                    raise CollaboratorError("Collaborator draft contains no diagram statements")
                return drafted, normalized
            except CollaboratorError as e:
                context.add_error(f"CollaboratorError: {e.message}")
                logger.warning("[CASCADE] drafting failed, using step builder: %s", e.message)

        built = build_mermaid_from_steps(steps, context.direction)
        return built, built

    async def synthesize_and_render(self, steps: str, direction: Direction = "TD") -> SynthesisResult:
        """
        Full cascade: draft, direct render, collaborator repair, fallback.

        Raises:
            EmptyInputError: no step text
            FatalRenderError: even the fallback diagram could not be rendered
        """
        if not steps or not steps.strip():
            raise EmptyInputError()

        context = PipelineContext(steps_text=steps, direction=direction)
        context.original_source, context.diagram_source = await self._draft_source(context)

        cascade = RepairCascade.default(self.renderer, self.collaborator, self.collaborator_timeout)
        await cascade.run(context)

        return SynthesisResult(
            diagram_source=context.diagram_source,
            svg_markup=context.svg_markup,
            tier=context.tier,
            errors=list(context.errors),
        )

    async def rasterize(self, svg_markup: str) -> ImageArtifact:
        return await rasterize_svg(
            svg_markup,
            strategies=self.strategies,
            padding=self.padding,
            pixel_ratio=self.pixel_ratio,
        )

    async def render_variant(self, steps: str, direction: Direction) -> SynthesisResult:
        """Heuristic build in the given direction, rendered at tier 1 only."""
        source = build_mermaid_from_steps(steps, direction)

        context = PipelineContext(
            steps_text=steps,
            direction=direction,
            original_source=source,
            diagram_source=source,
        )
        outcome = await DirectRenderTier(self.renderer).run(context)
        if outcome is not TierOutcome.SUCCESS:
            raise FatalRenderError(
                f"Could not render the {direction} variant: {context.last_render_error}",
                diagram_source=source,
            )

        return SynthesisResult(
            diagram_source=source,
            svg_markup=context.svg_markup,
            tier=context.tier,
        )

    async def rerender_in_direction(self, steps: str, direction: Direction) -> ImageArtifact:
        """
        Raises:
            EmptyInputError: before anything is rendered
            FatalRenderError / RasterizationError: no partial artifact is returned
        """
        variant = await self.render_variant(steps, direction)
        return await self.rasterize(variant.svg_markup)


# ============================================================
# MODULE HELPERS
# ============================================================

async def synthesize_and_render(steps: str, direction: Direction = "TD") -> SynthesisResult:
    return await DiagramPipeline.from_config().synthesize_and_render(steps, direction)


async def rasterize(svg_markup: str) -> ImageArtifact:
    return await DiagramPipeline.from_config().rasterize(svg_markup)


async def rerender_in_direction(steps: str, direction: Direction) -> ImageArtifact:
    return await DiagramPipeline.from_config().rerender_in_direction(steps, direction)
