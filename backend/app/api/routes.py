import logging

from fastapi import APIRouter, Depends

from app.api.serializers import serialize_error, serialize_image
from app.ir.errors import DiagramPipelineError, RasterizationError
from app.pipeline.controller import DiagramPipeline
from app.schemas import (
    RasterizeRequest,
    RerenderRequest,
    SynthesizeRequest,
    ValidateRequest,
)
from app.validation import validate_diagram

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/diagram",
    tags=["diagram"],
)


def get_pipeline() -> DiagramPipeline:
    return DiagramPipeline.from_config()


@router.post("/synthesize")
async def synthesize_diagram(
    request: SynthesizeRequest,
    pipeline: DiagramPipeline = Depends(get_pipeline),
):
    try:
        result = await pipeline.synthesize_and_render(request.steps, request.direction)
    except DiagramPipelineError as e:
        logger.warning("[API] synthesize failed: %s", e.message)
        return serialize_error(e)
    except Exception as e:
        logger.exception("[API] synthesize crashed")
        return {"status": "error", "message": str(e), "diagram_source": ""}

    response = {
        "status": "warning" if result.errors else "success",
        "diagram_source": result.diagram_source,
        "svg": result.svg_markup,
        "tier": result.tier,
        "warnings": result.errors,
    }

    if not request.rasterize:
        return response

    try:
        image = await pipeline.rasterize(result.svg_markup)
    except RasterizationError as e:
        logger.warning("[API] rasterize failed: %s", e.message)
        error = serialize_error(e)
        # Keep the rendered source even though no image could be produced
        error.update(
            diagram_source=result.diagram_source,
            svg=result.svg_markup,
            tier=result.tier,
            warnings=result.errors,
        )
        return error

    response["image"] = serialize_image(image)
    return response


@router.post("/rasterize")
async def rasterize_diagram(
    request: RasterizeRequest,
    pipeline: DiagramPipeline = Depends(get_pipeline),
):
    try:
        image = await pipeline.rasterize(request.svg)
    except RasterizationError as e:
        return serialize_error(e)

    return {
        "status": "success",
        "image": serialize_image(image),
    }


@router.post("/rerender")
async def rerender_diagram(
    request: RerenderRequest,
    pipeline: DiagramPipeline = Depends(get_pipeline),
):
    try:
        variant = await pipeline.render_variant(request.steps, request.direction)
    except DiagramPipelineError as e:
        logger.warning("[API] rerender failed: %s", e.message)
        return serialize_error(e)

    try:
        image = await pipeline.rasterize(variant.svg_markup)
    except RasterizationError as e:
        logger.warning("[API] rasterize failed: %s", e.message)
        e.diagram_source = variant.diagram_source
        return serialize_error(e)

    return {
        "status": "success",
        "direction": request.direction,
        "diagram_source": variant.diagram_source,
        "image": serialize_image(image),
    }


@router.post("/validate")
def validate_source(request: ValidateRequest):
    result = validate_diagram(request.source)
    return {
        "status": "success" if result.is_valid else "warning",
        "summary": result.get_summary(),
        **result.to_dict(),
    }
