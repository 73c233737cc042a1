from typing import Any, Dict

from app.ir.diagram import ImageArtifact
from app.ir.errors import DiagramPipelineError, RasterizationError


def serialize_image(artifact: ImageArtifact) -> Dict[str, Any]:
    """JSON payload for a PNG artifact, handed to the caller unchanged."""
    return {
        "mime_type": artifact.mime_type,
        "base64": artifact.base64,
        "data_url": artifact.data_url,
        "width": artifact.width,
        "height": artifact.height,
        "scale": artifact.scale,
    }


def serialize_error(error: DiagramPipelineError) -> Dict[str, Any]:
    """
    Error payload. The last diagram source always travels with it so the
    caller can offer it for manual editing.
    """
    payload = {
        "status": "error",
        "error": type(error).__name__,
        "message": error.message,
        "diagram_source": error.diagram_source or "",
    }
    if isinstance(error, RasterizationError):
        payload["errors"] = error.errors
    return payload
