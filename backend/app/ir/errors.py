from typing import List, Optional


class DiagramPipelineError(Exception):
    """Base class for every failure raised by the diagram pipeline."""

    def __init__(self, message: str, diagram_source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        # Last known diagram source, kept so callers can offer it for manual editing
        self.diagram_source = diagram_source


class ParseDefectError(DiagramPipelineError):
    """Direct render of the diagram source failed. Recovered by the cascade."""


class RepairFailedError(DiagramPipelineError):
    """Collaborator-repaired source failed to render. Recovered by the cascade."""


class CollaboratorError(DiagramPipelineError):
    """The external text-generation call failed, timed out or returned nothing."""


class EmptyInputError(DiagramPipelineError):
    """No step text was provided."""

    def __init__(self, message: str = "No workflow steps were provided"):
        super().__init__(message)


class RendererError(DiagramPipelineError):
    """The vector renderer rejected the diagram source."""


class FatalRenderError(DiagramPipelineError):
    """The deterministic fallback diagram could not be rendered."""


class RasterizationError(DiagramPipelineError):
    """Every encode strategy failed to turn the SVG into a PNG."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []
