from pydantic import BaseModel
from typing import Literal


class SynthesizeRequest(BaseModel):
    steps: str  # Free-text steps or a pre-formatted Mermaid flowchart
    direction: Literal["TD", "LR"] = "TD"
    rasterize: bool = True  # Also return the PNG artifact


class RasterizeRequest(BaseModel):
    """SVG markup produced by a previous synthesize call"""
    svg: str


class RerenderRequest(BaseModel):
    """Same steps, laid out in the other primary direction"""
    steps: str
    direction: Literal["TD", "LR"] = "LR"


class ValidateRequest(BaseModel):
    source: str

