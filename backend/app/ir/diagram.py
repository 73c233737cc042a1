from dataclasses import dataclass
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


Direction = Literal["TD", "LR"]


class Role(str, Enum):
    HUMAN = "human"
    AI = "ai"
    UNCLASSIFIED = "unclassified"


class DiagramNode(BaseModel):
    id: str
    label: str
    role: Role = Role.UNCLASSIFIED


class DiagramEdge(BaseModel):
    source: str
    target: str


class ClassAssignment(BaseModel):
    node_id: str
    class_name: str


class DiagramGraph(BaseModel):
    """Parsed view of a Mermaid flowchart source."""
    direction: Optional[str] = None
    directive_count: int = 0
    class_defs: List[str] = Field(default_factory=list)
    nodes: List[DiagramNode] = Field(default_factory=list)
    edges: List[DiagramEdge] = Field(default_factory=list)
    classes: List[ClassAssignment] = Field(default_factory=list)
    # ids declared more than once with different labels
    conflicting_ids: List[str] = Field(default_factory=list)
    directive_first: bool = False

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def referenced_ids(self) -> List[str]:
        ids = []
        for e in self.edges:
            ids.extend([e.source, e.target])
        ids.extend(c.node_id for c in self.classes)
        return ids


@dataclass
class RenderResult:
    """Successful cascade outcome; failures raise a DiagramPipelineError instead."""

    svg_markup: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.svg_markup)

    @classmethod
    def success(cls, svg_markup: str):
        return cls(svg_markup=svg_markup)


class ImageArtifact(BaseModel):
    base64: str
    mime_type: Literal["image/png"] = "image/png"
    data_url: str
    width: int                  # PNG pixel width (padding and scale included)
    height: int
    scale: int = 2
    content_width: float = 0    # resolved SVG dimensions before padding/scale
    content_height: float = 0
