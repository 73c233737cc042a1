from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class PipelineContext:
    # Raw input (authoritative)
    steps_text: str
    direction: str = "TD"

    # Diagram source as it entered the cascade, before normalization
    original_source: Optional[str] = None
    # Current diagram source (the one shown to the caller)
    diagram_source: Optional[str] = None

    svg_markup: Optional[str] = None
    # Tier that produced svg_markup: 1 direct, 2 repaired, 3 fallback
    tier: Optional[int] = None
    attempts: List[str] = field(default_factory=list)
    # Renderer message from the most recent failed attempt, fed to the repair prompt
    last_render_error: Optional[str] = None

    # Non-fatal errors from tiers 1 and 2
    errors: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
