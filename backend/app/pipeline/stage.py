from abc import ABC, abstractmethod
from enum import Enum

from app.pipeline.context import PipelineContext


class TierOutcome(Enum):
    SUCCESS = "success"
    NEXT_TIER = "next_tier"


class CascadeTier(ABC):
    name: str
    tier: int

    @abstractmethod
    async def run(self, context: PipelineContext) -> TierOutcome:
        """
        Must:
        - read from context
        - write to context (diagram_source, svg_markup, errors)
        - NEVER call other tiers
        - return NEXT_TIER instead of raising, unless the failure is fatal
        """
        pass
