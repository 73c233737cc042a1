"""Shared fakes: a scriptable vector renderer, collaborator and encode strategies."""

import asyncio

from PIL import Image

from app.ir.errors import RendererError
from app.renderer.mermaid_renderer import VectorRenderer

STUB_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="120" height="60">'
    '<g class="node" transform="translate(60,30)">'
    '<rect x="-50" y="-20" width="100" height="40" style="fill:none"/>'
    "</g></svg>"
)

RENDER_ERROR = "Parse error on line 2: unexpected token"


class FakeRenderer(VectorRenderer):
    name = "fake"

    def __init__(self, accept=None):
        self.accept = accept or (lambda source: True)
        self.calls = []
        self.configs = []

    def render(self, config: dict, source: str) -> str:
        self.calls.append(source)
        self.configs.append(config)
        if not self.accept(source):
            raise RendererError(RENDER_ERROR)
        return STUB_SVG


class FakeCollaborator:
    def __init__(self, *responses, error=None, delay=0):
        self.responses = list(responses)
        self.error = error
        self.delay = delay
        self.prompts = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.responses.pop(0) if self.responses else ""


def builder_output_only(source: str) -> bool:
    """Accept only what the step builder emits (ids S1, S2, ...)."""
    return 'S1["' in source


def solid_strategy(color=(37, 99, 235, 255)):
    def solid(markup, width, height):
        return Image.new("RGBA", (width, height), color)
    return solid


def failing_strategy(message="decoder unavailable"):
    def failing(markup, width, height):
        raise RuntimeError(message)
    return failing
