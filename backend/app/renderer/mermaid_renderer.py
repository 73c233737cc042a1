"""
Vector renderer adapters: Mermaid source -> SVG markup.

Two adapters ship:
- MermaidCliRenderer: runs mermaid-cli (`mmdc`) in a scratch directory
- KrokiRenderer: POSTs the source to a Kroki server

Both receive the renderer configuration on every call. The configuration is
rebuilt for each attempt so nothing leaks between cascade tiers.
"""

import asyncio
import json
import logging
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod

import requests

from app.config import DIAGRAM_RENDERER, KROKI_URL, MMDC_PATH, RENDER_TIMEOUT
from app.ir.errors import RendererError
from app.visual.visual_style import THEME_VARIABLES

logger = logging.getLogger(__name__)


def build_renderer_config() -> dict:
    """Fresh Mermaid configuration for a single render attempt."""
    return {
        "startOnLoad": False,
        "theme": "base",
        "themeVariables": dict(THEME_VARIABLES),
        "securityLevel": "strict",
        "flowchart": {
            "htmlLabels": False,
            "useMaxWidth": False,
        },
    }


class VectorRenderer(ABC):
    name: str

    @abstractmethod
    def render(self, config: dict, source: str) -> str:
        """
        Return SVG markup for the diagram source.
        Raise RendererError when the renderer rejects it.
        """
        pass


class MermaidCliRenderer(VectorRenderer):
    name = "mmdc"

    def __init__(self, executable: str = MMDC_PATH, timeout: float = RENDER_TIMEOUT):
        self.executable = executable
        self.timeout = timeout

    def render(self, config: dict, source: str) -> str:
        with tempfile.TemporaryDirectory(prefix="diagram-") as workdir:
            input_path = os.path.join(workdir, "diagram.mmd")
            output_path = os.path.join(workdir, "diagram.svg")
            config_path = os.path.join(workdir, "config.json")

            with open(input_path, "w", encoding="utf-8") as f:
                f.write(source)
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(config, f)

            cmd = [
                self.executable,
                "-i", input_path,
                "-o", output_path,
                "-c", config_path,
                "-b", "transparent",
                "-q",
            ]

            try:
                proc = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except FileNotFoundError as e:
                raise RendererError(f"Mermaid CLI not found: {self.executable}") from e
            except subprocess.TimeoutExpired as e:
                raise RendererError(f"Mermaid CLI timed out after {self.timeout:g}s") from e

            if proc.returncode != 0:
                message = (proc.stderr or proc.stdout or "").strip()
                raise RendererError(message or f"Mermaid CLI exited with code {proc.returncode}")

            if not os.path.exists(output_path):
                raise RendererError("Mermaid CLI produced no output")

            with open(output_path, "r", encoding="utf-8") as f:
                return f.read()


class KrokiRenderer(VectorRenderer):
    name = "kroki"

    def __init__(self, base_url: str = KROKI_URL, timeout: float = RENDER_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def render(self, config: dict, source: str) -> str:
        # Kroki takes no side config, so it travels as an init directive
        payload = f"%%{{init: {json.dumps(config)}}}%%\n{source}"

        try:
            response = requests.post(
                f"{self.base_url}/mermaid/svg",
                data=payload.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RendererError(f"Kroki request failed: {e}") from e

        if response.status_code >= 400:
            raise RendererError(response.text.strip() or f"Kroki returned HTTP {response.status_code}")

        return response.text


def get_renderer() -> VectorRenderer:
    if DIAGRAM_RENDERER == "kroki":
        return KrokiRenderer()
    if DIAGRAM_RENDERER == "mmdc":
        return MermaidCliRenderer()
    raise ValueError(f"Unknown DIAGRAM_RENDERER: {DIAGRAM_RENDERER}")


async def render_svg(renderer: VectorRenderer, source: str) -> str:
    """
    Run one render attempt off the event loop with a fresh configuration.

    Raises:
        RendererError: the renderer rejected the source or crashed
    """
    config = build_renderer_config()
    try:
        svg_markup = await asyncio.to_thread(renderer.render, config, source)
    except RendererError:
        raise
    except Exception as e:
        raise RendererError(f"{renderer.name} renderer failed: {e}") from e

    if not svg_markup or "<svg" not in svg_markup:
        raise RendererError(f"{renderer.name} renderer returned no SVG markup")

    logger.debug("[RENDER] %s produced %d chars of SVG", renderer.name, len(svg_markup))
    return svg_markup
