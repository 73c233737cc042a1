import os
from dotenv import load_dotenv

# Load .env from project root
load_dotenv()

# Text-generation collaborator (OpenAI-compatible chat completions)
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "http://host.docker.internal:11434/v1")
LLM_MODEL = os.getenv("LLM_MODEL", "mistral:7b-instruct")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
COLLABORATOR_TIMEOUT = float(os.getenv("COLLABORATOR_TIMEOUT", "45"))

# Vector renderer: "mmdc" (mermaid-cli subprocess) or "kroki" (HTTP)
DIAGRAM_RENDERER = os.getenv("DIAGRAM_RENDERER", "mmdc")
MMDC_PATH = os.getenv("MMDC_PATH", "mmdc")
KROKI_URL = os.getenv("KROKI_URL", "https://kroki.io")
RENDER_TIMEOUT = float(os.getenv("RENDER_TIMEOUT", "60"))

# Rasterizer
RASTER_PADDING = int(os.getenv("RASTER_PADDING", "40"))
RASTER_PIXEL_RATIO = float(os.getenv("RASTER_PIXEL_RATIO", "1"))

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
