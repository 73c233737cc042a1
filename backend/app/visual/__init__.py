# Visual style module
# Single source of the role palette shared by the diagram source, the renderer and the rasterizer

from app.visual.visual_style import (
    ROLE_STYLE,
    DEFAULT_ROLE,
    BACKGROUND_COLOR,
    CLASS_DEFS,
    RASTER_CSS,
    THEME_VARIABLES,
)

__all__ = [
    "ROLE_STYLE",
    "DEFAULT_ROLE",
    "BACKGROUND_COLOR",
    "CLASS_DEFS",
    "RASTER_CSS",
    "THEME_VARIABLES",
]
