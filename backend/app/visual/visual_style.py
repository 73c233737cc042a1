ROLE_STYLE = {
    "human": {
        "fill": "#fde68a",
        "stroke": "#b45309",
        "text": "#111827",
    },
    "ai": {
        "fill": "#bfdbfe",
        "stroke": "#1d4ed8",
        "text": "#111827",
    },
}

# Shapes without an explicit human marker are painted with the AI palette
DEFAULT_ROLE = "ai"

BACKGROUND_COLOR = "#0f172a"
EDGE_COLOR = "#475569"
TEXT_COLOR = "#111827"
FONT_FAMILY = "Arial, -apple-system, BlinkMacSystemFont, sans-serif"
FONT_SIZE = "14px"
STROKE_WIDTH = 2

# Mermaid classDef lines carried by every canonical diagram source
CLASS_DEFS = {
    role: (
        f"classDef {role} fill:{style['fill']},stroke:{style['stroke']},"
        f"color:{style['text']},stroke-width:{STROKE_WIDTH}px"
    )
    for role, style in ROLE_STYLE.items()
}

# Canonical stylesheet injected into every SVG before rasterization
RASTER_CSS = f"""
.label text, text, .node text {{ fill: {TEXT_COLOR} !important; font-family: {FONT_FAMILY} !important; font-size: {FONT_SIZE} !important; }}
.node rect, .node polygon, .node path, .node circle, .node ellipse {{ stroke-width: {STROKE_WIDTH}px !important; fill: {ROLE_STYLE['ai']['fill']} !important; stroke: {ROLE_STYLE['ai']['stroke']} !important; }}
.node.human rect, .node.human polygon, .node.human path, .node.human circle, .node.human ellipse {{ fill: {ROLE_STYLE['human']['fill']} !important; stroke: {ROLE_STYLE['human']['stroke']} !important; }}
.edgePath path, .flowchart-link {{ stroke: {EDGE_COLOR} !important; stroke-width: {STROKE_WIDTH}px !important; fill: none !important; }}
.marker, .arrowMarkerPath {{ fill: {EDGE_COLOR} !important; stroke: {EDGE_COLOR} !important; }}
"""

# Mermaid theme variables handed to the vector renderer on every attempt
THEME_VARIABLES = {
    "fontFamily": FONT_FAMILY,
    "fontSize": "16px",
    "primaryColor": ROLE_STYLE["ai"]["fill"],
    "primaryBorderColor": ROLE_STYLE["ai"]["stroke"],
    "primaryTextColor": TEXT_COLOR,
    "secondaryColor": ROLE_STYLE["human"]["fill"],
    "secondaryBorderColor": ROLE_STYLE["human"]["stroke"],
    "secondaryTextColor": TEXT_COLOR,
    "tertiaryColor": BACKGROUND_COLOR,
    "tertiaryBorderColor": EDGE_COLOR,
    "mainBkg": BACKGROUND_COLOR,
    "nodeBkg": ROLE_STYLE["ai"]["fill"],
    "clusterBkg": BACKGROUND_COLOR,
    "edgeLabelBackground": BACKGROUND_COLOR,
    "nodeTextColor": TEXT_COLOR,
    "lineColor": EDGE_COLOR,
    "textColor": TEXT_COLOR,
}
