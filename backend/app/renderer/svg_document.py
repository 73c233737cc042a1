"""
SVG document preparation for rasterization.

Renderer output is inconsistent about sizing and styling: Mermaid emits
percentage widths, several competing <style> blocks, HTML labels inside
<foreignObject> and inline `fill:none` on shapes. prepare_svg() rewrites the
document so every rasterizer paints it the same way:

1. resolve width/height (attributes, style, viewBox, measured bbox, 800x600)
2. write them back with a fixed fit mode and the SVG/xlink namespaces
3. opaque background rect as the first child
4. one canonical <style>, every other <style> removed
5. HTML labels replaced by plain centered <text>
6. role palette forced onto every node shape, canonical font onto every <text>
"""

import copy
import re
import xml.etree.ElementTree as ET
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from app.ir.errors import RasterizationError
from app.visual.visual_style import (
    BACKGROUND_COLOR,
    DEFAULT_ROLE,
    FONT_FAMILY,
    FONT_SIZE,
    RASTER_CSS,
    ROLE_STYLE,
    STROKE_WIDTH,
    TEXT_COLOR,
)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XHTML_NS = "http://www.w3.org/1999/xhtml"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)
ET.register_namespace("xhtml", XHTML_NS)

DEFAULT_WIDTH = 800.0
DEFAULT_HEIGHT = 600.0

SHAPE_TAGS = {"rect", "polygon", "path", "circle", "ellipse"}
# Subtrees that never contribute to the painted bounding box
NON_PAINTED_TAGS = {"defs", "style", "marker", "title", "desc", "metadata", "clipPath"}

OFFSCREEN_STYLE = "position:absolute;left:-10000px;top:-10000px;visibility:hidden"

LENGTH_RE = re.compile(r"^\s*([-+]?\d*\.?\d+)\s*(px)?\s*$")
NUMBER_RE = re.compile(r"[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?")
TRANSLATE_RE = re.compile(r"translate\(\s*([-+\d.eE]+)(?:[\s,]+([-+\d.eE]+))?\s*\)")

# Average glyph advance relative to font size, used for text extents
GLYPH_WIDTH_RATIO = 0.55


@dataclass
class Dimensions:
    width: float
    height: float
    origin_x: float = 0.0
    origin_y: float = 0.0
    source: str = "default"


@dataclass
class PreparedSvg:
    markup: str
    width: float
    height: float


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def _local(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _classes(el: ET.Element) -> Set[str]:
    return set((el.get("class") or "").split())


def _fmt(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def _parse_length(value: Optional[str]) -> Optional[float]:
    """Absolute length in user units; percentages and other units are rejected."""
    if not value:
        return None
    match = LENGTH_RE.match(value)
    if not match:
        return None
    length = float(match.group(1))
    return length if length > 0 else None


def _parse_style(style: Optional[str]) -> Dict[str, str]:
    declarations = {}
    for chunk in (style or "").split(";"):
        if ":" not in chunk:
            continue
        key, value = chunk.split(":", 1)
        declarations[key.strip().lower()] = value.strip()
    return declarations


def _parent_map(root: ET.Element) -> Dict[ET.Element, ET.Element]:
    return {child: parent for parent in root.iter() for child in parent}


def parse_svg(markup: str) -> ET.Element:
    if not markup or not markup.strip():
        raise RasterizationError("SVG markup is empty")
    try:
        root = ET.fromstring(markup.strip())
    except ET.ParseError as e:
        raise RasterizationError(f"SVG markup is not well-formed: {e}") from e
    if _local(root.tag) != "svg":
        raise RasterizationError(f"Expected an <svg> root element, got <{_local(root.tag)}>")
    return root


# ============================================================
# DIMENSIONS
# ============================================================

def _attribute_dimensions(root: ET.Element) -> Optional[Tuple[float, float]]:
    width = _parse_length(root.get("width"))
    height = _parse_length(root.get("height"))
    if width and height:
        return width, height
    return None


def _style_dimensions(root: ET.Element) -> Optional[Tuple[float, float]]:
    style = _parse_style(root.get("style"))
    width = _parse_length(style.get("width"))
    height = _parse_length(style.get("height"))
    if width and height:
        return width, height
    return None


def _viewbox(root: ET.Element) -> Optional[Tuple[float, float, float, float]]:
    numbers = NUMBER_RE.findall(root.get("viewBox") or "")
    if len(numbers) != 4:
        return None
    x, y, width, height = (float(n) for n in numbers)
    if width <= 0 or height <= 0:
        return None
    return x, y, width, height


@contextmanager
def measurement_clone(root: ET.Element) -> Iterator[ET.Element]:
    """
    Attach an off-screen deep copy of the document to the document itself,
    yield it for measuring and always detach it again.
    """
    clone = copy.deepcopy(root)
    clone.set("style", OFFSCREEN_STYLE)
    clone.set("data-measure", "true")
    root.append(clone)
    try:
        yield clone
    finally:
        root.remove(clone)


def _translate(el: ET.Element) -> Tuple[float, float]:
    match = TRANSLATE_RE.search(el.get("transform") or "")
    if not match:
        return 0.0, 0.0
    dx = float(match.group(1))
    dy = float(match.group(2)) if match.group(2) else 0.0
    return dx, dy


def _float_attr(el: ET.Element, name: str) -> float:
    try:
        return float(el.get(name) or 0)
    except ValueError:
        return 0.0


def _element_points(el: ET.Element) -> List[Tuple[float, float]]:
    tag = _local(el.tag)

    if tag == "rect":
        x, y = _float_attr(el, "x"), _float_attr(el, "y")
        w, h = _float_attr(el, "width"), _float_attr(el, "height")
        return [(x, y), (x + w, y + h)]

    if tag == "circle":
        cx, cy, r = _float_attr(el, "cx"), _float_attr(el, "cy"), _float_attr(el, "r")
        return [(cx - r, cy - r), (cx + r, cy + r)]

    if tag == "ellipse":
        cx, cy = _float_attr(el, "cx"), _float_attr(el, "cy")
        rx, ry = _float_attr(el, "rx"), _float_attr(el, "ry")
        return [(cx - rx, cy - ry), (cx + rx, cy + ry)]

    if tag == "line":
        return [
            (_float_attr(el, "x1"), _float_attr(el, "y1")),
            (_float_attr(el, "x2"), _float_attr(el, "y2")),
        ]

    if tag in ("polygon", "polyline", "path"):
        source = el.get("points") if tag != "path" else el.get("d")
        numbers = [float(n) for n in NUMBER_RE.findall(source or "")]
        return list(zip(numbers[0::2], numbers[1::2]))

    if tag == "text":
        text = "".join(el.itertext()).strip()
        if not text:
            return []
        size = _parse_length(FONT_SIZE) or 14.0
        x, y = _float_attr(el, "x"), _float_attr(el, "y")
        half = len(text) * size * GLYPH_WIDTH_RATIO / 2
        return [(x - half, y - size), (x + half, y + size / 2)]

    return []


def measure_bbox(el: ET.Element) -> Optional[Tuple[float, float, float, float]]:
    """Geometric bounding box (min_x, min_y, max_x, max_y) of painted content."""
    points: List[Tuple[float, float]] = []

    def walk(node: ET.Element, offset_x: float, offset_y: float):
        tag = _local(node.tag)
        if not tag or tag in NON_PAINTED_TAGS:
            return
        dx, dy = _translate(node)
        offset_x += dx
        offset_y += dy
        points.extend((x + offset_x, y + offset_y) for x, y in _element_points(node))
        for child in node:
            walk(child, offset_x, offset_y)

    for child in el:
        walk(child, 0.0, 0.0)

    if not points:
        return None
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def resolve_dimensions(root: ET.Element) -> Dimensions:
    """First match wins: attributes, inline style, viewBox, measured bbox, default."""
    found = _attribute_dimensions(root)
    if found:
        return Dimensions(*found, source="attributes")

    found = _style_dimensions(root)
    if found:
        return Dimensions(*found, source="style")

    viewbox = _viewbox(root)
    if viewbox:
        x, y, width, height = viewbox
        return Dimensions(width, height, x, y, source="viewBox")

    with measurement_clone(root) as clone:
        bbox = measure_bbox(clone)
    if bbox:
        min_x, min_y, max_x, max_y = bbox
        if max_x > min_x and max_y > min_y:
            return Dimensions(max_x - min_x, max_y - min_y, min_x, min_y, source="bbox")

    return Dimensions(DEFAULT_WIDTH, DEFAULT_HEIGHT)


# ============================================================
# NORMALIZATION
# ============================================================

def _qualify_tags(root: ET.Element):
    """Move un-namespaced elements into the SVG namespace."""
    for el in root.iter():
        if isinstance(el.tag, str) and not el.tag.startswith("{"):
            el.tag = _q(el.tag)


def normalize_root(root: ET.Element, dims: Dimensions):
    _qualify_tags(root)
    root.set("width", _fmt(dims.width))
    root.set("height", _fmt(dims.height))
    root.set("preserveAspectRatio", "xMinYMin meet")
    if _viewbox(root) is None:
        root.set(
            "viewBox",
            f"{_fmt(dims.origin_x)} {_fmt(dims.origin_y)} {_fmt(dims.width)} {_fmt(dims.height)}",
        )
    style = _parse_style(root.get("style"))
    # Mermaid pins max-width in the root style, which breaks explicit sizing
    for key in ("max-width", "width", "height"):
        style.pop(key, None)
    if style:
        root.set("style", ";".join(f"{k}:{v}" for k, v in style.items()))
    elif "style" in root.attrib:
        del root.attrib["style"]


def consolidate_styles(root: ET.Element, dims: Dimensions):
    parents = _parent_map(root)
    for style in [el for el in root.iter() if _local(el.tag) == "style"]:
        parents[style].remove(style)

    canonical = ET.Element(_q("style"), {"type": "text/css"})
    canonical.text = RASTER_CSS
    root.insert(0, canonical)

    background = ET.Element(_q("rect"), {
        "class": "raster-background",
        "x": _fmt(dims.origin_x),
        "y": _fmt(dims.origin_y),
        "width": _fmt(dims.width),
        "height": _fmt(dims.height),
        "fill": BACKGROUND_COLOR,
    })
    root.insert(0, background)


def _text_attributes() -> Dict[str, str]:
    return {
        "fill": TEXT_COLOR,
        "font-family": FONT_FAMILY,
        "font-size": FONT_SIZE,
        "style": (
            f"fill:{TEXT_COLOR} !important;"
            f"font-family:{FONT_FAMILY} !important;"
            f"font-size:{FONT_SIZE} !important"
        ),
    }


def _node_groups(root: ET.Element) -> List[ET.Element]:
    return [el for el in root.iter() if _local(el.tag) == "g" and "node" in _classes(el)]


def reconcile_labels(root: ET.Element) -> int:
    """Replace HTML labels inside node groups with plain centered <text>."""
    replaced = 0
    parents = _parent_map(root)

    for group in _node_groups(root):
        foreign = next((el for el in group.iter() if _local(el.tag) == "foreignObject"), None)
        if foreign is None:
            continue

        text = " ".join("".join(foreign.itertext()).split())

        wrapper = foreign
        cursor = parents.get(foreign)
        while cursor is not None and cursor is not group:
            if _local(cursor.tag) == "g" and "label" in _classes(cursor):
                wrapper = cursor
                break
            cursor = parents.get(cursor)

        parents[wrapper].remove(wrapper)

        attrs = {
            "x": "0",
            "y": "0",
            "text-anchor": "middle",
            "dominant-baseline": "central",
        }
        attrs.update(_text_attributes())
        label = ET.SubElement(group, _q("text"), attrs)
        label.text = text
        replaced += 1

    return replaced


def _node_role(group: ET.Element) -> str:
    if "human" in _classes(group):
        return "human"
    if "(human)" in "".join(group.itertext()).lower():
        return "human"
    return DEFAULT_ROLE


def force_paint(root: ET.Element) -> int:
    """
    Paint every shape under a node group with its role palette, both as an
    !important inline style and as presentation attributes.
    """
    painted = 0
    parents = _parent_map(root)

    for el in root.iter():
        tag = _local(el.tag)

        if tag == "text":
            for key, value in _text_attributes().items():
                el.set(key, value)
            continue

        if tag not in SHAPE_TAGS:
            continue

        group = parents.get(el)
        while group is not None and not (_local(group.tag) == "g" and "node" in _classes(group)):
            group = parents.get(group)
        if group is None:
            continue

        palette = ROLE_STYLE[_node_role(group)]
        el.set(
            "style",
            f"fill:{palette['fill']} !important;"
            "fill-opacity:1 !important;"
            f"stroke:{palette['stroke']} !important;"
            f"stroke-width:{STROKE_WIDTH}px !important",
        )
        el.set("fill", palette["fill"])
        el.set("fill-opacity", "1")
        el.set("stroke", palette["stroke"])
        el.set("stroke-width", str(STROKE_WIDTH))
        painted += 1

    return painted


def prepare_svg(markup: str) -> PreparedSvg:
    """Parse, normalize and restyle renderer output. Raises RasterizationError."""
    root = parse_svg(markup)
    dims = resolve_dimensions(root)

    normalize_root(root, dims)
    consolidate_styles(root, dims)
    reconcile_labels(root)
    force_paint(root)

    return PreparedSvg(
        markup=ET.tostring(root, encoding="unicode"),
        width=dims.width,
        height=dims.height,
    )
