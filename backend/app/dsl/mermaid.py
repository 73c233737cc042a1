import re
from typing import List, Optional, Tuple

from app.ir.diagram import (
    ClassAssignment,
    DiagramEdge,
    DiagramGraph,
    DiagramNode,
    Role,
)
from app.utils.fences import strip_code_fences
from app.visual.visual_style import CLASS_DEFS

VALID_DIRECTIONS = {"TD", "TB", "LR", "RL", "BT"}
DEFAULT_DIRECTION = "TD"

# A whole line that is only a directive ("flowchart LR", "graph TD;", "flowchart")
MERMAID_DIRECTIVE_RE = re.compile(r"^(?:graph|flowchart)(?:\s+(\S+?))?\s*;?$", re.IGNORECASE)
# Any line that opens with a directive keyword, inline statements included
DIRECTIVE_PREFIX_RE = re.compile(r"^(?:graph|flowchart)\b", re.IGNORECASE)
DIRECTION_RE = re.compile(r"^(?:graph|flowchart)\s+(TD|TB|LR|RL|BT)\b", re.IGNORECASE)

NODE_ID = r"[A-Za-z0-9_]+"
# id["quoted label"] (quoted form first so labels may contain brackets)
QUOTED_NODE_RE = re.compile(rf'({NODE_ID})\s*\[\s*"((?:[^"\\]|\\.)*)"\s*\]')
# id[bare label]
BARE_NODE_RE = re.compile(rf"({NODE_ID})\s*\[([^\]]*)\]")
EDGE_LABEL_RE = re.compile(r"^\|([^|]*)\|\s*(.*)$")
CLASS_LINE_RE = re.compile(r"^class\s+(\S+)\s+(\S+)\s*;?$")
CLASSDEF_RE = re.compile(r"^classDef\s+(\S+)")
EDGE_HINT_RE = re.compile(rf"{NODE_ID}\s*(?:\[[^\]]*\])?\s*-->")


def clean_label(raw: str) -> str:
    label = raw.strip()
    label = re.sub(r'^["\']|["\']$', "", label)
    return label.replace('\\"', '"')


def escape_quotes(label: str) -> str:
    # Mermaid strings have no backslash escapes; #quot; is the entity for "
    return label.replace('"', "#quot;")


def _match_node(fragment: str) -> Optional[Tuple[str, str]]:
    """Return (id, label) for the first node declaration in fragment."""
    match = QUOTED_NODE_RE.search(fragment)
    if match:
        return match.group(1), match.group(2).replace('\\"', '"')
    match = BARE_NODE_RE.search(fragment)
    if match:
        return match.group(1), clean_label(match.group(2))
    return None


def label_role_class(label: str) -> Optional[str]:
    """Class name for an inline role marker; (human) wins over (ai)."""
    low = label.lower()
    if "(human)" in low:
        return "human"
    if "(ai)" in low:
        return "ai"
    return None


def detect_direction(code: str, default: str = DEFAULT_DIRECTION) -> str:
    """Direction of the first recognized directive line, else the default."""
    for line in (code or "").splitlines():
        match = DIRECTION_RE.match(line.strip())
        if match:
            return match.group(1).upper()
    return default


def looks_like_mermaid(text: str) -> bool:
    """True when the text is already a flowchart source rather than prose steps."""
    code = strip_code_fences(text)
    for line in code.splitlines():
        line = line.strip()
        if not line:
            continue
        if MERMAID_DIRECTIVE_RE.match(line) or EDGE_HINT_RE.search(line):
            return True
    return False


class _Emitter:
    """Collects output lines; class assignments are emitted once."""

    def __init__(self):
        self.lines: List[str] = []
        self._classes = set()

    def node(self, node_id: str, label: str):
        self.lines.append(f'{node_id}["{escape_quotes(label)}"]')
        role = label_role_class(label)
        if role:
            self.assign(f"class {node_id} {role}")

    def assign(self, line: str):
        if line in self._classes:
            return
        self._classes.add(line)
        self.lines.append(line)

    def raw(self, line: str):
        self.lines.append(line)


def _split_edge_line(line: str, out: _Emitter):
    """
    Split "A["x"] --> B["y"]" into node declarations plus a plain edge.
    The plain edge is dropped when a part has no usable id.
    """
    parts = [p.strip() for p in line.split("-->")]
    edge_parts = []
    resolved = True

    for index, part in enumerate(parts):
        arrow_label = ""
        if index > 0:
            label_match = EDGE_LABEL_RE.match(part)
            if label_match:
                arrow_label = f"|{label_match.group(1)}|"
                part = label_match.group(2).strip()

        node = _match_node(part) if "[" in part else None
        if node:
            out.node(*node)
            node_id = node[0]
        elif re.fullmatch(NODE_ID, part):
            node_id = part
        else:
            resolved = False
            continue

        edge_parts.append((arrow_label, node_id))

    if not resolved or len(edge_parts) < 2:
        return

    edge = edge_parts[0][1]
    for arrow_label, node_id in edge_parts[1:]:
        edge += f" -->{arrow_label} {node_id}"
    out.raw(edge)


def normalize_mermaid(code: str, default_direction: str = DEFAULT_DIRECTION) -> str:
    """
    Canonicalize an LLM-produced flowchart.

    Output: one directive, the human/ai classDefs, then node declarations,
    edges and class assignments, one statement per line. Unrecognized lines
    are dropped. Never raises.
    """
    code = strip_code_fences(code or "")
    direction = detect_direction(code, default_direction)

    lines = [l.strip() for l in code.splitlines() if l.strip()]
    # Inline forms such as "graph TD A-->B" are dropped whole, not salvaged
    lines = [l for l in lines if not DIRECTIVE_PREFIX_RE.match(l)]

    class_defs: List[str] = []
    body = _Emitter()

    for line in lines:
        if CLASSDEF_RE.match(line):
            if line not in class_defs:
                class_defs.append(line)
            continue

        if "[" in line:
            if "-->" not in line:
                node = _match_node(line)
                if node:
                    body.node(*node)
            else:
                _split_edge_line(line, body)
        elif CLASS_LINE_RE.match(line):
            body.assign(line)
        elif "-->" in line:
            body.raw(line)
        # anything else is a malformed fragment and is dropped

    declared = {CLASSDEF_RE.match(d).group(1) for d in class_defs}
    header = [f"flowchart {direction}"]
    header.extend(CLASS_DEFS[name] for name in ("human", "ai") if name not in declared)
    header.extend(class_defs)

    return "\n".join(header + body.lines)


def validate_mermaid(code: str) -> bool:
    if not code:
        return False

    lines = [l for l in code.splitlines() if l.strip()]
    if not lines:
        return False

    # First line must be a valid directive like "flowchart TD"
    first = MERMAID_DIRECTIVE_RE.match(lines[0].strip())
    if not first or not first.group(1) or first.group(1).upper() not in VALID_DIRECTIONS:
        return False

    # Basic safety: no script tags or markdown fences
    forbidden = re.search(r"<script|</|```", code, re.IGNORECASE)
    return forbidden is None


# ============================================================
# PARSER (used by the validator)
# ============================================================

def parse_mermaid(code: str) -> DiagramGraph:
    """
    Best-effort structural parse of a flowchart source.
    Tolerant: lines it does not understand are ignored.
    """
    graph = DiagramGraph()
    labels = {}
    order: List[str] = []

    seen_statement = False

    for raw in (code or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        directive = MERMAID_DIRECTIVE_RE.match(line)
        if directive:
            if not seen_statement:
                graph.directive_first = True
            graph.directive_count += 1
            if graph.direction is None and directive.group(1):
                graph.direction = directive.group(1).upper()
            continue
        seen_statement = True

        if CLASSDEF_RE.match(line):
            graph.class_defs.append(CLASSDEF_RE.match(line).group(1))
            continue

        class_line = CLASS_LINE_RE.match(line)
        if class_line:
            for node_id in class_line.group(1).split(","):
                graph.classes.append(
                    ClassAssignment(node_id=node_id, class_name=class_line.group(2))
                )
            continue

        parts = line.split("-->")
        ids = []
        for part in parts:
            part = part.strip()
            label_match = EDGE_LABEL_RE.match(part)
            if label_match:
                part = label_match.group(2).strip()

            node = _match_node(part) if "[" in part else None
            if node:
                if node[0] not in labels:
                    order.append(node[0])
                elif labels[node[0]] != node[1] and node[0] not in graph.conflicting_ids:
                    graph.conflicting_ids.append(node[0])
                labels[node[0]] = node[1]

            id_match = re.match(NODE_ID, part)
            if id_match:
                ids.append(id_match.group(0))

        if len(parts) > 1:
            for source, target in zip(ids, ids[1:]):
                graph.edges.append(DiagramEdge(source=source, target=target))

    assigned = {c.node_id: c.class_name for c in graph.classes}
    for node_id in order:
        role_name = assigned.get(node_id) or label_role_class(labels[node_id])
        role = Role(role_name) if role_name in ("human", "ai") else Role.UNCLASSIFIED
        graph.nodes.append(DiagramNode(id=node_id, label=labels[node_id], role=role))

    return graph


def is_empty_diagram(code: str) -> bool:
    """True when the source declares no node and no edge (directive/classDef only)."""
    graph = parse_mermaid(code)
    return not graph.node_ids and not graph.edges
