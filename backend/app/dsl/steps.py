"""
Deterministic "Step N: ... (Role)" text -> Mermaid flowchart builder.

This is the last line of defence of the render cascade: it never calls an
LLM and always produces a linear diagram that Mermaid accepts.
"""

import re
from typing import List, Optional, Tuple

from app.dsl.mermaid import VALID_DIRECTIONS, escape_quotes
from app.ir.diagram import Role
from app.ir.errors import EmptyInputError
from app.visual.visual_style import CLASS_DEFS

MAX_LABEL_LENGTH = 160

STEP_LINE_RE = re.compile(r"^(Step\s*\d+\s*:|\d+\.|\d+\))", re.IGNORECASE)
STEP_PREFIX_RE = re.compile(r"^Step\s*\d+\s*:\s*", re.IGNORECASE)
NUMBER_PREFIX_RE = re.compile(r"^\d+[.)]\s*")

# Ordered (pattern, role) pairs; parenthesized and bracketed, long and short form
ROLE_MARKERS: List[Tuple[re.Pattern, Role]] = [
    (re.compile(r"\(\s*ai\s*\)", re.IGNORECASE), Role.AI),
    (re.compile(r"\[\s*ai\s*\]", re.IGNORECASE), Role.AI),
    (re.compile(r"\(\s*a\s*\)", re.IGNORECASE), Role.AI),
    (re.compile(r"\[\s*a\s*\]", re.IGNORECASE), Role.AI),
    (re.compile(r"\(\s*human\s*\)", re.IGNORECASE), Role.HUMAN),
    (re.compile(r"\[\s*human\s*\]", re.IGNORECASE), Role.HUMAN),
    (re.compile(r"\(\s*h\s*\)", re.IGNORECASE), Role.HUMAN),
    (re.compile(r"\[\s*h\s*\]", re.IGNORECASE), Role.HUMAN),
]


def classify_role(line: str) -> Role:
    """
    Role of a step from its inline markers.
    A line carrying both an AI and a Human marker is ambiguous and stays
    UNCLASSIFIED.
    """
    found = {role for pattern, role in ROLE_MARKERS if pattern.search(line)}
    if len(found) == 1:
        return found.pop()
    return Role.UNCLASSIFIED


def extract_step_lines(text: str) -> List[str]:
    lines = [l.strip() for l in (text or "").splitlines() if l.strip()]
    step_lines = [l for l in lines if STEP_LINE_RE.match(l)]
    return step_lines if step_lines else lines


def clean_step_label(line: str) -> str:
    label = STEP_PREFIX_RE.sub("", line)
    label = NUMBER_PREFIX_RE.sub("", label).strip()
    return label or line


def escape_label(label: str) -> str:
    return escape_quotes(label[:MAX_LABEL_LENGTH])


def build_mermaid_from_steps(text: str, direction: Optional[str] = "TD") -> str:
    """
    Build a linear flowchart S1 --> S2 --> ... from free-text workflow steps.

    Args:
        text: newline separated steps; "Step N:", "N." and "N)" lines are
            preferred over surrounding prose when present
        direction: flowchart direction, "TD" or "LR"

    Raises:
        EmptyInputError: when the text holds no non-blank line
    """
    direction = (direction or "TD").upper()
    if direction not in VALID_DIRECTIONS:
        raise ValueError(f"Unsupported flowchart direction: {direction}")

    steps = extract_step_lines(text)
    if not steps:
        raise EmptyInputError()

    ids: List[str] = []
    nodes: List[str] = []
    class_lines: List[str] = []

    for i, line in enumerate(steps):
        node_id = f"S{i + 1}"
        ids.append(node_id)
        nodes.append(f'{node_id}["{escape_label(clean_step_label(line))}"]')

        role = classify_role(line)
        if role is not Role.UNCLASSIFIED:
            class_lines.append(f"class {node_id} {role.value}")

    edges = [f"{a} --> {b}" for a, b in zip(ids, ids[1:])]

    # De-duplicate class lines in case the same node set is rebuilt
    class_lines = list(dict.fromkeys(class_lines))

    header = [f"flowchart {direction}", CLASS_DEFS["human"], CLASS_DEFS["ai"]]
    return "\n".join(header + nodes + edges + class_lines)
