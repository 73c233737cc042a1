"""Tests for the Mermaid normalizer (app.dsl.mermaid)"""

import pytest

from app.dsl.mermaid import (
    detect_direction,
    looks_like_mermaid,
    normalize_mermaid,
    parse_mermaid,
    validate_mermaid,
)
from app.visual.visual_style import CLASS_DEFS


CANONICAL = "\n".join([
    "flowchart TD",
    CLASS_DEFS["human"],
    CLASS_DEFS["ai"],
    'A["Step one (AI)"]',
    "class A ai",
    'B["Step two (Human)"]',
    "class B human",
    "A --> B",
])


def test_splits_inline_edge_and_adds_directive():
    out = normalize_mermaid("A[Step one (AI)] --> B[Step two (Human)]")
    assert out == CANONICAL


@pytest.mark.parametrize("source", [
    CANONICAL,
    "graph LR\nA[Start] -->|yes| B[Go (Human)]\nB --> C\nclass C ai",
    'flowchart TD\nX["Check (AI) then (Human)"]\nY[Done]\nX --> Y',
    "flowchart TD\nclassDef human fill:#fff\nA[Ask (human)] --> B[Answer (ai)] --> C[Close]",
])
def test_normalize_is_idempotent(source):
    once = normalize_mermaid(source)
    assert normalize_mermaid(once) == once


@pytest.mark.parametrize("source", [
    "",
    "   \n\t  ",
    None,
    "Please review the following workflow and tell me what you think.",
    "```mermaid\n```",
    "A[",
    "-->",
    "[[[]]]",
    "class",
    "flowchart XY",
    "A[x] --> ",
    'A["unterminated] --> B[ok]',
])
def test_normalize_is_total(source):
    out = normalize_mermaid(source)
    assert out.splitlines()[0] == "flowchart TD"


def test_first_directive_wins_and_is_uppercased():
    out = normalize_mermaid("graph lr\nflowchart TD\nA --> B")
    lines = out.splitlines()
    assert lines[0] == "flowchart LR"
    assert sum(1 for l in lines if l.startswith(("flowchart", "graph"))) == 1


def test_default_direction_used_when_absent():
    out = normalize_mermaid("A --> B", default_direction="LR")
    assert out.splitlines()[0] == "flowchart LR"


def test_strips_code_fences():
    out = normalize_mermaid("```mermaid\nflowchart LR\nA --> B\n```")
    assert out.splitlines()[0] == "flowchart LR"
    assert "```" not in out
    assert out.splitlines()[-1] == "A --> B"


def test_existing_classdef_is_kept_and_not_duplicated():
    out = normalize_mermaid("flowchart TD\nclassDef human fill:#fff\nA[x (Human)]")
    lines = out.splitlines()
    assert "classDef human fill:#fff" in lines
    assert CLASS_DEFS["human"] not in lines
    assert CLASS_DEFS["ai"] in lines
    assert "class A human" in lines


def test_human_marker_wins_over_ai_marker():
    out = normalize_mermaid('flowchart TD\nX["Check (AI) then (Human)"]')
    assert "class X human" in out.splitlines()
    assert "class X ai" not in out.splitlines()


def test_edge_labels_and_chains_are_kept():
    out = normalize_mermaid("A[Start] -->|yes| B[Go] --> C[End]")
    assert "A -->|yes| B --> C" in out.splitlines()


def test_backslash_quotes_become_mermaid_entities():
    out = normalize_mermaid('flowchart TD\nA["Say \\"hi\\" (AI)"]')
    assert 'A["Say #quot;hi#quot; (AI)"]' in out.splitlines()
    assert "class A ai" in out.splitlines()


def test_quote_entities_pass_through():
    out = normalize_mermaid('flowchart TD\nA["Say #quot;hi#quot;"]')
    assert 'A["Say #quot;hi#quot;"]' in out.splitlines()


def test_malformed_fragments_are_dropped():
    out = normalize_mermaid("flowchart TD\nthis is prose\nA[ok]\nstyle A fill:#000")
    assert out.splitlines()[3:] == ['A["ok"]']


def test_detect_direction():
    assert detect_direction("graph LR\nA-->B") == "LR"
    assert detect_direction("flowchart XY") == "TD"
    assert detect_direction("A --> B", default="LR") == "LR"


def test_looks_like_mermaid():
    assert looks_like_mermaid("flowchart TD\nA --> B")
    assert looks_like_mermaid("```mermaid\nA[x] --> B[y]\n```")
    assert not looks_like_mermaid("Step 1: Ingest email (AI)\nStep 2: Review ticket (Human)")
    assert not looks_like_mermaid("")


def test_validate_mermaid():
    assert validate_mermaid(CANONICAL)
    assert not validate_mermaid("A --> B")
    assert not validate_mermaid("flowchart TD\nA[<script>alert(1)</script>]")
    assert not validate_mermaid("")


def test_parse_mermaid_roles_and_edges():
    graph = parse_mermaid(CANONICAL)
    assert graph.direction == "TD"
    assert graph.directive_count == 1
    assert graph.directive_first
    assert graph.node_ids == ["A", "B"]
    assert [(e.source, e.target) for e in graph.edges] == [("A", "B")]
    assert [n.role.value for n in graph.nodes] == ["ai", "human"]
    assert set(graph.class_defs) == {"human", "ai"}


def test_inline_directive_line_is_dropped_whole():
    out = normalize_mermaid("graph LR A-->B")
    assert out.splitlines() == ["flowchart LR", CLASS_DEFS["human"], CLASS_DEFS["ai"]]


def test_directive_with_statement_keeps_following_lines():
    out = normalize_mermaid("flowchart TD A[x]\nA[Start] --> B[End]")
    lines = out.splitlines()
    assert [l for l in lines if l.lower().startswith(("graph", "flowchart"))] == ["flowchart TD"]
    assert "A --> B" in lines
