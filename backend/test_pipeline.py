"""End-to-end tests for DiagramPipeline with a fake renderer and collaborator"""

import asyncio

import pytest

from app.ir.errors import EmptyInputError, FatalRenderError
from app.pipeline.controller import DiagramPipeline
from app.visual.visual_style import CLASS_DEFS
from fakes import FakeCollaborator, FakeRenderer, builder_output_only, solid_strategy


STEPS = "Step 1: Ingest email (AI)\nStep 2: Review ticket (Human)"


def make_pipeline(renderer=None, collaborator=None) -> DiagramPipeline:
    return DiagramPipeline(
        renderer=renderer or FakeRenderer(),
        collaborator=collaborator,
        strategies=[solid_strategy()],
        padding=40,
        pixel_ratio=1,
    )


def test_steps_to_png_without_collaborator():
    renderer = FakeRenderer()
    pipeline = make_pipeline(renderer)

    result = asyncio.run(pipeline.synthesize_and_render(STEPS, "TD"))

    assert result.tier == 1
    assert result.errors == []
    assert result.diagram_source.splitlines() == [
        "flowchart TD",
        CLASS_DEFS["human"],
        CLASS_DEFS["ai"],
        'S1["Ingest email (AI)"]',
        'S2["Review ticket (Human)"]',
        "S1 --> S2",
        "class S1 ai",
        "class S2 human",
    ]
    assert renderer.calls == [result.diagram_source]

    artifact = asyncio.run(pipeline.rasterize(result.svg_markup))
    assert artifact.mime_type == "image/png"
    assert artifact.width == (120 + 40) * 2


def test_collaborator_draft_is_normalized_and_rendered():
    collaborator = FakeCollaborator('A1["Ingest email (AI)"] --> B1["Review ticket (Human)"]')
    pipeline = make_pipeline(collaborator=collaborator)

    result = asyncio.run(pipeline.synthesize_and_render(STEPS, "LR"))

    lines = result.diagram_source.splitlines()
    assert lines[0] == "flowchart LR"
    assert "class A1 ai" in lines
    assert "class B1 human" in lines
    assert "A1 --> B1" in lines
    assert "Ingest email (AI)" in collaborator.prompts[0]
    assert "flowchart LR" in collaborator.prompts[0]


def test_draft_failure_falls_back_to_builder():
    collaborator = FakeCollaborator(error=ConnectionError("collaborator offline"))
    pipeline = make_pipeline(collaborator=collaborator)

    result = asyncio.run(pipeline.synthesize_and_render(STEPS, "TD"))

    assert result.tier == 1
    assert 'S1["Ingest email (AI)"]' in result.diagram_source
    assert len(result.errors) == 1
    assert result.errors[0].startswith("CollaboratorError")


def test_preformatted_source_skips_drafting():
    collaborator = FakeCollaborator("should not be used")
    pipeline = make_pipeline(collaborator=collaborator)

    result = asyncio.run(pipeline.synthesize_and_render(
        "graph LR\nA[Start (AI)] --> B[End (Human)]", "TD"
    ))

    assert collaborator.prompts == []
    assert result.diagram_source.splitlines()[0] == "flowchart LR"
    assert "class B human" in result.diagram_source


def test_broken_draft_and_repair_end_at_fallback():
    renderer = FakeRenderer(accept=builder_output_only)
    collaborator = FakeCollaborator(
        "flowchart TD\nA[Unbalanced (AI)] --> B[",
        "A[[still broken",
    )
    pipeline = make_pipeline(renderer, collaborator)

    result = asyncio.run(pipeline.synthesize_and_render(STEPS, "TD"))

    assert result.tier == 3
    assert result.diagram_source.startswith("flowchart TD")
    assert 'S2["Review ticket (Human)"]' in result.diagram_source
    assert [e.split(":")[0] for e in result.errors] == ["ParseDefectError", "RepairFailedError"]
    # repair prompt carries the unnormalized draft
    assert "A[Unbalanced (AI)] --> B[" in collaborator.prompts[1]


def test_empty_steps_rejected_before_rendering():
    renderer = FakeRenderer()
    pipeline = make_pipeline(renderer)

    with pytest.raises(EmptyInputError):
        asyncio.run(pipeline.synthesize_and_render("   ", "TD"))
    with pytest.raises(EmptyInputError):
        asyncio.run(pipeline.rerender_in_direction("", "LR"))

    assert renderer.calls == []


def test_rerender_in_other_direction():
    renderer = FakeRenderer()
    pipeline = make_pipeline(renderer)

    artifact = asyncio.run(pipeline.rerender_in_direction(STEPS, "LR"))
    asyncio.run(pipeline.rerender_in_direction(STEPS, "LR"))

    assert artifact.mime_type == "image/png"
    assert renderer.calls[0].startswith("flowchart LR")
    assert renderer.calls[0] == renderer.calls[1]
    assert renderer.calls[0].splitlines().count("class S2 human") == 1


def test_rerender_does_not_run_repair_tiers():
    renderer = FakeRenderer(accept=lambda source: False)
    collaborator = FakeCollaborator("unused")
    pipeline = make_pipeline(renderer, collaborator)

    with pytest.raises(FatalRenderError) as exc_info:
        asyncio.run(pipeline.rerender_in_direction(STEPS, "TD"))

    assert len(renderer.calls) == 1
    assert collaborator.prompts == []
    assert exc_info.value.diagram_source == renderer.calls[0]


@pytest.mark.parametrize("draft", [
    "Sorry, I can't help with that.",
    "flowchart TD\nA[BROKEN",
])
def test_draft_without_statements_uses_builder(draft):
    collaborator = FakeCollaborator(draft)
    pipeline = make_pipeline(collaborator=collaborator)

    result = asyncio.run(pipeline.synthesize_and_render(STEPS, "TD"))

    assert result.tier == 1
    assert 'S1["Ingest email (AI)"]' in result.diagram_source
    assert 'S2["Review ticket (Human)"]' in result.diagram_source
    assert result.errors == ["CollaboratorError: Collaborator draft contains no diagram statements"]
    assert len(collaborator.prompts) == 1
