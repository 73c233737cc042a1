"""Tests for the three-tier render cascade"""

import asyncio

import pytest

from app.dsl.mermaid import normalize_mermaid
from app.ir.errors import (
    EmptyInputError,
    FatalRenderError,
    ParseDefectError,
    RendererError,
    RepairFailedError,
)
from app.pipeline.cascade import (
    CollaboratorRepairTier,
    DirectRenderTier,
    FallbackTier,
    RepairCascade,
)
from app.pipeline.context import PipelineContext
from app.pipeline.stage import TierOutcome
from app.renderer.mermaid_renderer import build_renderer_config
from fakes import RENDER_ERROR, FakeCollaborator, FakeRenderer, builder_output_only


STEPS = "Step 1: Ingest email (AI)\nStep 2: Review ticket (Human)"
BROKEN = "flowchart TD\nA[Ingest (AI)] --> B[[Review (Human)"


def make_context(source: str = BROKEN, steps: str = STEPS, direction: str = "TD") -> PipelineContext:
    return PipelineContext(
        steps_text=steps,
        direction=direction,
        original_source=source,
        diagram_source=normalize_mermaid(source, direction),
    )


def run_cascade(context, renderer, collaborator=None, timeout=5):
    cascade = RepairCascade.default(renderer, collaborator, timeout)
    return asyncio.run(cascade.run(context))


def test_tier_one_success_skips_collaborator():
    renderer = FakeRenderer()
    collaborator = FakeCollaborator("unused")
    context = make_context()

    result = run_cascade(context, renderer, collaborator)

    assert result.ok
    assert context.tier == 1
    assert result.svg_markup == context.svg_markup
    assert context.errors == []
    assert context.attempts == ["direct_render"]
    assert collaborator.prompts == []


def test_malformed_source_falls_through_to_builder():
    renderer = FakeRenderer(accept=builder_output_only)
    collaborator = FakeCollaborator("A[[still broken")
    context = make_context()

    result = run_cascade(context, renderer, collaborator)

    assert result.ok
    assert context.tier == 3
    assert context.diagram_source != BROKEN
    assert 'S1["Ingest email (AI)"]' in context.diagram_source
    assert context.attempts == ["direct_render", "collaborator_repair", "deterministic_fallback"]
    assert context.errors[0].startswith("ParseDefectError")
    assert context.errors[1].startswith("RepairFailedError")


def test_repair_prompt_carries_original_source_and_renderer_error():
    renderer = FakeRenderer(accept=builder_output_only)
    collaborator = FakeCollaborator("A[[still broken")

    run_cascade(make_context(), renderer, collaborator)

    prompt = collaborator.prompts[0]
    assert BROKEN in prompt
    assert RENDER_ERROR in prompt
    assert "classDef human" in prompt


def test_repaired_source_is_normalized_and_used():
    renderer = FakeRenderer(accept=builder_output_only)
    collaborator = FakeCollaborator('```mermaid\nS1["Fixed (AI)"] --> S2["Checked (Human)"]\n```')
    context = make_context()

    run_cascade(context, renderer, collaborator)

    assert context.tier == 2
    lines = context.diagram_source.splitlines()
    assert lines[0] == "flowchart TD"
    assert "class S1 ai" in lines
    assert "class S2 human" in lines
    assert "S1 --> S2" in lines


@pytest.mark.parametrize("collaborator", [
    None,
    FakeCollaborator(error=RuntimeError("quota exceeded")),
    FakeCollaborator(""),
    FakeCollaborator("flowchart TD", delay=1),
])
def test_collaborator_failures_are_not_fatal(collaborator):
    renderer = FakeRenderer(accept=builder_output_only)
    context = make_context()

    result = run_cascade(context, renderer, collaborator, timeout=0.05)

    assert result.ok
    assert context.tier == 3
    assert any(e.startswith("RepairFailedError") for e in context.errors)


def test_fallback_render_fault_is_fatal_and_keeps_source():
    renderer = FakeRenderer(accept=lambda source: False)

    with pytest.raises(FatalRenderError) as exc_info:
        run_cascade(make_context(), renderer, FakeCollaborator("A[[nope"))

    error = exc_info.value
    assert error.diagram_source.startswith("flowchart TD")
    assert 'S1["Ingest email (AI)"]' in error.diagram_source
    assert isinstance(error.__cause__, RendererError)


def test_empty_steps_are_fatal_at_fallback():
    renderer = FakeRenderer(accept=lambda source: False)
    context = make_context(steps="   ")

    with pytest.raises(EmptyInputError) as exc_info:
        run_cascade(context, renderer)

    assert exc_info.value.diagram_source == context.diagram_source


@pytest.mark.parametrize("source", [
    "",
    "[[[",
    "flowchart TD\nA[",
    "graph XY\nA --> B --> ",
    "This is not a diagram at all.",
    "A[x] --> B[y",
])
def test_cascade_always_terminates_without_internal_errors(source):
    renderer = FakeRenderer(accept=builder_output_only)
    context = make_context(source=source)

    try:
        result = run_cascade(context, renderer, FakeCollaborator(source))
        assert result.ok
    except (ParseDefectError, RepairFailedError):
        pytest.fail("tier 1/2 errors must not escape the cascade")


def test_every_attempt_gets_a_fresh_config():
    renderer = FakeRenderer(accept=builder_output_only)

    run_cascade(make_context(), renderer, FakeCollaborator('A["Still broken"]'))

    assert len(renderer.configs) == 3
    first, second, third = renderer.configs
    assert first is not second and second is not third
    first["theme"] = "dark"
    assert second["theme"] == "base"
    assert build_renderer_config()["theme"] == "base"


def test_renderer_config_values():
    config = build_renderer_config()
    assert config["startOnLoad"] is False
    assert config["theme"] == "base"
    assert config["securityLevel"] == "strict"
    assert config["flowchart"] == {"htmlLabels": False, "useMaxWidth": False}
    assert config["themeVariables"]["primaryColor"] == "#bfdbfe"
    assert config["themeVariables"]["secondaryColor"] == "#fde68a"


def test_tiers_in_isolation():
    renderer = FakeRenderer(accept=lambda source: False)
    context = make_context()

    assert asyncio.run(DirectRenderTier(renderer).run(context)) is TierOutcome.NEXT_TIER
    assert context.last_render_error == RENDER_ERROR

    outcome = asyncio.run(CollaboratorRepairTier(renderer, None).run(context))
    assert outcome is TierOutcome.NEXT_TIER

    with pytest.raises(FatalRenderError):
        asyncio.run(FallbackTier(renderer).run(context))
    assert context.svg_markup is None


def test_prose_repair_reply_moves_on_to_fallback():
    renderer = FakeRenderer(accept=builder_output_only)
    collaborator = FakeCollaborator("Sorry, I can't help with that.")
    context = make_context()

    result = run_cascade(context, renderer, collaborator)

    assert result.ok
    assert context.tier == 3
    assert 'S1["Ingest email (AI)"]' in context.diagram_source
    assert context.errors[1] == "RepairFailedError: Repaired source contains no diagram statements"
    # the empty repair is never sent to the renderer
    assert len(renderer.calls) == 2


def test_source_without_statements_is_not_rendered_at_tier_one():
    renderer = FakeRenderer()
    context = make_context(source="flowchart TD\nthis is prose")

    result = run_cascade(context, renderer)

    assert result.ok
    assert context.tier == 3
    assert context.errors[0].startswith("ParseDefectError")
    assert renderer.calls == [context.diagram_source]
    assert 'S2["Review ticket (Human)"]' in context.diagram_source
