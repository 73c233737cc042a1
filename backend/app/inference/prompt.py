from app.visual.visual_style import CLASS_DEFS


DRAFT_PROMPT = """
Create a Mermaid flowchart for this workflow.
Rules:
1. Start exactly with:
   flowchart {direction}
   {human_def}
   {ai_def}

2. For each step:
   - Use simple IDs: A1, B1, C1...
   - Format nodes: A1["Step text (AI)"] or B1["Step text (Human)"]
   - Keep text under 120 chars
   - After each node with (Human): class A1 human
   - After each node with (AI): class A1 ai

3. Connect nodes: A1 --> B1

4. Each line should contain only ONE item:
   - One node definition
   - One class assignment
   - One connection

5. Return Mermaid code only, no backticks, no explanations.

Steps to convert:
{steps}
"""


REPAIR_PROMPT = """
Fix the following Mermaid flowchart so it parses correctly.
Rules:
- Return Mermaid code only (no backticks).
- Start with: flowchart {direction}
- Define classes if missing:
  {human_def}
  {ai_def}
- Use simple node IDs like A1, B1, C1...
- Put labels in square brackets, e.g., A1[My Step (AI)].
- Keep edges like A1 --> B1.
- Where a label contains (Human), add: class A1 human. Where (AI), add: class A1 ai.
- Preserve the intent of the diagram.

Renderer error:
{error}

Broken code:
{code}
"""


def build_draft_prompt(steps: str, direction: str = "TD") -> str:
    return DRAFT_PROMPT.format(
        direction=direction,
        human_def=CLASS_DEFS["human"],
        ai_def=CLASS_DEFS["ai"],
        steps=steps.strip(),
    )


def build_repair_prompt(code: str, error: str, direction: str = "TD") -> str:
    return REPAIR_PROMPT.format(
        direction=direction,
        human_def=CLASS_DEFS["human"],
        ai_def=CLASS_DEFS["ai"],
        error=(error or "unknown error").strip(),
        code=code,
    )
