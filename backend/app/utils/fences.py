import re


_OPEN_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSE_FENCE_RE = re.compile(r"\n?```\s*$")


def strip_code_fences(text: str) -> str:
    """
    Remove markdown code fences that LLMs like to wrap around their answers.
    Tolerant to None and to unbalanced fences.
    """
    if not text:
        return ""

    text = text.strip()
    text = _OPEN_FENCE_RE.sub("", text)
    text = _CLOSE_FENCE_RE.sub("", text)
    return text.strip()
