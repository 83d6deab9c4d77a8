import re

FENCE_LANGUAGES = ("typescript", "tsx", "jsx", "javascript")

_FENCE_RE = re.compile(
    r"```(?:" + "|".join(FENCE_LANGUAGES) + r")?\n?(.*?)```",
    re.DOTALL,
)


def extract_code(text: str) -> str:
    """Return the body of the first fenced code block, or the trimmed text if there is none."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()
