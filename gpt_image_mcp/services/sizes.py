import re

from gpt_image_mcp.core.exceptions import InvalidParameterError

CANONICAL_SIZES = ("1024x1024", "1536x1024", "1024x1536", "auto")

ASPECT_RATIO_SIZES = {
    "1:1": "1024x1024",
    "square": "1024x1024",
    "4:3": "1024x1024",
    "3:4": "1024x1024",
    "16:9": "1536x1024",
    "landscape": "1536x1024",
    "3:2": "1536x1024",
    "9:16": "1024x1536",
    "portrait": "1024x1536",
    "2:3": "1024x1536",
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_size(value: str) -> str:
    """Map an aspect-ratio token to a canonical size.

    Canonical sizes and unknown tokens come back unchanged, so validation can
    report the caller's original spelling.
    """
    if value in CANONICAL_SIZES:
        return value
    token = _WHITESPACE_RE.sub("", value.lower())
    return ASPECT_RATIO_SIZES.get(token, value)


def resolve_size(value: str | None) -> str | None:
    if not value:
        return None
    size = normalize_size(value)
    if size not in CANONICAL_SIZES:
        raise InvalidParameterError(
            f"Invalid size '{value}'. Supported sizes: {', '.join(CANONICAL_SIZES)}. "
            f"Also accepts aspect ratios: {', '.join(ASPECT_RATIO_SIZES)}."
        )
    return size
