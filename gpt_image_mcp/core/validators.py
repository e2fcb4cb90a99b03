import re

_WINDOWS_ABSOLUTE_RE = re.compile(r"^[a-zA-Z]:[/\\]")
_BASE64_RE = re.compile(r"^(?=[\s=]*[A-Za-z0-9+/])[A-Za-z0-9+/=\s]+$")


def is_absolute_path(value: str) -> bool:
    return value.startswith("/") or bool(_WINDOWS_ABSOLUTE_RE.match(value))


def is_encoded_image(value: str) -> bool:
    return bool(value) and (bool(_BASE64_RE.match(value)) or value.startswith("data:image/"))
