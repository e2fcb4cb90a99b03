import base64
import binascii
import re
from enum import Enum
from pathlib import Path

import structlog

from gpt_image_mcp.core.exceptions import InvalidInputError
from gpt_image_mcp.core.validators import is_absolute_path, is_encoded_image
from gpt_image_mcp.schemas.images import ImageInput

logger = structlog.get_logger()

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.*)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")

EXT_TO_MEDIA_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".png": "image/png",
}


class InputKind(str, Enum):
    PATH = "path"
    ENCODED = "encoded"


def classify_image_input(value: str) -> InputKind | None:
    if is_absolute_path(value):
        return InputKind.PATH
    if is_encoded_image(value):
        return InputKind.ENCODED
    return None


def media_type_for_path(path: str) -> str:
    return EXT_TO_MEDIA_TYPE.get(Path(path).suffix.lower(), "image/png")


def _read_path(path: str, field: str) -> ImageInput:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        logger.error("image_input_read_failed", field=field, path=path, error=str(e))
        raise InvalidInputError(field, f"Invalid '{field}' input: cannot read file {path}: {e}") from e
    return ImageInput(data=data, mime_type=media_type_for_path(path), filename=Path(path).name)


def _decode_encoded(value: str, field: str, index: int) -> ImageInput:
    payload = value
    mime_type = "image/png"
    if value.startswith("data:image/"):
        match = _DATA_URL_RE.match(value)
        if match:
            mime_type, payload = match.group(1), match.group(2)
    payload = _WHITESPACE_RE.sub("", payload)
    payload += "=" * (-len(payload) % 4)
    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(field, f"Invalid '{field}' input: base64 data could not be decoded") from e
    subtype = mime_type.split("/", 1)[1] or "png"
    return ImageInput(data=data, mime_type=mime_type, filename=f"input_{index}.{subtype}")


def resolve_image_input(value: str, field: str = "image", index: int = 0) -> ImageInput:
    """Turn an absolute path or base64/data-URL string into upload-ready bytes.

    `index` only names the synthetic upload file for encoded sources
    (0 for the primary image, 1 for the mask).
    """
    kind = classify_image_input(value)
    if kind is InputKind.PATH:
        image = _read_path(value, field)
    elif kind is InputKind.ENCODED:
        image = _decode_encoded(value, field, index)
    else:
        raise InvalidInputError(field)
    logger.debug("image_input_resolved", field=field, kind=kind.value, mime_type=image.mime_type, size=len(image.data))
    return image
