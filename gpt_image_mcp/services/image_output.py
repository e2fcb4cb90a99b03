import re
import time
from pathlib import Path

import structlog
from mcp.types import ImageContent, TextContent

from gpt_image_mcp.config import settings
from gpt_image_mcp.core.exceptions import FilesystemError
from gpt_image_mcp.schemas.images import DeliveryPlan, ImagePayload, OutputMode

logger = structlog.get_logger()

FORMAT_TO_EXT = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
}

FORMAT_TO_MEDIA_TYPE = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

MAX_FILENAME_LENGTH = 200
DEFAULT_FILENAME = "image"

_SEPARATOR_RE = re.compile(r"[/\\]")
_UNSAFE_RE = re.compile(r'[<>:"|?*\x00-\x1f]')
_EDGE_RE = re.compile(r"^[\s.]+|[\s.]+$")


def payloads_for_format(encoded: list[str], output_format: str | None = None) -> list[ImagePayload]:
    fmt = output_format or "png"
    return [
        ImagePayload(
            b64=b64,
            mime_type=FORMAT_TO_MEDIA_TYPE.get(fmt, "image/png"),
            ext=FORMAT_TO_EXT.get(fmt, "png"),
        )
        for b64 in encoded
    ]


def sanitize_filename(name: str) -> str:
    sanitized = _SEPARATOR_RE.sub("-", name)
    sanitized = _UNSAFE_RE.sub("-", sanitized)
    sanitized = _EDGE_RE.sub("", sanitized)
    sanitized = sanitized[:MAX_FILENAME_LENGTH]
    return sanitized or DEFAULT_FILENAME


def default_output_dir() -> Path:
    output_dir = Path.home() / settings.output_subdir
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("default_output_dir_unavailable", path=str(output_dir), fallback=settings.work_dir, error=str(e))
        return Path(settings.work_dir)
    return output_dir


def default_output_path(images: list[ImagePayload], filename: str | None, default_prefix: str) -> str:
    basename = sanitize_filename(filename) if filename else f"{default_prefix}_{int(time.time() * 1000)}"
    ext = images[0].ext if images else "png"
    return str(default_output_dir() / f"{basename}.{ext}")


def output_paths(base_path: str, images: list[ImagePayload]) -> list[str]:
    base = Path(base_path)
    if len(images) == 1:
        return [str(base.with_name(f"{base.stem}{base.suffix or '.' + images[0].ext}"))]
    return [
        str(base.with_name(f"{base.stem}_{i}{base.suffix or '.' + image.ext}"))
        for i, image in enumerate(images, start=1)
    ]


def plan_delivery(
    images: list[ImagePayload],
    output: OutputMode,
    file_output: str | None,
    filename: str | None,
    default_prefix: str,
) -> DeliveryPlan:
    total_size = sum(image.size for image in images)
    mode = OutputMode(output)
    overridden = False
    if mode is OutputMode.INLINE and total_size > settings.max_response_size:
        mode = OutputMode.FILE
        overridden = True
        logger.info("delivery_overridden", total_size=total_size, limit=settings.max_response_size)

    if mode is OutputMode.INLINE:
        return DeliveryPlan(mode=mode)

    base_path = file_output or default_output_path(images, filename, default_prefix)
    return DeliveryPlan(mode=mode, paths=output_paths(base_path, images), overridden=overridden)


def _write_images(paths: list[str], images: list[ImagePayload]) -> None:
    written: list[str] = []
    for index, (path, image) in enumerate(zip(paths, images), start=1):
        try:
            with open(path, "wb") as f:
                f.write(image.data)
        except OSError as e:
            logger.error("image_save_failed", path=path, index=index, written=written, error=str(e))
            already = ", ".join(written) if written else "none"
            raise FilesystemError(
                f"Failed to save image {index} of {len(images)} to {path}: {e}. Already written: {already}"
            ) from e
        written.append(path)
        logger.info("image_saved", path=path, index=index, size=image.size)


def deliver(plan: DeliveryPlan, images: list[ImagePayload]) -> list[ImageContent | TextContent]:
    if plan.mode is OutputMode.INLINE:
        return [ImageContent(type="image", data=image.b64, mimeType=image.mime_type) for image in images]

    _write_images(plan.paths, images)
    return [TextContent(type="text", text=f"Image saved to: file://{path}") for path in plan.paths]


def route_output(
    images: list[ImagePayload],
    output: OutputMode,
    file_output: str | None = None,
    filename: str | None = None,
    default_prefix: str = "openai_image",
) -> list[ImageContent | TextContent]:
    plan = plan_delivery(images, output, file_output, filename, default_prefix)
    return deliver(plan, images)
