from typing import Annotated, Literal, TypeVar

import structlog
from mcp.types import ImageContent, TextContent
from pydantic import BaseModel, Field, ValidationError

from gpt_image_mcp.config import settings
from gpt_image_mcp.core.exceptions import InvalidInputError, InvalidParameterError
from gpt_image_mcp.schemas.images import (
    Background,
    CreateImageRequest,
    EditImageRequest,
    EditParams,
    GenerateParams,
    Moderation,
    OutputFormat,
    Quality,
)
from gpt_image_mcp.services import image_input, image_output, openai_images
from gpt_image_mcp.services.sizes import resolve_size

logger = structlog.get_logger()

SIZE_DESCRIPTION = (
    "Size of the generated images. Supports exact dimensions (1024x1024, 1536x1024, 1024x1536) "
    "or common aspect ratios (1:1, 16:9, 9:16, square, landscape, portrait, 3:2, 2:3, 4:3, 3:4) or 'auto'."
)

TRANSPARENT_FORMATS = ("png", "webp")
COMPRESSIBLE_FORMATS = ("webp", "jpeg")


ModelT = TypeVar("ModelT", bound=BaseModel)


def _validated(model: type[ModelT], **fields: object) -> ModelT:
    try:
        return model(**{name: value for name, value in fields.items() if value is not None})
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'request'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidParameterError(f"Invalid arguments: {messages}") from e


async def create_image(
    prompt: Annotated[str, Field(description="A text description of the desired image. Max 32000 chars.")],
    background: Annotated[
        Background | None, Field(description="Background transparency. 'transparent' requires png or webp.")
    ] = None,
    moderation: Annotated[Moderation | None, Field(description="Content moderation level.")] = None,
    n: Annotated[int | None, Field(description="Number of images to generate (1-10).")] = None,
    output_compression: Annotated[
        int | None, Field(description="Compression level (0-100) for webp or jpeg output.")
    ] = None,
    output_format: Annotated[OutputFormat | None, Field(description="Image format: png, jpeg or webp.")] = None,
    quality: Annotated[Quality | None, Field(description="Quality: auto, high, medium or low.")] = None,
    size: Annotated[str | None, Field(description=SIZE_DESCRIPTION)] = None,
    user: Annotated[str | None, Field(description="Optional end-user identifier for OpenAI monitoring.")] = None,
    output: Annotated[
        Literal["base64", "file_output"], Field(description="Output format: base64 or file path.")
    ] = "base64",
    file_output: Annotated[
        str | None,
        Field(
            description="Absolute path to save the image file, including the desired file extension "
            "(e.g., /path/to/image.png). If multiple images are generated (n > 1), an index will be "
            "appended (e.g., /path/to/image_1.png)."
        ),
    ] = None,
    filename: Annotated[
        str | None,
        Field(
            description="Optional descriptive filename (without extension) for saving the image. "
            "Example: 'cat-playing-football'. If not provided, a timestamp will be used."
        ),
    ] = None,
) -> list[ImageContent | TextContent]:
    """Create images from a text prompt with OpenAI gpt-image-1."""
    request = _validated(
        CreateImageRequest,
        prompt=prompt,
        background=background,
        moderation=moderation,
        n=n,
        output_compression=output_compression,
        output_format=output_format,
        quality=quality,
        size=size,
        user=user,
        output=output,
        file_output=file_output,
        filename=filename,
    )
    resolved_size = resolve_size(request.size)

    if request.background == "transparent" and request.output_format not in (None, *TRANSPARENT_FORMATS):
        raise InvalidParameterError("If background is 'transparent', output_format must be 'png' or 'webp'")

    params = GenerateParams(
        prompt=request.prompt,
        model=settings.image_model,
        background=request.background,
        moderation=request.moderation,
        n=request.n,
        output_format=request.output_format,
        quality=request.quality,
        size=resolved_size,
        user=request.user,
        output_compression=(
            request.output_compression if request.output_format in COMPRESSIBLE_FORMATS else None
        ),
    )

    encoded = await openai_images.generate_images(params)
    images = image_output.payloads_for_format(encoded, request.output_format)
    logger.info("images_created", count=len(images), output=request.output.value)
    return image_output.route_output(
        images,
        request.output,
        file_output=request.file_output,
        filename=request.filename,
        default_prefix="openai_image",
    )


async def edit_image(
    image: Annotated[str, Field(description="Absolute image path or base64 string to edit.")],
    prompt: Annotated[str, Field(description="A text description of the desired edit. Max 32000 chars.")],
    mask: Annotated[
        str | None,
        Field(
            description="Optional absolute path or base64 string for a mask image (png < 4MB, same dimensions "
            "as the first image). Fully transparent areas indicate where to edit."
        ),
    ] = None,
    n: Annotated[int | None, Field(description="Number of images to generate (1-10).")] = None,
    quality: Annotated[Quality | None, Field(description="Quality: auto, high, medium or low.")] = None,
    size: Annotated[str | None, Field(description=SIZE_DESCRIPTION)] = None,
    user: Annotated[str | None, Field(description="Optional end-user identifier for OpenAI monitoring.")] = None,
    output: Annotated[
        Literal["base64", "file_output"], Field(description="Output format: base64 or file path.")
    ] = "base64",
    file_output: Annotated[
        str | None,
        Field(
            description="Absolute path to save the output image file, including the desired file extension "
            "(e.g., /path/to/image.png). Required when output is 'file_output'. If n > 1, an index is appended."
        ),
    ] = None,
    filename: Annotated[
        str | None,
        Field(
            description="Optional descriptive filename (without extension) for saving the edited image. "
            "Example: 'cat-with-hat'. If not provided, a timestamp will be used."
        ),
    ] = None,
) -> list[ImageContent | TextContent]:
    """Edit an image (optionally through a mask) with OpenAI gpt-image-1."""
    request = _validated(
        EditImageRequest,
        image=image,
        prompt=prompt,
        mask=mask,
        n=n,
        quality=quality,
        size=size,
        user=user,
        output=output,
        file_output=file_output,
        filename=filename,
    )

    if image_input.classify_image_input(request.image) is None:
        raise InvalidInputError("image")
    if request.mask and image_input.classify_image_input(request.mask) is None:
        raise InvalidInputError("mask")

    image_file = image_input.resolve_image_input(request.image, field="image", index=0)
    mask_file = image_input.resolve_image_input(request.mask, field="mask", index=1) if request.mask else None
    resolved_size = resolve_size(request.size)

    params = EditParams(
        image=image_file,
        prompt=request.prompt,
        model=settings.image_model,
        mask=mask_file,
        n=request.n,
        quality=request.quality,
        size=resolved_size,
        user=request.user,
    )

    encoded = await openai_images.edit_images(params)
    # the edit endpoint does not echo a format, results are png
    images = image_output.payloads_for_format(encoded)
    logger.info("images_edited", count=len(images), output=request.output.value)
    return image_output.route_output(
        images,
        request.output,
        file_output=request.file_output,
        filename=request.filename,
        default_prefix="openai_image_edit",
    )
