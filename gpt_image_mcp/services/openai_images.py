import openai
import structlog
from openai import AsyncOpenAI

from gpt_image_mcp.config import settings
from gpt_image_mcp.core.exceptions import UpstreamError
from gpt_image_mcp.schemas.images import EditParams, GenerateParams

logger = structlog.get_logger()

_client: AsyncOpenAI | None = None


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        if settings.openai_timeout is not None:
            _client = AsyncOpenAI(timeout=settings.openai_timeout)
        else:
            _client = AsyncOpenAI()
    return _client


def _encoded_images(response: object) -> list[str]:
    # gpt-image-1 always answers with b64_json items
    return [item.b64_json for item in (getattr(response, "data", None) or []) if item.b64_json]


async def generate_images(params: GenerateParams) -> list[str]:
    request = params.to_request()
    logger.info("upstream_generate", model=params.model, n=params.n, size=params.size)
    try:
        response = await get_openai_client().images.generate(**request)
    except openai.OpenAIError as e:
        code = getattr(e, "code", None)
        logger.error("upstream_request_failed", operation="generate", code=code, error=str(e))
        raise UpstreamError(f"Image generation failed: {e}", code=code) from e
    return _encoded_images(response)


async def edit_images(params: EditParams) -> list[str]:
    request = params.to_request()
    logger.info("upstream_edit", model=params.model, n=params.n, size=params.size, has_mask=params.mask is not None)
    try:
        response = await get_openai_client().images.edit(**request)
    except openai.OpenAIError as e:
        code = getattr(e, "code", None)
        logger.error("upstream_request_failed", operation="edit", code=code, error=str(e))
        raise UpstreamError(f"Image edit failed: {e}", code=code) from e
    return _encoded_images(response)


async def close_client() -> None:
    global _client
    if _client:
        await _client.close()
        _client = None
