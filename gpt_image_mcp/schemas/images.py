import base64
from enum import Enum
from functools import cached_property
from pathlib import PurePath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gpt_image_mcp.core.validators import is_absolute_path

Quality = Literal["auto", "high", "medium", "low"]
Background = Literal["transparent", "opaque", "auto"]
Moderation = Literal["auto", "low"]
OutputFormat = Literal["png", "jpeg", "webp"]


class OutputMode(str, Enum):
    INLINE = "base64"
    FILE = "file_output"


class ImageToolRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(max_length=32000)
    n: int | None = Field(default=None, ge=1, le=10)
    quality: Quality | None = None
    size: str | None = None
    user: str | None = None
    output: OutputMode = OutputMode.INLINE
    file_output: str | None = None
    filename: str | None = None

    @field_validator("file_output")
    @classmethod
    def _file_output_is_absolute(cls, value: str | None) -> str | None:
        if value and not is_absolute_path(value):
            raise ValueError("file_output must be an absolute path")
        if value and not PurePath(value).name:
            raise ValueError("file_output must name a file")
        return value


class CreateImageRequest(ImageToolRequest):
    background: Background | None = None
    moderation: Moderation | None = None
    output_compression: int | None = Field(default=None, ge=0, le=100)
    output_format: OutputFormat | None = None


class EditImageRequest(ImageToolRequest):
    image: str
    mask: str | None = None

    @model_validator(mode="after")
    def _file_output_required_for_file_mode(self) -> "EditImageRequest":
        if self.output is OutputMode.FILE and not self.file_output:
            raise ValueError("file_output must be an absolute path when output is 'file_output'")
        return self


class ImageInput(BaseModel):
    data: bytes
    mime_type: str
    filename: str

    def as_upload(self) -> tuple[str, bytes, str]:
        return self.filename, self.data, self.mime_type


class ImagePayload(BaseModel):
    b64: str
    mime_type: str = "image/png"
    ext: str = "png"

    @cached_property
    def data(self) -> bytes:
        return base64.b64decode(self.b64)

    @property
    def size(self) -> int:
        return len(self.data)


class GenerateParams(BaseModel):
    prompt: str
    model: str
    background: Background | None = None
    moderation: Moderation | None = None
    n: int | None = None
    output_compression: int | None = None
    output_format: OutputFormat | None = None
    quality: Quality | None = None
    size: str | None = None
    user: str | None = None

    def to_request(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class EditParams(BaseModel):
    image: ImageInput
    prompt: str
    model: str
    mask: ImageInput | None = None
    n: int | None = None
    quality: Quality | None = None
    size: str | None = None
    user: str | None = None

    def to_request(self) -> dict[str, Any]:
        request = self.model_dump(exclude_none=True, exclude={"image", "mask"})
        request["image"] = self.image.as_upload()
        if self.mask is not None:
            request["mask"] = self.mask.as_upload()
        return request


class DeliveryPlan(BaseModel):
    mode: OutputMode
    paths: list[str] = []
    overridden: bool = False
