from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "openai-gpt-image-mcp"
    app_version: str = "1.0.0"
    log_level: str = "info"

    image_model: str = "gpt-image-1"
    openai_timeout: float | None = None

    output_subdir: str = "Pictures/gpt-image"
    work_dir: str = Field(default="/tmp", validation_alias=AliasChoices("MCP_HF_WORK_DIR", "work_dir"))
    max_response_size: int = 1048576


settings = Settings()
