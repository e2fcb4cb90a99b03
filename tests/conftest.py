import base64
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gpt_image_mcp.services import openai_images


def make_b64(size: int = 10, fill: bytes = b"\x89") -> str:
    return base64.b64encode(fill * size).decode()


def make_images_response(*encoded: str) -> SimpleNamespace:
    return SimpleNamespace(data=[SimpleNamespace(b64_json=b64) for b64 in encoded])


@pytest.fixture
def home_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def mock_openai() -> MagicMock:
    client = MagicMock()
    client.images.generate = AsyncMock(return_value=make_images_response(make_b64()))
    client.images.edit = AsyncMock(return_value=make_images_response(make_b64()))
    with patch.object(openai_images, "get_openai_client", return_value=client):
        yield client
