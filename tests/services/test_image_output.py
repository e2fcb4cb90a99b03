import base64
import re
from pathlib import Path
from unittest.mock import patch

import pytest
from mcp.types import ImageContent, TextContent

from gpt_image_mcp.core.exceptions import FilesystemError
from gpt_image_mcp.schemas.images import DeliveryPlan, ImagePayload, OutputMode
from gpt_image_mcp.services import image_output


def _payload(data: bytes = b"png-bytes", ext: str = "png", mime_type: str = "image/png") -> ImagePayload:
    return ImagePayload(b64=base64.b64encode(data).decode(), mime_type=mime_type, ext=ext)


class TestSanitizeFilename:
    def test_safe_name_unchanged(self) -> None:
        assert image_output.sanitize_filename("cat-playing_football2") == "cat-playing_football2"

    def test_max_length_safe_name_unchanged(self) -> None:
        name = "a" * 200
        assert image_output.sanitize_filename(name) == name

    def test_path_separators_replaced(self) -> None:
        result = image_output.sanitize_filename("../etc\\passwd/x")
        assert "/" not in result
        assert "\\" not in result
        assert result == "-etc-passwd-x"

    def test_unsafe_and_control_characters(self) -> None:
        result = image_output.sanitize_filename('a<b>c:d"e|f?g*h\x00i\x1fj')
        assert not re.search(r'[<>:"|?*\x00-\x1f]', result)
        assert result == "a-b-c-d-e-f-g-h-i-j"

    def test_trims_dots_and_whitespace(self) -> None:
        assert image_output.sanitize_filename("  ..name..  ") == "name"

    def test_truncates(self) -> None:
        assert len(image_output.sanitize_filename("x" * 500)) == 200

    @pytest.mark.parametrize("name", ["", "   ", "...", " . . "])
    def test_empty_becomes_default(self, name: str) -> None:
        assert image_output.sanitize_filename(name) == "image"

    def test_deterministic(self) -> None:
        assert image_output.sanitize_filename("a/b c") == image_output.sanitize_filename("a/b c")


class TestImagePayload:
    def test_decodes_once(self) -> None:
        payload = _payload(b"x" * 10)
        with patch.object(base64, "b64decode", wraps=base64.b64decode) as mock_decode:
            assert payload.size == 10
            assert payload.data == b"x" * 10
            assert payload.size == 10
        assert mock_decode.call_count == 1


class TestPayloadsForFormat:
    @pytest.mark.parametrize(
        ("fmt", "mime_type", "ext"),
        [
            (None, "image/png", "png"),
            ("png", "image/png", "png"),
            ("jpeg", "image/jpeg", "jpg"),
            ("webp", "image/webp", "webp"),
        ],
    )
    def test_format_mapping(self, fmt: str | None, mime_type: str, ext: str) -> None:
        [payload] = image_output.payloads_for_format(["aGVsbG8="], fmt)
        assert payload.mime_type == mime_type
        assert payload.ext == ext

    def test_preserves_order(self) -> None:
        payloads = image_output.payloads_for_format(["QQ==", "Qg==", "Qw=="])
        assert [p.data for p in payloads] == [b"A", b"B", b"C"]


class TestOutputPaths:
    def test_multiple_images_indexed(self) -> None:
        paths = image_output.output_paths("/tmp/x.png", [_payload(), _payload(), _payload()])
        assert paths == ["/tmp/x_1.png", "/tmp/x_2.png", "/tmp/x_3.png"]

    def test_single_image_keeps_path(self) -> None:
        assert image_output.output_paths("/tmp/x.webp", [_payload()]) == ["/tmp/x.webp"]

    def test_single_image_without_extension(self) -> None:
        assert image_output.output_paths("/tmp/x", [_payload(ext="jpg")]) == ["/tmp/x.jpg"]

    def test_multiple_without_extension(self) -> None:
        paths = image_output.output_paths("/out/edit", [_payload(), _payload()])
        assert paths == ["/out/edit_1.png", "/out/edit_2.png"]

    def test_count_matches_payloads(self) -> None:
        images = [_payload() for _ in range(7)]
        assert len(image_output.output_paths("/tmp/y.png", images)) == len(images)


class TestDefaultOutputDir:
    def test_created_under_home(self, home_dir: Path) -> None:
        result = image_output.default_output_dir()
        assert result == home_dir / "Pictures" / "gpt-image"
        assert result.is_dir()

    def test_falls_back_to_work_dir(self, home_dir: Path, tmp_path: Path) -> None:
        (home_dir / "Pictures").write_text("not a directory")
        with patch.object(image_output.settings, "work_dir", str(tmp_path / "work")):
            result = image_output.default_output_dir()
        assert result == tmp_path / "work"


class TestPlanDelivery:
    def test_small_inline_stays_inline(self) -> None:
        plan = image_output.plan_delivery([_payload(b"x" * 10)], OutputMode.INLINE, None, None, "openai_image")
        assert plan.mode is OutputMode.INLINE
        assert plan.paths == []
        assert plan.overridden is False

    def test_exactly_at_threshold_stays_inline(self) -> None:
        with patch.object(image_output.settings, "max_response_size", 20):
            plan = image_output.plan_delivery(
                [_payload(b"x" * 10), _payload(b"y" * 10)], OutputMode.INLINE, None, None, "openai_image"
            )
        assert plan.mode is OutputMode.INLINE

    def test_over_threshold_switches_to_file(self, home_dir: Path) -> None:
        with patch.object(image_output.settings, "max_response_size", 20):
            plan = image_output.plan_delivery(
                [_payload(b"x" * 11), _payload(b"y" * 10)], OutputMode.INLINE, None, "big cat", "openai_image"
            )
        assert plan.mode is OutputMode.FILE
        assert plan.overridden is True
        default_dir = home_dir / "Pictures" / "gpt-image"
        assert plan.paths == [str(default_dir / "big cat_1.png"), str(default_dir / "big cat_2.png")]

    def test_real_threshold(self, home_dir: Path) -> None:
        big = _payload(b"\x00" * (1048576 + 1))
        plan = image_output.plan_delivery([big], OutputMode.INLINE, None, None, "openai_image")
        assert plan.mode is OutputMode.FILE

    def test_override_uses_explicit_destination(self, tmp_path: Path) -> None:
        target = str(tmp_path / "out.png")
        with patch.object(image_output.settings, "max_response_size", 1):
            plan = image_output.plan_delivery([_payload()], OutputMode.INLINE, target, None, "openai_image")
        assert plan.paths == [target]

    def test_file_mode_default_name_uses_prefix_and_timestamp(self, home_dir: Path) -> None:
        plan = image_output.plan_delivery([_payload(ext="webp")], OutputMode.FILE, None, None, "openai_image_edit")
        [path] = plan.paths
        assert re.fullmatch(r"openai_image_edit_\d+\.webp", Path(path).name)
        assert Path(path).parent == home_dir / "Pictures" / "gpt-image"

    def test_file_mode_sanitizes_filename(self, home_dir: Path) -> None:
        plan = image_output.plan_delivery([_payload()], OutputMode.FILE, None, "../sneaky/name", "openai_image")
        assert Path(plan.paths[0]).name == "-sneaky-name.png"

    def test_accepts_raw_mode_value(self) -> None:
        plan = image_output.plan_delivery([_payload()], "base64", None, None, "openai_image")  # type: ignore[arg-type]
        assert plan.mode is OutputMode.INLINE


class TestDeliver:
    def test_inline_content(self) -> None:
        images = [_payload(b"one"), _payload(b"two", ext="jpg", mime_type="image/jpeg")]
        content = image_output.deliver(DeliveryPlan(mode=OutputMode.INLINE), images)
        assert all(isinstance(c, ImageContent) for c in content)
        assert [c.data for c in content] == [images[0].b64, images[1].b64]
        assert [c.mimeType for c in content] == ["image/png", "image/jpeg"]

    def test_file_content(self, tmp_path: Path) -> None:
        paths = [str(tmp_path / "a_1.png"), str(tmp_path / "a_2.png")]
        content = image_output.deliver(
            DeliveryPlan(mode=OutputMode.FILE, paths=paths), [_payload(b"first"), _payload(b"second")]
        )
        assert Path(paths[0]).read_bytes() == b"first"
        assert Path(paths[1]).read_bytes() == b"second"
        assert all(isinstance(c, TextContent) for c in content)
        assert [c.text for c in content] == [f"Image saved to: file://{p}" for p in paths]

    def test_partial_failure_keeps_earlier_files(self, tmp_path: Path) -> None:
        first = str(tmp_path / "ok.png")
        second = str(tmp_path / "missing-dir" / "fail.png")
        third = str(tmp_path / "never.png")
        plan = DeliveryPlan(mode=OutputMode.FILE, paths=[first, second, third])
        with pytest.raises(FilesystemError) as exc_info:
            image_output.deliver(plan, [_payload(), _payload(), _payload()])
        assert Path(first).exists()
        assert not Path(third).exists()
        assert "image 2 of 3" in exc_info.value.detail
        assert first in exc_info.value.detail


class TestRouteOutput:
    def test_inline(self) -> None:
        content = image_output.route_output([_payload()], OutputMode.INLINE)
        assert len(content) == 1
        assert isinstance(content[0], ImageContent)

    def test_file_to_explicit_path(self, tmp_path: Path) -> None:
        target = tmp_path / "x.png"
        content = image_output.route_output([_payload(), _payload()], OutputMode.FILE, file_output=str(target))
        assert (tmp_path / "x_1.png").exists()
        assert (tmp_path / "x_2.png").exists()
        assert len(content) == 2

    def test_no_images(self) -> None:
        assert image_output.route_output([], OutputMode.INLINE) == []
