"""tests/test_document.py

Unit tests for the content normalizer (attachments → text blob).
"""

from __future__ import annotations

import time
from unittest.mock import Mock

import pytest

from intake.config import Settings
from intake.document import SECTION_SEPARATOR, ContentNormalizer, resolve_media_type
from intake.errors import ExtractionFailure
from intake.schemas import Attachment

from conftest import FakeVision


def _image(name: str, content: bytes) -> Attachment:
    return Attachment(filename=name, media_type="image/png", content=content)


class SlowVision(FakeVision):
    """Takes longer for earlier uploads, so completion order is the reverse of upload order."""

    def __init__(self, delays: dict[bytes, float]) -> None:
        super().__init__()
        self.delays = delays
        self.completed: list[bytes] = []

    def describe(self, content: bytes, media_type: str) -> str:
        time.sleep(self.delays[content])
        result = super().describe(content, media_type)
        self.completed.append(content)
        return result


class TestContentNormalizer:
    """Test suite for ContentNormalizer."""

    def test_text_only(self, settings: Settings, fake_vision: FakeVision) -> None:
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        assert normalizer.normalize("Rate lock extension request", []) == "Rate lock extension request"
        assert fake_vision.calls == []

    def test_raw_text_first_then_upload_order(self, settings: Settings, fake_vision: FakeVision) -> None:
        """Test output order is raw text, then attachments as uploaded."""
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        attachments = [_image(f"shot{i}.png", f"image {i}".encode()) for i in range(5)]

        result = normalizer.normalize("intro", attachments)

        sections = result.split(SECTION_SEPARATOR)
        assert sections[0] == "intro"
        assert sections[1:] == [
            f"Image Analysis (shot{i}.png):\ndescribed image/png: image {i}" for i in range(5)
        ]

    def test_slow_early_uploads_keep_their_position(self, settings: Settings) -> None:
        """Test sections follow upload order even when later files finish first."""
        contents = [f"image {i}".encode() for i in range(4)]
        vision = SlowVision({c: 0.05 * (4 - i) for i, c in enumerate(contents)})
        normalizer = ContentNormalizer(vision, settings=settings)

        result = normalizer.normalize("", [_image(f"shot{i}.png", c) for i, c in enumerate(contents)])

        assert vision.completed[0] != contents[0]
        assert result.split(SECTION_SEPARATOR) == [
            f"Image Analysis (shot{i}.png):\ndescribed image/png: image {i}" for i in range(4)
        ]

    def test_failed_attachment_is_contained(self, settings: Settings) -> None:
        """Test one failing attachment yields a placeholder and the other still extracts."""
        vision = FakeVision(fail_on=b"broken")
        normalizer = ContentNormalizer(vision, settings=settings)
        attachments = [_image("bad.png", b"broken"), _image("good.png", b"error dialog text")]

        result = normalizer.normalize("", attachments)

        assert "Failed to process file: bad.png" in result
        assert "Image Analysis (good.png):\ndescribed image/png: error dialog text" in result
        assert result.index("bad.png") < result.index("good.png")

    def test_empty_raw_text_omitted(self, settings: Settings, fake_vision: FakeVision) -> None:
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        result = normalizer.normalize("   ", [Attachment(filename="notes.txt", media_type="text/plain", content=b"hi")])
        assert result == "Text File (notes.txt):\nhi"

    def test_text_file_decoded(self, settings: Settings, fake_vision: FakeVision) -> None:
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        attachment = Attachment(filename="notes.md", media_type="text/markdown", content="Café rule".encode())
        assert normalizer.extract_attachment(attachment) == "Text File (notes.md):\nCafé rule"

    def test_pdf_uses_native_extractor(self, settings: Settings, fake_vision: FakeVision) -> None:
        extractor = Mock(return_value="page one text")
        normalizer = ContentNormalizer(fake_vision, pdf_text_extractor=extractor, settings=settings)
        attachment = Attachment(filename="memo.pdf", media_type="application/pdf", content=b"%PDF-1.4")

        assert normalizer.extract_attachment(attachment) == "PDF Content (memo.pdf):\npage one text"
        extractor.assert_called_once_with(b"%PDF-1.4")
        assert fake_vision.calls == []

    def test_pdf_vision_mode(self, tmp_path, fake_vision: FakeVision) -> None:
        settings = Settings(pdf_extraction="vision", guidelines_path=tmp_path / "g.txt")
        extractor = Mock()
        normalizer = ContentNormalizer(fake_vision, pdf_text_extractor=extractor, settings=settings)
        attachment = Attachment(filename="memo.pdf", media_type="application/pdf", content=b"scan")

        assert normalizer.extract_attachment(attachment) == "PDF Content (memo.pdf):\ndescribed application/pdf: scan"
        extractor.assert_not_called()

    def test_pdf_serverless_uses_vision(
        self, settings: Settings, fake_vision: FakeVision, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("VERCEL", "1")
        extractor = Mock()
        normalizer = ContentNormalizer(fake_vision, pdf_text_extractor=extractor, settings=settings)
        normalizer.extract_attachment(Attachment(filename="a.pdf", media_type="application/pdf", content=b"x"))
        extractor.assert_not_called()
        assert fake_vision.calls == [(b"x", "application/pdf")]

    def test_unsupported_type_raises_and_normalize_substitutes(
        self, settings: Settings, fake_vision: FakeVision
    ) -> None:
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        attachment = Attachment(filename="data.zip", media_type="application/zip", content=b"PK")

        with pytest.raises(ExtractionFailure):
            normalizer.extract_attachment(attachment)
        assert normalizer.normalize("text", [attachment]) == "text" + SECTION_SEPARATOR + "Failed to process file: data.zip"

    def test_extract_contents_labels(self, settings: Settings, fake_vision: FakeVision) -> None:
        normalizer = ContentNormalizer(fake_vision, settings=settings)
        contents = normalizer.extract_contents("body", [_image("a.png", b"A")])
        assert [label for label, _ in contents] == ["text", "a.png"]


class TestResolveMediaType:
    """Test suite for media type resolution."""

    def test_declared_type_wins(self) -> None:
        assert resolve_media_type(Attachment(filename="x.bin", media_type="image/jpeg")) == "image/jpeg"

    def test_generic_type_falls_back_to_extension(self) -> None:
        attachment = Attachment(filename="Scan.PDF", media_type="application/octet-stream")
        assert resolve_media_type(attachment) == "application/pdf"

    def test_parameters_stripped(self) -> None:
        attachment = Attachment(filename="a.txt", media_type="text/plain; charset=utf-8")
        assert resolve_media_type(attachment) == "text/plain"
