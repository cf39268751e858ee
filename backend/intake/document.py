"""Document loading and attachment normalization.

``ContentNormalizer`` turns a submission (free text plus uploaded files) into
the single text blob the extraction model sees. Sections are produced in a
fixed order, raw text first and then attachments in upload order, and joined
with ``SECTION_SEPARATOR``:

  - images      : described/transcribed by the vision capability
  - PDFs        : native text layer (pdfplumber), or the vision capability
                  when configured or running serverless
  - text / docs : bytes decoded as UTF-8

A file that cannot be read never aborts the batch; it contributes a
``Failed to process file: <name>`` placeholder instead.
"""
import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader, TextLoader
from langchain_core.documents import Document
from langchain_core.runnables import RunnableLambda

from intake.config import Settings, get_settings
from intake.errors import ExtractionFailure
from intake.llm import VisionDescriber, extract_pdf_text
from intake.schemas import Attachment

SECTION_SEPARATOR = "\n\n---\n\n"

PDF_TYPE = "application/pdf"
TEXT_TYPES = {
    "text/plain",
    "text/markdown",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
ALLOWED_MEDIA_TYPES = IMAGE_TYPES | TEXT_TYPES | {PDF_TYPE}

# Used when the browser sends a generic media type
_EXTENSION_TYPES = {
    ".pdf": PDF_TYPE,
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

logger = logging.getLogger("intake.document")


def load_document(file_path: Path) -> list[Document]:
    """Load a single reference document from path. Supports PDF and TXT."""
    path_str = str(file_path)
    if file_path.suffix.lower() == ".pdf":
        loader = PyPDFLoader(path_str)
    elif file_path.suffix.lower() in (".txt", ".text", ".md"):
        loader = TextLoader(path_str, encoding="utf-8", autodetect_encoding=True)
    else:
        raise ValueError(f"Unsupported file type: {file_path.suffix}")

    return loader.load()


def resolve_media_type(attachment: Attachment) -> str:
    """Return the declared media type, or one guessed from the file extension."""
    declared = (attachment.media_type or "").split(";")[0].strip().lower()
    if declared in ALLOWED_MEDIA_TYPES or declared.startswith("image/"):
        return declared
    return _EXTENSION_TYPES.get(Path(attachment.filename).suffix.lower(), declared)


def failure_placeholder(filename: str) -> str:
    return f"Failed to process file: {filename}"


def running_serverless() -> bool:
    return bool(os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))


class ContentNormalizer:
    """Merges free text and attachment content into one deterministic text blob."""

    def __init__(
        self,
        vision: VisionDescriber,
        pdf_text_extractor: Callable[[bytes], str] = extract_pdf_text,
        settings: Settings | None = None,
        log: logging.Logger | None = None,
    ):
        self.vision = vision
        self.pdf_text_extractor = pdf_text_extractor
        self.settings = settings or get_settings()
        self.log = log or logger

    def extract_contents(self, raw_text: str, attachments: Sequence[Attachment]) -> list[tuple[str, str]]:
        """Return ``(source_label, text)`` pairs: raw text first, then each file in upload order.

        Attachments are extracted concurrently; ``RunnableLambda.batch``
        returns results in input order, so concurrency never reorders output.
        """
        contents: list[tuple[str, str]] = []
        if raw_text and raw_text.strip():
            contents.append(("text", raw_text))
        if attachments:
            runner = RunnableLambda(self._extract_section)
            sections = runner.batch(
                list(attachments),
                config={"max_concurrency": self.settings.extraction_max_concurrency},
            )
            contents.extend(zip((a.filename for a in attachments), sections))
        return contents

    def normalize(self, raw_text: str, attachments: Sequence[Attachment]) -> str:
        return SECTION_SEPARATOR.join(text for _, text in self.extract_contents(raw_text, attachments))

    def _extract_section(self, attachment: Attachment) -> str:
        try:
            return self.extract_attachment(attachment)
        except Exception as e:
            self.log.error("Error processing file %s: %s", attachment.filename, e)
            return failure_placeholder(attachment.filename)

    def extract_attachment(self, attachment: Attachment) -> str:
        """Extract one attachment into a labelled section. Raises ``ExtractionFailure``."""
        media_type = resolve_media_type(attachment)
        name = attachment.filename

        if media_type == PDF_TYPE:
            return f"PDF Content ({name}):\n{self._pdf_text(attachment)}"
        if media_type.startswith("image/"):
            self.log.info("Describing image %s with the vision model", name)
            return f"Image Analysis ({name}):\n{self.vision.describe(attachment.content, media_type)}"
        if media_type in TEXT_TYPES:
            return f"Text File ({name}):\n{attachment.content.decode('utf-8', errors='replace')}"

        raise ExtractionFailure(name, f"unsupported media type {media_type or 'unknown'}")

    def _pdf_text(self, attachment: Attachment) -> str:
        if self.settings.pdf_extraction == "vision" or running_serverless():
            self.log.info("Using vision model for PDF extraction of %s", attachment.filename)
            return self.vision.describe(attachment.content, PDF_TYPE)
        return self.pdf_text_extractor(attachment.content)
