"""LLM capability clients (OpenAI-compatible API) and native PDF text extraction.

The pipeline never talks to a model directly. It depends on two small
capabilities, ``TextGenerator`` and ``VisionDescriber``, which are injected
into the orchestrators so tests can substitute fakes. The default
implementations below wrap LangChain's ``ChatOpenAI``.
"""
import base64
import io
from typing import Protocol

import pdfplumber
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.output_parsers import StrOutputParser
from langchain_openai import ChatOpenAI

from intake.config import Settings, get_settings

IMAGE_PROMPT = (
    "Please extract all text and relevant information from this image. "
    "Describe what you see in detail."
)
PDF_PROMPT = (
    "Please extract all the text content from this PDF document. "
    "Provide a complete transcription of all visible text."
)


class TextGenerator(Protocol):
    def generate(
        self,
        system: str,
        user: str,
        *,
        json_mode: bool = False,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str: ...


class VisionDescriber(Protocol):
    def describe(self, content: bytes, media_type: str) -> str: ...


def get_llm(
    temperature: float = 0.0,
    max_tokens: int | None = None,
    model: str | None = None,
    settings: Settings | None = None,
) -> ChatOpenAI:
    """Create a chat model from settings.

    Retries are disabled: a failed call must surface immediately so the
    caller can decide whether to fall back or report the error.
    """
    s = settings or get_settings()
    kwargs = {
        "model": model or s.llm_model,
        "temperature": temperature,
        "timeout": s.llm_timeout,
        "max_retries": 0,
    }
    if max_tokens is not None:
        kwargs["max_tokens"] = max_tokens
    if s.base_url:
        kwargs["openai_api_base"] = s.base_url
    return ChatOpenAI(api_key=s.api_key, **kwargs)


class ChatTextGenerator:
    """``TextGenerator`` backed by a chat-completions model."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def generate(
        self,
        system: str,
        user: str,
        *,
        json_mode: bool = False,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        llm = get_llm(temperature=temperature, max_tokens=max_tokens, settings=self.settings)
        if json_mode:
            llm = llm.bind(response_format={"type": "json_object"})
        messages = [SystemMessage(content=system)] if system else []
        messages.append(HumanMessage(content=user))
        chain = llm | StrOutputParser()
        return chain.invoke(messages)


class ChatVisionDescriber:
    """``VisionDescriber`` that sends the raw bytes to a vision model as a data URL."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def describe(self, content: bytes, media_type: str) -> str:
        is_pdf = media_type == "application/pdf"
        max_tokens = self.settings.pdf_vision_max_tokens if is_pdf else self.settings.vision_max_tokens
        llm = get_llm(max_tokens=max_tokens, model=self.settings.vision_model, settings=self.settings)
        encoded = base64.b64encode(content).decode("ascii")
        message = HumanMessage(
            content=[
                {"type": "text", "text": PDF_PROMPT if is_pdf else IMAGE_PROMPT},
                {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{encoded}"}},
            ]
        )
        chain = llm | StrOutputParser()
        return chain.invoke([message])


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Extract the text layer of a PDF held in memory, page by page."""
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(p for p in pages if p.strip())
