"""tests/conftest.py

Pytest configuration and shared fixtures for the intake test suite.
Fake capability clients stand in for the language model so no test touches
the network.
"""

from __future__ import annotations

# Standard Library
import json
from pathlib import Path
from typing import Any

# Third-Party Libraries
import pytest

# Local Modules
from intake.config import Settings


class FakeTextGenerator:
    """Records every call and answers with a canned response (or raises)."""

    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def generate(
        self,
        system: str,
        user: str,
        *,
        json_mode: bool = False,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        self.calls.append(
            {
                "system": system,
                "user": user,
                "json_mode": json_mode,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        if isinstance(self.response, str):
            return self.response
        return json.dumps(self.response)


class FakeVision:
    """Vision capability that describes by filename-free content, optionally failing on a marker."""

    def __init__(self, fail_on: bytes | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[tuple[bytes, str]] = []

    def describe(self, content: bytes, media_type: str) -> str:
        self.calls.append((content, media_type))
        if self.fail_on is not None and content == self.fail_on:
            raise RuntimeError("vision service unavailable")
        return f"described {media_type}: {content.decode('utf-8', errors='replace')}"


@pytest.fixture(autouse=True)
def _no_serverless_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PDF handling on the native path unless a test opts in."""
    monkeypatch.delenv("VERCEL", raising=False)
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any real reference files."""
    return Settings(
        pdf_extraction="native",
        wizard_mode="model",
        wizard_fallback="default",
        guidelines_path=tmp_path / "missing-guidelines.txt",
        training_catalog_path=tmp_path / "missing-catalog.json",
    )


@pytest.fixture
def fake_vision() -> FakeVision:
    return FakeVision()


@pytest.fixture
def support_response() -> dict[str, Any]:
    """A well-formed model answer classifying the request as support."""
    return {
        "title": "Encompass credit bureau sync failing",
        "description": "The Encompass integration keeps failing to sync credit bureau data.",
        "softwarePlatforms": ["Automation", "Photoshop"],
        "impactedAreas": ["Processing", "Underwriting"],
        "channels": ["Retail"],
        "missingFields": ["channels"],
        "clarificationQuestions": ["Which specific systems are affected?"],
        "confidence": 0.8,
        "scenarioType": "systemChanges",
        "requestType": "support",
        "requestTypeConfidence": 0.85,
        "requestTypeReason": "Confirmed integration failure that training cannot fix.",
    }
