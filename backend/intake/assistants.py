"""Supplementary model-backed helpers used around the intake form.

  - enhance_description              : rewrite a description to be complete and actionable
  - generate_clarification_questions : 2-3 questions targeting missing fields (best effort)
  - recommend_training               : pick courses from the training catalog
"""
import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from intake.config import Settings, get_settings
from intake.errors import AssistantError, InputError
from intake.llm import TextGenerator

logger = logging.getLogger("intake.assistants")

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

ENHANCE_SYSTEM_PROMPT = (
    "You are an expert in writing detailed change management requests for mortgage operations. "
    "Your task is to enhance user-provided descriptions to make them more complete, clear, and "
    "actionable while maintaining the original intent.\n\n"
    "When enhancing descriptions:\n"
    "1. Keep the original meaning and intent\n"
    "2. Add relevant details about business impact, affected systems, and timing if mentioned\n"
    "3. Structure the description with clear sections if appropriate "
    "(e.g., Current State, Desired State, Business Impact)\n"
    "4. Use professional mortgage industry terminology\n"
    "5. Make it more specific and actionable\n"
    "6. Keep it concise but comprehensive (aim for 2-4 paragraphs)\n\n"
    "Return only the enhanced description as plain text, no JSON or extra formatting."
)

ENHANCE_USER_PROMPT = (
    "Please enhance this change management request description to make it more complete "
    "and professional:\n\n{description}"
)

CLARIFY_PROMPT = (
    "Based on the following partially filled change management request form, generate 2-3 "
    "specific, targeted questions to help fill in the missing information.\n\n"
    "Current Data:\n{partial_data}\n\n"
    "Missing Fields: {missing_fields}\n\n"
    "Generate questions that are:\n"
    "1. Specific and actionable\n"
    "2. Help clarify the missing information\n"
    "3. Easy for the user to answer\n\n"
    'Return a JSON object of the form {{"questions": ["..."]}}.'
)

TRAINING_SYSTEM_PROMPT = (
    "You are an AI training recommendation assistant with access to the training catalog below.\n\n"
    "Analyze the user's issue and recommend 1-5 of the most relevant courses.\n\n"
    "FULL TRAINING CATALOG WITH COURSES:\n{categories}\n\n"
    "AVAILABLE QUICK ACCESS LINKS:\n{quick_access}\n\n"
    "Instructions:\n"
    "1. Understand what the user is struggling with\n"
    "2. Search the entire catalog: course titles, descriptions, and keywords, including synonyms\n"
    "3. Use the EXACT course URLs from the catalog - never generate or modify URLs\n"
    "4. Prefer courses that directly address the need, then related or foundational courses\n"
    "5. Instructor-Led Courses (ILC) are live sessions\n\n"
    "Return a JSON response with this structure:\n"
    "{{\n"
    '  "primaryRecommendation": {{"title": "", "url": "", "description": "", "duration": "", "reason": ""}},\n'
    '  "additionalRecommendations": [{{"title": "", "url": "", "description": "", "duration": "", "reason": ""}}],\n'
    '  "quickAccessLinks": [{{"title": "", "url": "", "description": ""}}],\n'
    '  "summary": "A friendly 2-3 sentence summary explaining the recommended learning path"\n'
    "}}"
)

TRAINING_USER_PROMPT = (
    "User's Issue: {issue}\n\n"
    "Please recommend the most helpful training resources from the catalog."
)


# ---------------------------------------------------------------------------
# Training recommendation schema
# ---------------------------------------------------------------------------

class CourseRecommendation(BaseModel):
    title: str
    url: str
    description: str = ""
    duration: str = ""
    reason: str = ""


class QuickAccessLink(BaseModel):
    title: str
    url: str
    description: str = ""


class TrainingRecommendations(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    primary_recommendation: CourseRecommendation | None = Field(default=None, alias="primaryRecommendation")
    additional_recommendations: list[CourseRecommendation] = Field(
        default_factory=list, alias="additionalRecommendations"
    )
    quick_access_links: list[QuickAccessLink] = Field(default_factory=list, alias="quickAccessLinks")
    summary: str = ""


def load_training_catalog(path: Path) -> dict:
    """Load the course catalog (``categories`` and ``quick_access`` keys)."""
    try:
        catalog = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise AssistantError(f"Training catalog unavailable at {path}: {e}") from e
    if not isinstance(catalog, dict):
        raise AssistantError(f"Training catalog at {path} is not a JSON object")
    return catalog


class IntakeAssistant:
    def __init__(
        self,
        generator: TextGenerator,
        settings: Settings | None = None,
        training_catalog: dict | None = None,
        log: logging.Logger | None = None,
    ):
        self.generator = generator
        self.settings = settings or get_settings()
        self.log = log or logger
        self._training_catalog = training_catalog

    @property
    def training_catalog(self) -> dict:
        if self._training_catalog is None:
            self._training_catalog = load_training_catalog(self.settings.training_catalog_path)
        return self._training_catalog

    def enhance_description(self, description: str) -> str:
        """Return a fuller rewrite of ``description``; the original if the model returns nothing."""
        if not description or not description.strip():
            raise InputError("Description is required and cannot be empty")
        try:
            enhanced = self.generator.generate(
                ENHANCE_SYSTEM_PROMPT,
                ENHANCE_USER_PROMPT.format(description=description),
                temperature=0.7,
                max_tokens=1000,
            )
        except Exception as e:
            self.log.error("Error enhancing description: %s", e)
            raise AssistantError("Failed to enhance description") from e
        return enhanced.strip() or description

    def generate_clarification_questions(
        self,
        partial_data: Mapping[str, object],
        missing_fields: Sequence[str],
    ) -> list[str]:
        """Ask for 2-3 questions covering ``missing_fields``. Returns [] on any failure."""
        prompt = CLARIFY_PROMPT.format(
            partial_data=json.dumps(dict(partial_data), indent=2, default=str),
            missing_fields=", ".join(missing_fields),
        )
        try:
            raw = self.generator.generate("", prompt, json_mode=True, temperature=0.5)
            parsed = json.loads(raw)
        except Exception as e:
            self.log.error("Error generating clarification questions: %s", e)
            return []

        items = parsed if isinstance(parsed, list) else (parsed.get("questions") if isinstance(parsed, dict) else None)
        if not isinstance(items, list):
            return []
        return [q.strip() for q in items if isinstance(q, str) and q.strip()]

    def recommend_training(self, user_issue: str) -> TrainingRecommendations:
        if not user_issue or not user_issue.strip():
            raise InputError("User issue description is required and cannot be empty")
        catalog = self.training_catalog
        system = TRAINING_SYSTEM_PROMPT.format(
            categories=json.dumps(catalog.get("categories", []), indent=2),
            quick_access=json.dumps(catalog.get("quick_access", []), indent=2),
        )
        try:
            raw = self.generator.generate(
                system,
                TRAINING_USER_PROMPT.format(issue=user_issue),
                json_mode=True,
                temperature=0.4,
            )
            recommendations = TrainingRecommendations.model_validate_json(raw)
        except Exception as e:
            self.log.error("Error recommending training: %s", e)
            raise AssistantError("Failed to generate training recommendations") from e

        self.log.info(
            "Training recommendations: primary=%s additional=%d",
            recommendations.primary_recommendation.title if recommendations.primary_recommendation else None,
            len(recommendations.additional_recommendations),
        )
        return recommendations
