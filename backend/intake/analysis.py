"""Extraction and request-type classification of intake submissions.

Design principles:
  - The keyword pass (scenario classifier + guideline table) runs first and
    only steers the prompt; the model owns extraction and classification.
  - The model answers in JSON and the answer is validated against a strict
    schema before anything downstream sees it.
  - Multi-select values are filtered server-side against the closed form
    vocabularies. The model is told not to invent values, but is never
    trusted to comply.
  - There is no local fallback: any capability or parse failure raises
    ``AnalysisFailed`` and the caller offers a retry.
"""
import json
import logging
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from intake.assembler import IntakeRecord, assemble_record
from intake.classifier import classify_scenarios
from intake.config import Settings, get_settings
from intake.document import ContentNormalizer
from intake.errors import AnalysisFailed, InputError
from intake.guidelines import GENERAL_SCENARIO, resolve_guidelines
from intake.llm import TextGenerator
from intake.schemas import (
    CHANNELS,
    IMPACTED_AREAS,
    SOFTWARE_PLATFORMS,
    TITLE_MAX_LENGTH,
    AnalysisResult,
    Attachment,
    ExtractedFormData,
    GuidelineProfile,
    RequestType,
    filter_vocabulary,
)

logger = logging.getLogger("intake.analysis")

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
# Literal braces in the JSON example are doubled for str.format.

ANALYSIS_SYSTEM_PROMPT = """You are an AI assistant specialized in mortgage operations with deep knowledge of 150+ common change management scenarios across:
- Loan Origination (LOS systems, processing, application intake)
- Underwriting (conditions, stipulations, AUS, investor guidelines)
- Closing/Funding (CTC, document prep, wires, TRID compliance)
- Servicing (payments, escrow, loss mitigation, default management)
- Compliance (TRID, RESPA, HMDA, Fair Lending, QM/ATR)
- IT/Systems (integrations, LOS configurations, data management)

Your task is to analyze change management requests and extract relevant information to populate the intake form fields.

DETECTED SCENARIO CONTEXT:
- Scenario Types: {scenario_types}
- Suggested Departments: {departments}
- Risk Level: {risk_level}

The form has the following fields:
1. Title: A short title of the issue (max {title_max} characters)
2. Description: Detailed description of the issue or feature request
3. Software Platforms: Which software platforms will be impacted (multi-select from: {platforms})
4. Impacted Areas: Who will be impacted by this change (multi-select from: {areas})
5. Channels: Which channels will be impacted (multi-select from: {channels})

Based on the detected scenario type(s), generate intelligent follow-up questions from these categories:
{guideline_questions}

IMPORTANT - REQUEST TYPE CLASSIFICATION:
Before filling out the form, first classify this request into ONE of these categories.

TRAINING PRIORITY: If the request could plausibly be resolved through training or education, classify it as "training". We want to empower users with knowledge rather than only fixing the immediate issue.

1. "training" - a Training request (PREFER THIS WHENEVER APPLICABLE):
   - User asking how to use a feature, process, or system
   - Questions about workflows, procedures, or business processes
   - "How do I do X?" or "I don't know how to..." questions
   - User needs help understanding a concept (e.g., leaseholds, appraisals, underwriting)
   - "Where can I learn about..." questions
   - Even if they also need immediate help, training may prevent future issues

2. "support" - an Application Support issue (ONLY if training cannot fix it):
   - System is down or broken, or the user CANNOT access a system due to a technical error
   - Password resets and permission problems
   - Specific error messages or confirmed system failures
   - Clear technical bugs that training won't solve

3. "change" - a Change Management request (ONLY when an actual modification is required):
   - Software/system changes (new features, enhancements, configurations)
   - Defect corrections requiring code changes
   - Process changes that require IT/system modifications
   - Compliance or regulatory changes requiring system updates

Return your response as a JSON object with this exact structure:
{{
  "title": "extracted title or null",
  "description": "extracted description or null",
  "softwarePlatforms": ["array of matching platforms"],
  "impactedAreas": ["array of matching areas"],
  "channels": ["array of matching channels"],
  "missingFields": ["array of field names that couldn't be determined"],
  "clarificationQuestions": ["array of specific questions to ask the user - use the guideline questions above as reference"],
  "confidence": 0.85,
  "scenarioType": "{primary_scenario}",
  "requestType": "change or support or training",
  "requestTypeConfidence": 0.95,
  "requestTypeReason": "brief explanation of why this was classified as change/support/training"
}}

Important:
- Only include platforms, areas, and channels that EXACTLY match the provided options
- If you're not sure about a field, include it in missingFields
- Generate clarification questions specific to the detected scenario type
- Confidence values must be between 0 and 1
- Be thorough but conservative - it's better to ask for clarification than to guess incorrectly"""

ANALYSIS_USER_PROMPT = (
    "Please analyze the following mortgage change management request and extract "
    "information for the intake form:\n\n{content}"
)


def build_analysis_prompt(profile: GuidelineProfile) -> str:
    """Render the system instructions for one extraction call."""
    if profile.candidate_questions:
        questions = "\n".join(f"{i}. {q}" for i, q in enumerate(profile.candidate_questions, 1))
    else:
        questions = "Standard clarification questions"
    return ANALYSIS_SYSTEM_PROMPT.format(
        scenario_types=", ".join(profile.scenario_types) or "General",
        departments=", ".join(profile.suggested_departments) or "To be determined",
        risk_level=profile.risk_level.value,
        title_max=TITLE_MAX_LENGTH,
        platforms=", ".join(SOFTWARE_PLATFORMS),
        areas=", ".join(IMPACTED_AREAS),
        channels=", ".join(CHANNELS),
        guideline_questions=questions,
        primary_scenario=profile.scenario_types[0] if profile.scenario_types else GENERAL_SCENARIO,
    )


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------

class ModelAnalysisPayload(BaseModel):
    """Shape the model must answer with. Nulls are repaired, wrong types rejected."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str | None = None
    description: str | None = None
    software_platforms: list[str] = Field(default_factory=list, alias="softwarePlatforms")
    impacted_areas: list[str] = Field(default_factory=list, alias="impactedAreas")
    channels: list[str] = Field(default_factory=list)
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")
    clarification_questions: list[str] = Field(default_factory=list, alias="clarificationQuestions")
    confidence: float = 0.0
    request_type: RequestType = Field(default=RequestType.CHANGE, alias="requestType")
    request_type_confidence: float = Field(default=0.0, alias="requestTypeConfidence")
    request_type_reason: str = Field(default="", alias="requestTypeReason")

    @field_validator(
        "software_platforms", "impacted_areas", "channels", "missing_fields", "clarification_questions",
        mode="before",
    )
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    @field_validator("title", "description", mode="before")
    @classmethod
    def _blank_text(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("title")
    @classmethod
    def _truncate_title(cls, value: str | None) -> str | None:
        return value.strip()[:TITLE_MAX_LENGTH] if value else value

    @field_validator("request_type", mode="before")
    @classmethod
    def _normalize_request_type(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return RequestType.CHANGE
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("request_type_reason", mode="before")
    @classmethod
    def _null_reason(cls, value):
        return "" if value is None else value

    @field_validator("confidence", "request_type_confidence", mode="before")
    @classmethod
    def _null_confidence(cls, value):
        return 0.0 if value is None else value

    @field_validator("confidence", "request_type_confidence")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)


def parse_analysis_response(raw: str, log: logging.Logger | None = None) -> AnalysisResult:
    """Validate a raw model answer and turn it into an ``AnalysisResult``.

    Raises:
        AnalysisFailed: if the answer is not a JSON object of the expected shape.
    """
    log = log or logger
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise AnalysisFailed(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisFailed(f"Model returned {type(data).__name__}, expected a JSON object")
    try:
        payload = ModelAnalysisPayload.model_validate(data)
    except ValidationError as e:
        raise AnalysisFailed(f"Model response failed validation: {e}") from e

    extracted = ExtractedFormData(
        title=payload.title,
        description=payload.description,
        software_platforms=filter_vocabulary(payload.software_platforms, SOFTWARE_PLATFORMS),
        impacted_areas=filter_vocabulary(payload.impacted_areas, IMPACTED_AREAS),
        channels=filter_vocabulary(payload.channels, CHANNELS),
    )
    dropped = (
        set(payload.software_platforms) - set(extracted.software_platforms)
        | set(payload.impacted_areas) - set(extracted.impacted_areas)
        | set(payload.channels) - set(extracted.channels)
    )
    if dropped:
        log.debug("Dropped values outside the form vocabularies: %s", sorted(dropped))

    return AnalysisResult(
        extracted_data=extracted,
        missing_fields=payload.missing_fields,
        confidence=payload.confidence,
        clarification_questions=payload.clarification_questions,
        request_type=payload.request_type,
        request_type_confidence=payload.request_type_confidence,
        request_type_reason=payload.request_type_reason,
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class IntakeAnalyzer:
    """Runs the normalize → classify → extract funnel for one submission at a time.

    Holds no per-request state, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        generator: TextGenerator,
        normalizer: ContentNormalizer,
        settings: Settings | None = None,
        log: logging.Logger | None = None,
    ):
        self.generator = generator
        self.normalizer = normalizer
        self.settings = settings or get_settings()
        self.log = log or logger

    def prepare(self, raw_text: str, attachments: Sequence[Attachment] = ()) -> str:
        """Validate the submission and normalize it into a single text blob."""
        if not (raw_text and raw_text.strip()) and not attachments:
            raise InputError("Please provide either text input or upload files")
        self.log.info(
            "Analyzing content: text length=%d, files=%d", len(raw_text or ""), len(attachments)
        )
        return self.normalizer.normalize(raw_text or "", attachments)

    def analyze(self, raw_text: str, attachments: Sequence[Attachment] = ()) -> AnalysisResult:
        return self.analyze_text(self.prepare(raw_text, attachments))

    def assess(self, raw_text: str, attachments: Sequence[Attachment] = ()) -> IntakeRecord:
        """Analyze a submission and assemble the routed record for the form layer."""
        text = self.prepare(raw_text, attachments)
        profile = resolve_guidelines(classify_scenarios(text))
        return assemble_record(self.analyze_text(text, profile=profile), profile)

    def analyze_text(self, normalized_text: str, profile: GuidelineProfile | None = None) -> AnalysisResult:
        """Extract form fields and classify the request type from normalized text.

        Raises:
            InputError: if the text is empty.
            AnalysisFailed: on any capability, JSON or schema failure.
        """
        if not normalized_text or not normalized_text.strip():
            raise InputError("Nothing to analyze")

        profile = profile or resolve_guidelines(classify_scenarios(normalized_text))
        self.log.info(
            "Detected scenarios=%s departments=%s risk=%s",
            profile.scenario_types or [GENERAL_SCENARIO],
            profile.suggested_departments,
            profile.risk_level.value,
        )

        try:
            raw = self.generator.generate(
                build_analysis_prompt(profile),
                ANALYSIS_USER_PROMPT.format(content=normalized_text),
                json_mode=True,
                temperature=self.settings.analysis_temperature,
            )
        except Exception as e:
            self.log.error("Error analyzing content with the model: %s", e)
            raise AnalysisFailed("Failed to analyze content") from e

        result = parse_analysis_response(raw, log=self.log)
        self.log.info(
            "Request type classification: type=%s confidence=%.2f reason=%s",
            result.request_type.value,
            result.request_type_confidence,
            result.request_type_reason or "Not provided",
        )
        return result
