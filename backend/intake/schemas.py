"""Form vocabularies and the typed records passed between pipeline stages.

The three multi-select vocabularies are closed: values are matched exactly
(case-sensitive, whitespace included) and nothing outside them is ever
accepted into a form.
"""
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intake.errors import SubmissionError

TITLE_MAX_LENGTH = 128

SOFTWARE_PLATFORMS: tuple[str, ...] = (
    "AIO Portal",
    "Automation",
    "Build and Lock Portal",
    "Byte",
    "Clear",
    "Clear Docs",
    "CMG/JV Websites",
    "Document Vendor",
    "Home Portal",
    "HomeFundIt",
    "List and Lock (MySite)",
    "Marketing Hub",
    "Optical Character Recognition",
    "Salesforce",
    "Secure Doc Upload",
    "Servicing Docs",
    "SmartApp",
)

IMPACTED_AREAS: tuple[str, ...] = (
    "Loan Origination  (Sales)",
    "Disclosures",
    "Processing",
    "Underwriting",
    "Closing",
    "Post Closing",
    "Servicing",
    "Product",
    "Risk/Compliance/QC/QA",
    "Secondary/Pricing",
)

CHANNELS: tuple[str, ...] = (
    "Bank",
    "Consumer Direct",
    "Correspondent",
    "JV",
    "Retail",
    "Select Partner",
    "Wholesale",
)

FORM_OPTIONS: dict[str, tuple[str, ...]] = {
    "softwarePlatforms": SOFTWARE_PLATFORMS,
    "impactedAreas": IMPACTED_AREAS,
    "channels": CHANNELS,
}


def filter_vocabulary(values: list[str], vocabulary: tuple[str, ...]) -> list[str]:
    """Keep only exact vocabulary members, preserving order and dropping repeats."""
    allowed = set(vocabulary)
    kept: list[str] = []
    for value in values:
        if value in allowed and value not in kept:
            kept.append(value)
    return kept


class RequestType(str, Enum):
    CHANGE = "change"
    SUPPORT = "support"
    TRAINING = "training"


class RiskLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class Attachment(BaseModel):
    """One uploaded file, held in memory for the duration of an analysis call."""
    filename: str
    media_type: str = "application/octet-stream"
    content: bytes = b""


class ExtractedFormData(BaseModel):
    """Partial form produced by extraction. Multi-selects are pre-filtered."""
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    description: str | None = None
    software_platforms: list[str] = Field(default_factory=list)
    impacted_areas: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Validated outcome of one extraction/classification call."""
    model_config = ConfigDict(frozen=True)

    extracted_data: ExtractedFormData
    missing_fields: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    clarification_questions: list[str] = Field(default_factory=list)
    request_type: RequestType
    request_type_confidence: float = Field(ge=0.0, le=1.0)
    request_type_reason: str = ""


class GuidelineProfile(BaseModel):
    """Department, risk and follow-up hints derived from matched scenarios."""
    model_config = ConfigDict(frozen=True)

    scenario_types: list[str] = Field(default_factory=list)
    suggested_departments: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.MEDIUM
    candidate_questions: list[str] = Field(default_factory=list)


class WizardQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    placeholder: str = ""
    key: str

    @field_validator("question")
    @classmethod
    def _ends_with_question_mark(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be empty")
        if not value.endswith("?"):
            value = value.rstrip(".:") + "?"
        return value

    @field_validator("key")
    @classmethod
    def _non_empty_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("key must not be empty")
        return value


class IntakeFormData(BaseModel):
    """The full intake form as reviewed and submitted by the user."""
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: str
    business_stakeholder: str = ""
    requestor_name: str = ""
    requestor_email: str = ""
    software_platforms: list[str] = Field(default_factory=list)
    impacted_areas: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    send_confirmation: bool = False

    @field_validator("software_platforms")
    @classmethod
    def _check_platforms(cls, values: list[str]) -> list[str]:
        return _require_vocabulary(values, SOFTWARE_PLATFORMS, "software platform")

    @field_validator("impacted_areas")
    @classmethod
    def _check_areas(cls, values: list[str]) -> list[str]:
        return _require_vocabulary(values, IMPACTED_AREAS, "impacted area")

    @field_validator("channels")
    @classmethod
    def _check_channels(cls, values: list[str]) -> list[str]:
        return _require_vocabulary(values, CHANNELS, "channel")


def _require_vocabulary(values: list[str], vocabulary: tuple[str, ...], label: str) -> list[str]:
    unknown = [v for v in values if v not in vocabulary]
    if unknown:
        raise SubmissionError(f"Unknown {label}(s): {', '.join(unknown)}")
    return values
