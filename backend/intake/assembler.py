"""Assemble the final record handed to the form layer."""
from pydantic import BaseModel, ConfigDict

from intake.routing import RouteTarget, route
from intake.schemas import AnalysisResult, GuidelineProfile, IntakeFormData


class IntakeRecord(BaseModel):
    """Analysis, guideline hints, routing decision and form prefill for one submission."""
    model_config = ConfigDict(frozen=True)

    analysis: AnalysisResult
    profile: GuidelineProfile
    route: RouteTarget
    prefill: IntakeFormData


def assemble_record(analysis: AnalysisResult, profile: GuidelineProfile) -> IntakeRecord:
    extracted = analysis.extracted_data
    prefill = IntakeFormData(
        title=extracted.title or "",
        description=extracted.description or "",
        software_platforms=list(extracted.software_platforms),
        impacted_areas=list(extracted.impacted_areas),
        channels=list(extracted.channels),
    )
    return IntakeRecord(
        analysis=analysis,
        profile=profile,
        route=route(analysis.request_type, analysis.request_type_confidence),
        prefill=prefill,
    )
