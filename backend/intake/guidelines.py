"""Mortgage change-management decision table and guideline resolution.

Each row of ``DECISION_TABLE`` ties a scenario category to the keywords that
detect it, the department that usually owns it, whether it is high risk, and
the follow-up questions an intake analyst would ask. Table order matters: it
fixes the order of departments and questions in every ``GuidelineProfile``.
"""
from collections.abc import Iterable
from dataclasses import dataclass

from intake.schemas import GuidelineProfile, RiskLevel


@dataclass(frozen=True)
class ScenarioGuideline:
    category: str
    keywords: tuple[str, ...]
    department: str
    high_risk: bool
    follow_up_questions: tuple[str, ...]


DECISION_TABLE: tuple[ScenarioGuideline, ...] = (
    ScenarioGuideline(
        category="conditions",
        keywords=("condition", "stipulation", "documentation requirement", "PTD", "PTF"),
        department="Underwriting or Closing",
        high_risk=False,
        follow_up_questions=(
            "What triggers this condition?",
            "Who provides the required documentation?",
            "What validates clearance of this condition?",
            "Is this Prior to Document (PTD) or Prior to Funding (PTF)?",
        ),
    ),
    ScenarioGuideline(
        category="systemChanges",
        keywords=("system", "integration", "LOS", "platform", "API", "software"),
        department="IT",
        high_risk=False,
        follow_up_questions=(
            "Which specific systems are affected?",
            "What is the current behavior vs desired behavior?",
            "Are there data mapping requirements?",
            "Is user training needed?",
            "What is the downtime window tolerance?",
        ),
    ),
    ScenarioGuideline(
        category="compliance",
        keywords=("compliance", "regulatory", "TRID", "RESPA", "HMDA", "FCRA", "ECOA", "QM", "ATR"),
        department="Compliance",
        high_risk=True,
        follow_up_questions=(
            "What regulation or rule drives this change?",
            "What is the effective date or deadline?",
            "Is compliance/legal review required?",
            "What are the training requirements?",
            "Are system changes needed to support compliance?",
        ),
    ),
    ScenarioGuideline(
        category="pricing",
        keywords=("rate", "pricing", "lock", "margin", "rate sheet", "pricing engine"),
        department="Origination / Secondary Markets",
        high_risk=True,
        follow_up_questions=(
            "How will this impact rate sheets?",
            "Are margin calculations changing?",
            "What are the lock period implications?",
            "Is investor or secondary markets approval required?",
            "How will loan officers be notified?",
        ),
    ),
    ScenarioGuideline(
        category="investor",
        keywords=("investor", "guideline", "agency", "Fannie", "Freddie", "FHA", "VA", "USDA", "Ginnie"),
        department="Underwriting",
        high_risk=True,
        follow_up_questions=(
            "Which investor or agency is this for?",
            "What is the guideline or announcement reference?",
            "Which product types are affected?",
            "What is the effective date?",
            "Does the AUS system need configuration updates?",
        ),
    ),
    ScenarioGuideline(
        category="closing",
        keywords=("closing", "funding", "wire", "CTC", "clear to close", "closing disclosure"),
        department="Closing",
        high_risk=True,
        follow_up_questions=(
            "What are the document requirements?",
            "What authorization levels are involved?",
            "What are the timing requirements?",
            "How does this impact investor delivery?",
            "Are there TRID compliance considerations?",
        ),
    ),
    ScenarioGuideline(
        category="escrow",
        keywords=("escrow", "taxes", "insurance", "impound", "escrow analysis"),
        department="Servicing or Closing",
        high_risk=False,
        follow_up_questions=(
            "Which items are escrowed (taxes, insurance, HOA)?",
            "How is the calculation methodology changing?",
            "What is the payment timing?",
            "What notice requirements apply?",
            "Are there cushion or shortage handling changes?",
        ),
    ),
    ScenarioGuideline(
        category="lossMitigation",
        keywords=("delinquency", "default", "modification", "forbearance", "loss mitigation"),
        department="Servicing / Loss Mitigation",
        high_risk=True,
        follow_up_questions=(
            "What are the eligibility criteria?",
            "What is the timeline for this process?",
            "Is investor approval required?",
            "What are the regulatory requirements (CFPB servicing rules)?",
            "How are borrowers notified?",
        ),
    ),
    ScenarioGuideline(
        category="audit",
        keywords=("audit", "exam", "finding", "violation", "remediation", "QC"),
        department="Compliance",
        high_risk=True,
        follow_up_questions=(
            "What is the specific finding or violation?",
            "What is the remediation timeline?",
            "What is the root cause analysis?",
            "Is regulatory reporting required?",
            "What process changes are needed to prevent recurrence?",
        ),
    ),
)

SCENARIO_CATEGORIES: tuple[str, ...] = tuple(g.category for g in DECISION_TABLE)
GENERAL_SCENARIO = "general"


def resolve_guidelines(categories: Iterable[str]) -> GuidelineProfile:
    """Build the department/risk/question profile for a set of categories.

    The result depends only on which categories are present, never on the
    order they are given in. Unknown category names are ignored.
    """
    wanted = set(categories)
    matched = [g for g in DECISION_TABLE if g.category in wanted]

    departments: list[str] = []
    questions: list[str] = []
    for guideline in matched:
        if guideline.department not in departments:
            departments.append(guideline.department)
        for question in guideline.follow_up_questions:
            if question not in questions:
                questions.append(question)

    risk = RiskLevel.HIGH if any(g.high_risk for g in matched) else RiskLevel.MEDIUM
    return GuidelineProfile(
        scenario_types=[g.category for g in matched],
        suggested_departments=departments,
        risk_level=risk,
        candidate_questions=questions,
    )
