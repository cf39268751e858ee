"""Clarification wizard: targeted follow-up questions and answer merging.

Question generation is a small state machine:

    CALLING ──ok──▶ VALIDATING ──ok──▶ DONE
       │                 │
       └──error──▶ FALLBACK ◀──error/empty
                     │
                     ▼
                    DONE

The fallback never fails. Depending on ``wizard_fallback`` it returns either
the fixed default question set or the questions of the best-matching topic
bucket. With ``wizard_mode="offline"`` the model is skipped entirely and the
topic bank answers directly.
"""
import json
import logging
import re
from collections.abc import Mapping, Sequence
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from intake.config import Settings, get_settings
from intake.document import load_document
from intake.errors import WizardGenerationFailed
from intake.llm import TextGenerator
from intake.schemas import WizardQuestion

logger = logging.getLogger("intake.wizard")

MAX_WIZARD_QUESTIONS = 3

ANSWERS_HEADING = "**Additional Details from Clarification:**"

DEFAULT_QUESTIONS: tuple[WizardQuestion, ...] = (
    WizardQuestion(
        question="What specific systems or processes are affected by this change?",
        placeholder="e.g., Encompass LOS, underwriting workflow, payment processing...",
        key="affected_systems",
    ),
    WizardQuestion(
        question="What is the desired timeline or deadline for this change?",
        placeholder="e.g., End of Q1, before regulatory deadline, ASAP...",
        key="timeline",
    ),
    WizardQuestion(
        question="Who are the key stakeholders that need to be involved or informed?",
        placeholder="e.g., Underwriting team, IT department, compliance officer...",
        key="stakeholders",
    ),
)

# ---------------------------------------------------------------------------
# Offline topic bank
# ---------------------------------------------------------------------------

TOPIC_QUESTIONS: dict[str, tuple[WizardQuestion, ...]] = {
    "system": (
        WizardQuestion(
            question="Which specific systems or platforms are affected by this change?",
            placeholder="e.g., Encompass LOS, credit bureau integration, appraisal ordering system...",
            key="affected_systems",
        ),
        WizardQuestion(
            question="What are the current limitations and what specific functionality do you need?",
            placeholder="Describe what the system does now vs. what you need it to do...",
            key="functionality_needs",
        ),
        WizardQuestion(
            question="Are there any integration points, data mapping requirements, or testing needs?",
            placeholder="e.g., APIs to connect, data fields to map, user acceptance testing requirements...",
            key="technical_requirements",
        ),
    ),
    "compliance": (
        WizardQuestion(
            question="Which regulation or compliance requirement is driving this change?",
            placeholder="e.g., TRID, RESPA, HMDA, Fair Lending, ECOA, state-specific regulation...",
            key="regulation_reference",
        ),
        WizardQuestion(
            question="What is the effective date and are there any deadline constraints?",
            placeholder="e.g., Regulatory deadline, business target date, exam finding remediation timeline...",
            key="compliance_timeline",
        ),
        WizardQuestion(
            question="What training, documentation, or system changes will be required?",
            placeholder="e.g., Staff training, policy updates, disclosure changes, system configuration...",
            key="compliance_implementation",
        ),
    ),
    "underwriting": (
        WizardQuestion(
            question="What specific documentation or condition types are involved?",
            placeholder="e.g., Income verification, asset documentation, employment verification, credit supplements...",
            key="documentation_types",
        ),
        WizardQuestion(
            question="Which loan products or borrower scenarios are affected?",
            placeholder="e.g., All conventional loans, FHA only, self-employed borrowers, investment properties...",
            key="product_scope",
        ),
        WizardQuestion(
            question="Are there investor guideline requirements or approval needed?",
            placeholder="e.g., Fannie Mae guideline update, FHA policy change, investor-specific requirement...",
            key="investor_requirements",
        ),
    ),
    "pricing": (
        WizardQuestion(
            question="How will this impact rate sheets, margins, or lock desk operations?",
            placeholder="e.g., Margin adjustments, rate sheet import changes, lock period modifications...",
            key="pricing_impact",
        ),
        WizardQuestion(
            question="Which loan products and lock periods are affected?",
            placeholder="e.g., 30-year fixed, ARM products, specific lock periods (15, 30, 45, 60 days)...",
            key="pricing_scope",
        ),
        WizardQuestion(
            question="Does this require Secondary Markets approval or coordination?",
            placeholder="e.g., Investor pricing approval, warehouse line impact, hedging considerations...",
            key="secondary_coordination",
        ),
    ),
    "closing": (
        WizardQuestion(
            question="What stage of the closing process is affected (CTC, document prep, funding, post-closing)?",
            placeholder="e.g., Clear to Close criteria, closing disclosure preparation, wire authorization, final docs...",
            key="closing_stage",
        ),
        WizardQuestion(
            question="Are there any timing, authorization, or documentation requirements?",
            placeholder="e.g., Sign-off authority, 3-day waiting periods, final condition clearance, funding limits...",
            key="closing_requirements",
        ),
        WizardQuestion(
            question="How will this impact investor delivery or warehouse lending?",
            placeholder="e.g., Document delivery timing, investor quality control, warehouse line compliance...",
            key="investor_delivery",
        ),
    ),
    "servicing": (
        WizardQuestion(
            question="What aspect of servicing is affected (payments, escrow, insurance, customer service)?",
            placeholder="e.g., Payment processing, escrow analysis, insurance tracking, borrower communications...",
            key="servicing_area",
        ),
        WizardQuestion(
            question="How should payments, escrow, or borrower accounts be handled differently?",
            placeholder="e.g., Payment application order, escrow calculation method, notice generation...",
            key="servicing_process",
        ),
        WizardQuestion(
            question="Are there investor servicing guidelines or regulatory requirements?",
            placeholder="e.g., CFPB servicing rules, investor reporting requirements, RESPA compliance...",
            key="servicing_requirements",
        ),
    ),
    "policy": (
        WizardQuestion(
            question="What is the current policy/process and what specifically needs to change?",
            placeholder="Describe how things work now vs. how they should work after this change...",
            key="policy_change",
        ),
        WizardQuestion(
            question="Who is affected by this change (roles, departments, external partners)?",
            placeholder="e.g., Loan officers, processors, underwriters, brokers, title companies...",
            key="stakeholders",
        ),
        WizardQuestion(
            question="What training, documentation, or system updates are needed to support this?",
            placeholder="e.g., Training materials, procedure manuals, system configuration, communication plan...",
            key="implementation_needs",
        ),
    ),
}

DEFAULT_TOPIC = "policy"

# Declaration order breaks ties between equally-scored topics.
TOPIC_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("system", re.compile(
        r"system|integration|LOS|platform|API|software|application|database|encompass|calyx|bytepro|interface",
        re.IGNORECASE,
    )),
    ("compliance", re.compile(
        r"compliance|regulatory|regulation|TRID|RESPA|HMDA|ECOA|FCRA|fair lending|audit|exam|QM|ATR",
        re.IGNORECASE,
    )),
    ("underwriting", re.compile(
        r"underwriting|condition|stipulation|documentation|income|asset|credit|appraisal|employment|VOE|VOD|gift|UW",
        re.IGNORECASE,
    )),
    ("pricing", re.compile(
        r"rate|pricing|lock|margin|rate sheet|pricing engine|lock desk|yield spread|basis points",
        re.IGNORECASE,
    )),
    ("closing", re.compile(
        r"closing|funding|wire|CTC|clear to close|document|disclosure|settlement|title|escrow setup|CD",
        re.IGNORECASE,
    )),
    ("servicing", re.compile(
        r"servicing|payment|escrow|delinquency|default|modification|forbearance|loss mitigation|PMI|payoff",
        re.IGNORECASE,
    )),
    ("policy", re.compile(
        r"policy|process|procedure|workflow|guideline|standard|requirement|protocol",
        re.IGNORECASE,
    )),
)


def score_topics(title: str, description: str) -> dict[str, int]:
    """Count keyword-pattern matches per topic in ``title + description``."""
    text = f"{title} {description}"
    return {topic: len(pattern.findall(text)) for topic, pattern in TOPIC_PATTERNS}


def determine_topic(title: str, description: str) -> str:
    """Pick the highest-scoring topic; ``policy`` when nothing matches."""
    best_topic, best_score = DEFAULT_TOPIC, 0
    for topic, score in score_topics(title, description).items():
        if score > best_score:
            best_topic, best_score = topic, score
    return best_topic


def determine_topic_questions(title: str, description: str) -> list[WizardQuestion]:
    return list(TOPIC_QUESTIONS[determine_topic(title, description)])


# ---------------------------------------------------------------------------
# Answer merge
# ---------------------------------------------------------------------------

def _question_lookup(questions: Sequence[WizardQuestion] | None) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for q in DEFAULT_QUESTIONS:
        lookup[q.key] = q.question
    for bucket in TOPIC_QUESTIONS.values():
        for q in bucket:
            lookup.setdefault(q.key, q.question)
    # Questions actually shown to the user take precedence.
    for q in questions or ():
        lookup[q.key] = q.question
    return lookup


def format_wizard_answers(
    description: str,
    answers: Mapping[str, str],
    questions: Sequence[WizardQuestion] | None = None,
) -> str:
    """Append non-empty wizard answers to ``description`` under a fixed heading.

    Each answer becomes ``**<question>**\\n<answer>``; answers whose key is
    unknown are appended bare. With no non-empty answers the description is
    returned unchanged.
    """
    lookup = _question_lookup(questions)
    blocks = []
    for key, answer in answers.items():
        if not answer or not answer.strip():
            continue
        question = lookup.get(key)
        blocks.append(f"**{question}**\n{answer.strip()}" if question else answer.strip())

    if not blocks:
        return description
    return f"{description}\n\n---\n\n{ANSWERS_HEADING}\n\n" + "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Model-backed generation
# ---------------------------------------------------------------------------

WIZARD_SYSTEM_PROMPT = """You are an expert mortgage change management analyst. Based on the user's request, generate 1-3 highly relevant clarification questions that will help gather the most critical missing information needed to create a complete change-management ticket.

{guidelines}

Your task:
1. Analyze the title and description of the change request
2. Identify the category (system/IT, compliance, underwriting, pricing, closing, servicing, policy)
3. Determine what critical information is missing
4. Generate 1-3 specific, actionable questions that will help complete the ticket
5. Each question should be directly relevant to the specific request (NOT generic)
6. Questions should help identify: affected systems, stakeholders, timeline, requirements, dependencies, risk level

Return a JSON object with a "questions" array containing 1-3 question objects:
{{
  "questions": [
    {{
      "question": "Specific question text ending with ?",
      "placeholder": "Example answer to guide the user",
      "key": "snake_case_identifier"
    }}
  ]
}}

IMPORTANT:
- Questions must be specific to THIS request, not generic
- Focus on the most critical missing information
- Use mortgage industry terminology where appropriate
- Keep questions clear and concise
- Provide helpful placeholder examples
- Always return at least 1 question"""

WIZARD_USER_PROMPT = (
    "Request Title: {title}\n\n"
    "Request Description: {description}\n\n"
    "Generate 1-3 most relevant clarification questions for this specific change management request."
)


class WizardState(str, Enum):
    CALLING = "CALLING"
    VALIDATING = "VALIDATING"
    FALLBACK = "FALLBACK"
    DONE = "DONE"


def parse_wizard_response(raw: str, log: logging.Logger | None = None) -> list[WizardQuestion]:
    """Parse a bare JSON array or a ``{"questions": [...]}`` object into 1-3 questions.

    Malformed items are skipped.

    Raises:
        WizardGenerationFailed: on invalid JSON or when no usable question remains.
    """
    log = log or logger
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise WizardGenerationFailed(f"invalid JSON: {e}") from e

    items = parsed if isinstance(parsed, list) else (parsed.get("questions") if isinstance(parsed, dict) else None)
    if not isinstance(items, list):
        raise WizardGenerationFailed("response has no questions array")

    questions: list[WizardQuestion] = []
    for item in items:
        try:
            questions.append(WizardQuestion.model_validate(item))
        except ValidationError as e:
            log.debug("Skipping malformed wizard question %r: %s", item, e)
        if len(questions) == MAX_WIZARD_QUESTIONS:
            break

    if not questions:
        raise WizardGenerationFailed("empty questions array")
    return questions


def load_guidelines_text(path: Path, log: logging.Logger | None = None) -> str:
    """Read the reference guideline document; a missing or unreadable file yields ""."""
    log = log or logger
    try:
        docs = load_document(path)
    except Exception as e:
        log.warning("Could not load guidelines file %s: %s", path, e)
        return ""
    log.info("Loaded guidelines file %s", path)
    return "\n".join(doc.page_content for doc in docs)


class WizardQuestionGenerator:
    """Produces 1-3 clarification questions for a request. Never raises."""

    def __init__(
        self,
        generator: TextGenerator,
        settings: Settings | None = None,
        guidelines_text: str | None = None,
        log: logging.Logger | None = None,
    ):
        self.generator = generator
        self.settings = settings or get_settings()
        self.log = log or logger
        self._guidelines_text = guidelines_text

    @property
    def guidelines_text(self) -> str:
        if self._guidelines_text is None:
            self._guidelines_text = load_guidelines_text(self.settings.guidelines_path, log=self.log)
        return self._guidelines_text

    def generate_questions(self, title: str, description: str) -> list[WizardQuestion]:
        if self.settings.wizard_mode == "offline":
            return determine_topic_questions(title, description)

        state = WizardState.CALLING
        raw = ""
        questions: list[WizardQuestion] = []
        while state is not WizardState.DONE:
            if state is WizardState.CALLING:
                try:
                    raw = self._call_model(title, description)
                    state = WizardState.VALIDATING
                except Exception as e:
                    self.log.error("Error generating clarification questions: %s", e)
                    state = WizardState.FALLBACK
            elif state is WizardState.VALIDATING:
                try:
                    questions = parse_wizard_response(raw, log=self.log)
                    self.log.info("Generated %d clarification questions", len(questions))
                    state = WizardState.DONE
                except WizardGenerationFailed as e:
                    self.log.warning("Unusable wizard response (%s), using fallback", e)
                    state = WizardState.FALLBACK
            else:
                questions = self.fallback_questions(title, description)
                state = WizardState.DONE
        return questions

    def fallback_questions(self, title: str, description: str) -> list[WizardQuestion]:
        if self.settings.wizard_fallback == "topic":
            self.log.info("Using topic-bank fallback questions")
            return determine_topic_questions(title, description)
        self.log.info("Using default fallback questions")
        return list(DEFAULT_QUESTIONS)

    def _call_model(self, title: str, description: str) -> str:
        self.log.info("Generating clarification questions for: %s", title)
        return self.generator.generate(
            WIZARD_SYSTEM_PROMPT.format(guidelines=self.guidelines_text),
            WIZARD_USER_PROMPT.format(title=title, description=description),
            json_mode=True,
            temperature=self.settings.wizard_temperature,
            max_tokens=self.settings.wizard_max_tokens,
        )
