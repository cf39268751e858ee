"""Intake Assistant API – AI-assisted mortgage change-management intake.

Endpoints:
  GET  /health               Health check.
  GET  /form-options         Closed vocabularies for the multi-select fields.
  POST /analyze              Analyze text + uploads; returns extraction, guidance and route.
  POST /route                Advisory route for a request type + confidence.
  POST /wizard/questions     1-3 clarification questions for a request.
  POST /wizard/answers       Merge wizard answers into the description.
  POST /clarify              Questions targeting missing form fields.
  POST /enhance-description  Rewrite a description to be complete and actionable.
  POST /recommend-training   Training courses for a how-to style issue.
  POST /submit               Submit the reviewed form to the ticket sink / notifier.
"""
from functools import lru_cache

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from intake.analysis import IntakeAnalyzer
from intake.assembler import IntakeRecord
from intake.assistants import IntakeAssistant, TrainingRecommendations
from intake.config import get_settings
from intake.document import ALLOWED_MEDIA_TYPES, ContentNormalizer, resolve_media_type
from intake.errors import AnalysisFailed, AssistantError, InputError
from intake.llm import ChatTextGenerator, ChatVisionDescriber, TextGenerator
from intake.logging_config import setup_logging
from intake.routing import RouteTarget, route
from intake.schemas import FORM_OPTIONS, Attachment, IntakeFormData, RequestType, WizardQuestion
from intake.submission import Notifier, SubmissionResult, TicketSink, submit_intake
from intake.wizard import WizardQuestionGenerator, format_wizard_answers, load_guidelines_text

setup_logging(get_settings().log_level)

app = FastAPI(
    title="Intake Assistant – Mortgage Change Management",
    description=(
        "AI-assisted intake: request classification (change / support / training), "
        "form extraction from text and attachments, clarification wizard, and submission."
    ),
    version="1.0.0",
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": str(exc)})


@app.exception_handler(AnalysisFailed)
async def analysis_failed_handler(request: Request, exc: AnalysisFailed):
    return JSONResponse(
        status_code=502,
        content={"detail": "Failed to analyze content. Please try again.", "error": str(exc)},
    )


@app.exception_handler(AssistantError)
async def assistant_error_handler(request: Request, exc: AssistantError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "error": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Ensure all errors return JSON so the frontend can parse them."""
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "error": str(exc)},
    )


# ---------------------------------------------------------------------------
# Dependencies (override in tests or to plug in a ticketing integration)
# ---------------------------------------------------------------------------

def get_text_generator() -> TextGenerator:
    return ChatTextGenerator(get_settings())


@lru_cache
def get_guidelines_text() -> str:
    return load_guidelines_text(get_settings().guidelines_path)


def get_analyzer(generator: TextGenerator = Depends(get_text_generator)) -> IntakeAnalyzer:
    s = get_settings()
    normalizer = ContentNormalizer(ChatVisionDescriber(s), settings=s)
    return IntakeAnalyzer(generator, normalizer, settings=s)


def get_wizard(generator: TextGenerator = Depends(get_text_generator)) -> WizardQuestionGenerator:
    return WizardQuestionGenerator(generator, settings=get_settings(), guidelines_text=get_guidelines_text())


def get_assistant(generator: TextGenerator = Depends(get_text_generator)) -> IntakeAssistant:
    return IntakeAssistant(generator, settings=get_settings())


def get_ticket_sink() -> TicketSink | None:
    """No ticketing integration is bundled; deployments override this dependency."""
    return None


def get_notifier() -> Notifier | None:
    """No email integration is bundled; deployments override this dependency."""
    return None


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class RouteRequest(BaseModel):
    request_type: RequestType
    confidence: float = Field(ge=0.0, le=1.0)


class RouteResponse(BaseModel):
    route: RouteTarget


class WizardQuestionsRequest(BaseModel):
    title: str
    description: str = ""


class WizardQuestionsResponse(BaseModel):
    questions: list[WizardQuestion]


class WizardAnswersRequest(BaseModel):
    description: str
    answers: dict[str, str]
    questions: list[WizardQuestion] = Field(default_factory=list)


class WizardAnswersResponse(BaseModel):
    description: str


class ClarifyRequest(BaseModel):
    partial_data: dict
    missing_fields: list[str]


class ClarifyResponse(BaseModel):
    questions: list[str]


class EnhanceRequest(BaseModel):
    description: str


class EnhanceResponse(BaseModel):
    enhanced_description: str


class TrainingRequest(BaseModel):
    user_issue: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "ok", "service": "Intake Assistant", "version": "1.0.0"}


@app.get("/form-options")
async def form_options():
    return {name: list(values) for name, values in FORM_OPTIONS.items()}


@app.post("/analyze", response_model=IntakeRecord)
async def analyze(
    text_input: str = Form(default=""),
    files: list[UploadFile] = File(default=[]),
    analyzer: IntakeAnalyzer = Depends(get_analyzer),
):
    """Analyze a request described in text and/or uploaded files.

    Response fields:
    - **analysis**: extracted form data, missing fields, request type + confidence.
    - **profile**: detected scenario types, suggested departments, risk level.
    - **route**: FORM | SUPPORT_REDIRECT | TRAINING_REDIRECT (advisory).
    - **prefill**: form values ready for review.
    """
    s = get_settings()
    if len(files) > s.max_upload_files:
        raise HTTPException(status_code=400, detail=f"At most {s.max_upload_files} files are allowed.")

    attachments: list[Attachment] = []
    for upload in files:
        content = await upload.read()
        if len(content) > s.max_upload_bytes:
            raise HTTPException(status_code=413, detail=f"{upload.filename} exceeds the upload size limit.")
        attachment = Attachment(
            filename=upload.filename or "upload",
            media_type=upload.content_type or "application/octet-stream",
            content=content,
        )
        if resolve_media_type(attachment) not in ALLOWED_MEDIA_TYPES:
            raise HTTPException(
                status_code=400,
                detail="Invalid file type. Only PDF, images, and text documents are allowed.",
            )
        attachments.append(attachment)

    return await run_in_threadpool(analyzer.assess, text_input, attachments)


@app.post("/route", response_model=RouteResponse)
async def route_request(req: RouteRequest):
    return RouteResponse(route=route(req.request_type, req.confidence))


@app.post("/wizard/questions", response_model=WizardQuestionsResponse)
def wizard_questions(req: WizardQuestionsRequest, wizard: WizardQuestionGenerator = Depends(get_wizard)):
    if not req.title.strip() and not req.description.strip():
        raise InputError("Title or description is required.")
    return WizardQuestionsResponse(questions=wizard.generate_questions(req.title, req.description))


@app.post("/wizard/answers", response_model=WizardAnswersResponse)
async def wizard_answers(req: WizardAnswersRequest):
    return WizardAnswersResponse(
        description=format_wizard_answers(req.description, req.answers, req.questions)
    )


@app.post("/clarify", response_model=ClarifyResponse)
def clarify(req: ClarifyRequest, assistant: IntakeAssistant = Depends(get_assistant)):
    return ClarifyResponse(
        questions=assistant.generate_clarification_questions(req.partial_data, req.missing_fields)
    )


@app.post("/enhance-description", response_model=EnhanceResponse)
def enhance_description(req: EnhanceRequest, assistant: IntakeAssistant = Depends(get_assistant)):
    return EnhanceResponse(enhanced_description=assistant.enhance_description(req.description))


@app.post("/recommend-training", response_model=TrainingRecommendations, response_model_by_alias=False)
def recommend_training(req: TrainingRequest, assistant: IntakeAssistant = Depends(get_assistant)):
    return assistant.recommend_training(req.user_issue)


@app.post("/submit", response_model=SubmissionResult)
def submit(
    form: IntakeFormData,
    sink: TicketSink | None = Depends(get_ticket_sink),
    notifier: Notifier | None = Depends(get_notifier),
):
    """Submit the reviewed form. Ticket and email failures never fail the submission."""
    return submit_intake(form, sink=sink, notifier=notifier, settings=get_settings())
