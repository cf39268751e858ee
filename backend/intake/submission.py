"""Submission of a reviewed intake form to the ticket sink and notifier.

Both collaborators are optional and best effort: a failed ticket is reported
back in the result and a failed confirmation email is only logged. The form
itself is already validated against the closed vocabularies by
``IntakeFormData``.
"""
import html
import logging
import re
import time
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from intake.config import Settings, get_settings
from intake.schemas import IntakeFormData

logger = logging.getLogger("intake.submission")

BASE_TAGS = ("CMG-Intake", "AI-Submitted")


class TicketRef(BaseModel):
    id: int | str
    url: str


class TicketSink(Protocol):
    def create_ticket(
        self,
        title: str,
        html_description: str,
        tags: list[str],
        area_path: str | None = None,
        iteration_path: str | None = None,
        attachment_refs: list[str] | None = None,
    ) -> TicketRef: ...


class Notifier(Protocol):
    def send_confirmation(
        self,
        to_address: str,
        recipient_name: str,
        title: str,
        description: str,
        ticket: TicketRef | None = None,
    ) -> bool: ...


class SubmissionResult(BaseModel):
    success: bool
    message: str
    submission_id: str
    data: IntakeFormData
    ticket: TicketRef | None = None
    ticket_error: str | None = None
    confirmation_sent: bool = False


def _escape(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")


def build_ticket_description(form: IntakeFormData, submitted_at: datetime | None = None) -> str:
    """Render the form as the HTML body of a ticket."""
    parts = ["<div>", "<h3>Description</h3>", f"<p>{_escape(form.description)}</p>", "</div>"]

    for heading, values in (
        ("Software Platforms", form.software_platforms),
        ("Impacted Areas", form.impacted_areas),
        ("Channels", form.channels),
    ):
        if values:
            parts.extend(["<div>", f"<h3>{heading}</h3>", "<ul>"])
            parts.extend(f"<li>{_escape(v)}</li>" for v in values)
            parts.extend(["</ul>", "</div>"])

    submitted_at = submitted_at or datetime.now()
    parts.extend([
        '<div style="margin-top: 20px; padding-top: 10px; border-top: 1px solid #ccc;">',
        "<p><em>Submitted via CMG Intake AI Assistant</em></p>",
        f"<p><em>Submission Date: {submitted_at:%Y-%m-%d %H:%M:%S}</em></p>",
        "</div>",
    ])
    return "\n".join(parts)


def build_ticket_tags(form: IntakeFormData) -> list[str]:
    """Base tags plus the first platform and first impacted area, whitespace dashed."""
    tags = list(BASE_TAGS)
    if form.software_platforms:
        tags.append(re.sub(r"\s+", "-", form.software_platforms[0]))
    if form.impacted_areas:
        tags.append(re.sub(r"\s+", "-", form.impacted_areas[0]))
    return tags


def submit_intake(
    form: IntakeFormData,
    sink: TicketSink | None = None,
    notifier: Notifier | None = None,
    settings: Settings | None = None,
    log: logging.Logger | None = None,
) -> SubmissionResult:
    s = settings or get_settings()
    log = log or logger
    log.info("Form submission received: %s (attachments=%d)", form.title, len(form.attachments))

    ticket = None
    ticket_error = None
    if sink is not None:
        try:
            ticket = sink.create_ticket(
                form.title,
                build_ticket_description(form),
                build_ticket_tags(form),
                area_path=s.ticket_area_path,
                iteration_path=s.ticket_iteration_path,
                attachment_refs=list(form.attachments),
            )
            log.info("Ticket created: %s", ticket.id)
        except Exception as e:
            log.error("Failed to create ticket: %s", e)
            ticket_error = str(e)

    confirmation_sent = False
    if form.send_confirmation and form.requestor_email and notifier is not None:
        try:
            confirmation_sent = bool(
                notifier.send_confirmation(
                    form.requestor_email,
                    form.requestor_name or "User",
                    form.title,
                    form.description,
                    ticket,
                )
            )
        except Exception as e:
            log.error("Failed to send confirmation email to %s: %s", form.requestor_email, e)

    return SubmissionResult(
        success=True,
        message="Form submitted successfully",
        submission_id=str(int(time.time() * 1000)),
        data=form,
        ticket=ticket,
        ticket_error=ticket_error,
        confirmation_sent=confirmation_sent,
    )
