"""tests/test_submission.py

Unit tests for form submission, ticket rendering and confirmation email.
"""

from __future__ import annotations

from datetime import datetime
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from intake.config import Settings
from intake.schemas import IntakeFormData
from intake.submission import TicketRef, build_ticket_description, build_ticket_tags, submit_intake


@pytest.fixture
def form() -> IntakeFormData:
    return IntakeFormData(
        title="Encompass credit bureau sync failing",
        description="Sync fails <daily>\nsince Monday",
        requestor_name="Jordan Lee",
        requestor_email="jordan@example.com",
        software_platforms=["Automation"],
        impacted_areas=["Loan Origination  (Sales)", "Processing"],
        channels=["Retail"],
        send_confirmation=True,
    )


class TestIntakeFormData:
    """Test suite for submitted form validation."""

    def test_unknown_platform_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Photoshop"):
            IntakeFormData(title="t", description="d", software_platforms=["Photoshop"])

    def test_title_length_limit(self) -> None:
        with pytest.raises(ValidationError):
            IntakeFormData(title="x" * 129, description="d")


class TestTicketRendering:
    """Test suite for the ticket HTML and tags."""

    def test_description_escaped(self, form: IntakeFormData) -> None:
        body = build_ticket_description(form, submitted_at=datetime(2024, 3, 1, 9, 30))
        assert "<p>Sync fails &lt;daily&gt;<br>since Monday</p>" in body
        assert "<li>Processing</li>" in body
        assert "Submitted via CMG Intake AI Assistant" in body
        assert "Submission Date: 2024-03-01 09:30:00" in body

    def test_empty_sections_omitted(self) -> None:
        body = build_ticket_description(IntakeFormData(title="t", description="d"))
        assert "<h3>Channels</h3>" not in body

    def test_tags(self, form: IntakeFormData) -> None:
        assert build_ticket_tags(form) == ["CMG-Intake", "AI-Submitted", "Automation", "Loan-Origination-(Sales)"]


class TestSubmitIntake:
    """Test suite for submit_intake()."""

    def test_ticket_and_confirmation(self, form: IntakeFormData, settings: Settings) -> None:
        ticket = TicketRef(id=4021, url="https://tickets.local/4021")
        sink = Mock()
        sink.create_ticket.return_value = ticket
        notifier = Mock()
        notifier.send_confirmation.return_value = True

        result = submit_intake(form, sink=sink, notifier=notifier, settings=settings)

        assert result.success is True
        assert result.ticket == ticket
        assert result.confirmation_sent is True
        assert result.submission_id.isdigit()
        notifier.send_confirmation.assert_called_once_with(
            "jordan@example.com", "Jordan Lee", form.title, form.description, ticket
        )

    def test_ticket_failure_is_reported_not_raised(self, form: IntakeFormData, settings: Settings) -> None:
        sink = Mock()
        sink.create_ticket.side_effect = RuntimeError("401 Unauthorized")

        result = submit_intake(form, sink=sink, settings=settings)

        assert result.success is True
        assert result.ticket is None
        assert result.ticket_error == "401 Unauthorized"

    def test_email_failure_is_logged(self, form: IntakeFormData, settings: Settings) -> None:
        notifier = Mock()
        notifier.send_confirmation.side_effect = ConnectionError("smtp down")

        result = submit_intake(form, notifier=notifier, settings=settings)

        assert result.success is True
        assert result.confirmation_sent is False

    def test_no_confirmation_without_opt_in(self, form: IntakeFormData, settings: Settings) -> None:
        notifier = Mock()
        submit_intake(form.model_copy(update={"send_confirmation": False}), notifier=notifier, settings=settings)
        notifier.send_confirmation.assert_not_called()

    def test_anonymous_requestor_named_user(self, form: IntakeFormData, settings: Settings) -> None:
        notifier = Mock()
        submit_intake(form.model_copy(update={"requestor_name": ""}), notifier=notifier, settings=settings)
        assert notifier.send_confirmation.call_args.args[1] == "User"
