"""Error taxonomy for the intake pipeline.

Only ``InputError`` and ``AnalysisFailed`` ever leave the core. Per-attachment
``ExtractionFailure`` is contained by the normalizer and
``WizardGenerationFailed`` is always recovered by the wizard fallback.
"""


class IntakeError(Exception):
    """Base class for all intake pipeline errors."""


class InputError(IntakeError, ValueError):
    """Raised when a call is made with nothing to analyze."""


class ExtractionFailure(IntakeError):
    """One attachment's content could not be read or interpreted."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"Failed to extract content from {filename}: {reason}")
        self.filename = filename
        self.reason = reason


class AnalysisFailed(IntakeError):
    """The text-generation call failed or returned an unusable response."""


class WizardGenerationFailed(IntakeError):
    """Wizard question generation failed; recovered via the fallback set."""


class AssistantError(IntakeError):
    """A supplementary assistant call (enhance, training) failed."""


class SubmissionError(IntakeError, ValueError):
    """A submitted intake form is invalid."""
