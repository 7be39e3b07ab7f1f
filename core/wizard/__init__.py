"""
Supplier onboarding wizard.

Five steps (organisation, contact, documents, recap, confirmation) over an
immutable draft. Progress is saved locally without attachments.
"""

from core.wizard.controller import WizardController
from core.wizard.state import (
    CONFIRMATION_STEP,
    RECAP_STEP,
    STEPS,
    DraftFile,
    FormDraft,
    WizardState,
)
from core.wizard.storage import DraftStore
from core.wizard.submission import (
    AbortSignal,
    InFlight,
    SubmissionRequest,
    SupplierApiClient,
    apply_submission_result,
    build_submission_request,
)

__all__ = [
    "WizardController",
    "WizardState",
    "FormDraft",
    "DraftFile",
    "DraftStore",
    "STEPS",
    "RECAP_STEP",
    "CONFIRMATION_STEP",
    "SubmissionRequest",
    "SupplierApiClient",
    "AbortSignal",
    "InFlight",
    "apply_submission_result",
    "build_submission_request",
]
