"""
Supplier Onboarding - Core Logic

1. Supplier: field catalogue, file policy, error sanitization, CRM
   mapping and the submission orchestrator
2. CRM: Salesforce OAuth session and REST calls
3. OCR: fiscal attestation extraction through a vision model
4. Wizard: the multi-step form controller and its draft storage
"""

from .supplier import (
    SupplierOrchestrator,
    SubmissionResult,
    SubmissionSuccess,
    DuplicateConflict,
    ValidationFailure,
    AuthenticationRequired,
    SubmissionFailure,
)
from .crm import SalesforceConnection, CrmError, get_crm_connection
from .ocr import AttestationExtractor, build_attestation_extractor
from .wizard import WizardController, WizardState, FormDraft, DraftStore

__all__ = [
    # Supplier
    "SupplierOrchestrator",
    "SubmissionResult",
    "SubmissionSuccess",
    "DuplicateConflict",
    "ValidationFailure",
    "AuthenticationRequired",
    "SubmissionFailure",
    # CRM
    "SalesforceConnection",
    "CrmError",
    "get_crm_connection",
    # OCR
    "AttestationExtractor",
    "build_attestation_extractor",
    # Wizard
    "WizardController",
    "WizardState",
    "FormDraft",
    "DraftStore",
]
