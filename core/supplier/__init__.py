"""
Supplier Onboarding - Backend Submission Module

Turns one validated wizard payload into Salesforce records:
Account, then Contact, then the optional fiscal attestation, then the
uploaded documents. Partial failures after the Account are reported as
warnings, never rolled back.
"""

from core.supplier.schema import (
    Country,
    LegalForm,
    FileCategory,
    FILE_CATEGORIES,
    FILE_CATEGORY_KEYS,
    REQUIRED_STEP_FIELDS,
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_PREFIXES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    MAX_FILES_PER_SUBMISSION,
    category_for_label,
    is_domestic_country,
)
from core.supplier.files import (
    FilePolicyError,
    FilePolicyViolation,
    check_file_policy,
    client_file_error,
    enforce_file_policy,
    normalized_upload_name,
)
from core.supplier.sanitize import (
    DuplicateField,
    describe_duplicates,
    redact,
    sanitize_crm_error,
    sanitize_for_client,
)
from core.supplier.results import (
    AuthenticationRequired,
    DuplicateConflict,
    SubmissionFailure,
    SubmissionResult,
    SubmissionSuccess,
    UploadedFile,
    ValidationFailure,
    result_from_response,
)
from core.supplier.orchestrator import (
    CrmRecordRefs,
    IncomingFile,
    StepResult,
    StepStatus,
    SupplierOrchestrator,
)

__all__ = [
    "Country",
    "LegalForm",
    "FileCategory",
    "FILE_CATEGORIES",
    "FILE_CATEGORY_KEYS",
    "REQUIRED_STEP_FIELDS",
    "ALLOWED_EXTENSIONS",
    "ALLOWED_MIME_PREFIXES",
    "DEFAULT_MAX_FILE_SIZE_BYTES",
    "MAX_FILES_PER_SUBMISSION",
    "category_for_label",
    "is_domestic_country",
    "FilePolicyError",
    "FilePolicyViolation",
    "check_file_policy",
    "client_file_error",
    "enforce_file_policy",
    "normalized_upload_name",
    "DuplicateField",
    "describe_duplicates",
    "redact",
    "sanitize_crm_error",
    "sanitize_for_client",
    "AuthenticationRequired",
    "DuplicateConflict",
    "SubmissionFailure",
    "SubmissionResult",
    "SubmissionSuccess",
    "UploadedFile",
    "ValidationFailure",
    "result_from_response",
    "CrmRecordRefs",
    "IncomingFile",
    "StepResult",
    "StepStatus",
    "SupplierOrchestrator",
]
