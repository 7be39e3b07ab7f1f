"""
Supplier Orchestrator - Ordered CRM Writes for One Submission

Runs a short saga against Salesforce:

1. Session check
2. Server-side validation (mandatory fields, file policy)
3. Country normalisation and record type lookup
4. Account creation (hard step: duplicates -> 409, other errors abort)
5. Contact creation and link (soft step)
6. Fiscal attestation from OCR data (soft step)
7. Document uploads (soft per file)

A hard failure stops the saga but never undoes earlier writes; a soft
failure only adds a warning. The CRM has no cross-call transactions, so an
Account created before a later failure stays in place and the warnings say
what is missing.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Final, Optional, Sequence

import requests

from core.crm.client import (
    CrmAuthenticationError,
    CrmError,
    DUPLICATE_RULE_HEADER,
    SalesforceConnection,
)
from core.supplier.files import (
    FilePolicyError,
    document_title,
    enforce_file_policy,
    repair_filename_encoding,
)
from core.supplier.mapping import (
    ACCOUNT_CONTACT_FIELD,
    ATTESTATION_OBJECT,
    build_account_record,
    build_attestation_record,
    build_contact_record,
    normalize_country,
    parse_ocr_data,
    record_type_for_country,
)
from core.supplier.results import (
    AuthenticationRequired,
    DuplicateConflict,
    SubmissionFailure,
    SubmissionResult,
    SubmissionSuccess,
    UploadedFile,
    ValidationFailure,
)
from core.supplier.sanitize import (
    SUPPLIER_ERROR,
    describe_duplicates,
    is_duplicate_error,
    sanitize_crm_error,
    validation_error_code,
)
from core.supplier.schema import (
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FISCAL_ATTESTATION_CATEGORY,
    MAX_FILES_PER_SUBMISSION,
    OCR_DATA_FIELD,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Warnings
# =============================================================================

CONTACT_WARNING: Final[str] = (
    "Contact could not be created or linked. The account was created "
    "successfully, but you may need to manually create or link the contact "
    "in Salesforce."
)
ATTESTATION_WARNING: Final[str] = (
    "L'attestation de régularité fiscale n'a pas pu être créée. Les données "
    "OCR ont été reçues mais la création dans Salesforce a échoué."
)
UPLOAD_WARNING: Final[str] = "Le document « {title} » n'a pas pu être enregistré."


# Mandatory server-side fields and their messages
REQUIRED_SERVER_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("raisonSociale", "Raison sociale is required"),
    ("contactPrenom", "Prénom du contact is required"),
    ("contactNom", "Nom du contact is required"),
    ("email", "Email principal is required"),
)


# =============================================================================
# Saga Model
# =============================================================================


@dataclass(frozen=True)
class IncomingFile:
    """One uploaded attachment as received by the API."""

    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class CrmRecordRefs:
    """Ids created during one submission, used to link dependent records."""

    account_id: Optional[str] = None
    contact_id: Optional[str] = None
    attestation_id: Optional[str] = None
    uploaded_files: list[UploadedFile] = field(default_factory=list)


@dataclass
class SubmissionContext:
    """Mutable state threaded through the saga steps."""

    payload: dict[str, Any]
    files: Sequence[IncomingFile]
    country: Optional[str] = None
    record_type_id: Optional[str] = None
    refs: CrmRecordRefs = field(default_factory=CrmRecordRefs)
    warnings: list[str] = field(default_factory=list)


class StepStatus(Enum):
    """How a saga step ended."""

    OK = "ok"
    SOFT_FAILURE = "soft_failure"
    HARD_FAILURE = "hard_failure"


@dataclass(frozen=True)
class StepResult:
    """Result of one saga step."""

    status: StepStatus
    warning: Optional[str] = None
    outcome: Optional[SubmissionResult] = None

    @classmethod
    def ok(cls) -> "StepResult":
        return cls(StepStatus.OK)

    @classmethod
    def soft(cls, warning: str) -> "StepResult":
        return cls(StepStatus.SOFT_FAILURE, warning=warning)

    @classmethod
    def hard(cls, outcome: SubmissionResult) -> "StepResult":
        return cls(StepStatus.HARD_FAILURE, outcome=outcome)


SagaStep = Callable[[SubmissionContext], StepResult]


def soql_quote(value: str) -> str:
    """Quote a literal for a SOQL WHERE clause."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


# =============================================================================
# Orchestrator
# =============================================================================


class SupplierOrchestrator:
    """
    Executes the supplier creation saga against one Salesforce connection.

    Stateless between calls apart from the shared connection.
    """

    def __init__(
        self,
        connection: SalesforceConnection,
        login_url: str,
        max_upload_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
        max_files: int = MAX_FILES_PER_SUBMISSION,
    ):
        self._conn = connection
        self._login_url = login_url
        self._max_upload_bytes = max_upload_bytes
        self._max_files = max_files

    @property
    def steps(self) -> list[SagaStep]:
        """Saga steps in execution order."""
        return [
            self._require_session,
            self._validate_payload,
            self._validate_files,
            self._resolve_record_type,
            self._create_account,
            self._create_contact,
            self._create_attestation,
            self._upload_documents,
        ]

    def submit(
        self,
        payload: dict[str, Any],
        files: Sequence[IncomingFile] = (),
    ) -> SubmissionResult:
        """
        Run the saga for one submission.

        Returns:
            The submission result; never raises for CRM or input errors
        """
        context = SubmissionContext(payload=dict(payload or {}), files=list(files))

        for step in self.steps:
            result = step(context)
            if result.status == StepStatus.HARD_FAILURE:
                if context.refs.account_id:
                    logger.warning(
                        "Saga stopped at %s after account %s was created",
                        step.__name__,
                        context.refs.account_id,
                    )
                return result.outcome
            if result.status == StepStatus.SOFT_FAILURE and result.warning:
                context.warnings.append(result.warning)

        refs = context.refs
        logger.info(
            "Supplier created: account=%s contact=%s attestation=%s files=%d",
            refs.account_id,
            refs.contact_id or "none",
            refs.attestation_id or "none",
            len(refs.uploaded_files),
        )
        return SubmissionSuccess(
            account_id=refs.account_id,
            contact_id=refs.contact_id,
            attestation_id=refs.attestation_id,
            uploaded_files=tuple(refs.uploaded_files),
            warnings=tuple(context.warnings),
        )

    # =========================================================================
    # Steps 1-3: Preconditions
    # =========================================================================

    def _require_session(self, context: SubmissionContext) -> StepResult:
        if not self._conn.is_authenticated:
            return StepResult.hard(AuthenticationRequired(login_url=self._login_url))
        return StepResult.ok()

    def _validate_payload(self, context: SubmissionContext) -> StepResult:
        payload = context.payload
        if not payload:
            return StepResult.hard(ValidationFailure(error="Request body is required"))

        for name, message in REQUIRED_SERVER_FIELDS:
            value = payload.get(name)
            if not value or not str(value).strip():
                return StepResult.hard(ValidationFailure(error=message, fields=(name,)))
        return StepResult.ok()

    def _validate_files(self, context: SubmissionContext) -> StepResult:
        if len(context.files) > self._max_files:
            return StepResult.hard(ValidationFailure(
                error=f"Too many files uploaded (max {self._max_files})"
            ))

        for incoming in context.files:
            try:
                enforce_file_policy(
                    repair_filename_encoding(incoming.filename),
                    incoming.size,
                    incoming.content_type,
                    self._max_upload_bytes,
                )
            except FilePolicyError as e:
                logger.warning(
                    "File rejected (%s): %s %s",
                    e.violation.value,
                    e.filename,
                    incoming.content_type,
                )
                return StepResult.hard(ValidationFailure(error=e.message))
        return StepResult.ok()

    def _resolve_record_type(self, context: SubmissionContext) -> StepResult:
        raw_country = context.payload.get("country")
        context.country = normalize_country(raw_country)
        developer_name = record_type_for_country(context.country)
        logger.info(
            "Country %r normalised to %r, record type %s",
            raw_country,
            context.country,
            developer_name,
        )

        try:
            records = self._conn.query(
                "SELECT Id FROM RecordType WHERE SObjectType='Account' "
                f"AND DeveloperName={soql_quote(developer_name)} LIMIT 1"
            )
        except (CrmError, requests.RequestException) as e:
            logger.warning("Could not query record type %s: %s", developer_name, e)
            return StepResult.ok()

        if records:
            context.record_type_id = records[0].get("Id")
        else:
            logger.warning("Record type %s not found", developer_name)
        return StepResult.ok()

    # =========================================================================
    # Step 4: Account (hard)
    # =========================================================================

    def _create_account(self, context: SubmissionContext) -> StepResult:
        record = build_account_record(context.payload, context.country, context.record_type_id)
        logger.info("Creating account %r", record.get("Name"))

        try:
            result = self._conn.create("Account", record)
        except CrmAuthenticationError:
            logger.warning("Salesforce session rejected while creating account")
            return StepResult.hard(AuthenticationRequired(login_url=self._login_url))
        except CrmError as e:
            logger.error("Salesforce rejected account: %s %s", e.status_code, e.errors)
            return StepResult.hard(self._account_failure(e))
        except requests.RequestException:
            logger.exception("Salesforce unreachable while creating account")
            return StepResult.hard(SubmissionFailure(sanitized_message=SUPPLIER_ERROR))

        if not result.success or not result.id:
            logger.error("Account creation returned without success: %s", result.errors)
            messages = [
                e.get("message", "") if isinstance(e, dict) else str(e)
                for e in result.errors
            ]
            return StepResult.hard(
                self._account_failure(CrmError("; ".join(messages), errors=list(result.errors)))
            )

        context.refs.account_id = result.id
        logger.info("Account created: %s", result.id)
        return StepResult.ok()

    @staticmethod
    def _account_failure(error: CrmError) -> SubmissionResult:
        messages = error.messages
        if any(is_duplicate_error(m) for m in messages) or "DUPLICATE_VALUE" in error.error_codes:
            return DuplicateConflict(duplicates=tuple(describe_duplicates(messages)))

        detail = "; ".join(m for m in messages if m) or error.message
        status = 500
        if validation_error_code(detail) or any(
            validation_error_code(code) for code in error.error_codes
        ):
            status = 400
        return SubmissionFailure(sanitized_message=sanitize_crm_error(detail), status_code=status)

    # =========================================================================
    # Steps 5-6: Contact and attestation (soft)
    # =========================================================================

    def _create_contact(self, context: SubmissionContext) -> StepResult:
        account_id = context.refs.account_id
        record = build_contact_record(context.payload)
        record["AccountId"] = account_id

        # Always a new contact: no lookup by email, duplicate rules bypassed
        try:
            result = self._conn.create("Contact", record, headers=DUPLICATE_RULE_HEADER)
        except (CrmError, requests.RequestException) as e:
            logger.error("Error creating contact for account %s: %s", account_id, e)
            return StepResult.soft(CONTACT_WARNING)

        if not result.success or not result.id:
            logger.error("Contact creation returned without success: %s", result.errors)
            return StepResult.soft(CONTACT_WARNING)

        context.refs.contact_id = result.id
        logger.info("Contact created: %s", result.id)

        try:
            self._conn.update("Account", account_id, {ACCOUNT_CONTACT_FIELD: result.id})
        except (CrmError, requests.RequestException) as e:
            logger.warning("Could not set contact reference on account %s: %s", account_id, e)
        return StepResult.ok()

    def _create_attestation(self, context: SubmissionContext) -> StepResult:
        raw = context.payload.get(OCR_DATA_FIELD)
        if not raw:
            return StepResult.ok()

        try:
            ocr_data = parse_ocr_data(raw)
        except ValueError as e:
            logger.error("Invalid OCR data on submission: %s", e)
            return StepResult.soft(ATTESTATION_WARNING)
        if not ocr_data:
            return StepResult.soft(ATTESTATION_WARNING)

        record = build_attestation_record(ocr_data, context.refs.account_id)
        try:
            result = self._conn.create(ATTESTATION_OBJECT, record)
        except (CrmError, requests.RequestException) as e:
            logger.error("Error creating fiscal attestation: %s", e)
            return StepResult.soft(ATTESTATION_WARNING)

        if not result.success or not result.id:
            logger.error("Fiscal attestation creation failed: %s", result.errors)
            return StepResult.soft(ATTESTATION_WARNING)

        context.refs.attestation_id = result.id
        logger.info("Fiscal attestation created: %s", result.id)
        return StepResult.ok()

    # =========================================================================
    # Step 7: Documents (soft per file)
    # =========================================================================

    def _upload_documents(self, context: SubmissionContext) -> StepResult:
        if context.files:
            logger.info("Uploading %d files", len(context.files))

        for incoming in context.files:
            category, title, ext = document_title(incoming.filename)
            if category is None:
                logger.warning("Upload name matches no document category; stored as %s", title)
            is_fiscal = category is not None and category.key == FISCAL_ATTESTATION_CATEGORY
            try:
                uploaded = self._upload_one(context.refs, incoming, title, ext, is_fiscal)
            except (CrmError, requests.RequestException) as e:
                logger.error("Error uploading %s: %s", title, e)
                uploaded = None

            if uploaded is None:
                context.warnings.append(UPLOAD_WARNING.format(title=title))
            else:
                context.refs.uploaded_files.append(uploaded)
        return StepResult.ok()

    def _upload_one(
        self,
        refs: CrmRecordRefs,
        incoming: IncomingFile,
        title: str,
        ext: str,
        is_fiscal: bool = False,
    ) -> Optional[UploadedFile]:
        publish_to = refs.account_id
        also_link_to = None
        if is_fiscal and refs.attestation_id:
            publish_to = refs.attestation_id
            also_link_to = refs.account_id

        path_on_client = f"{title}{ext}"
        version = self._conn.create("ContentVersion", {
            "Title": title,
            "PathOnClient": path_on_client,
            "VersionData": base64.b64encode(incoming.content).decode("ascii"),
            "FirstPublishLocationId": publish_to,
        })
        logger.info("Content version %s created for %s", version.id, path_on_client)

        records = self._conn.query(
            f"SELECT ContentDocumentId FROM ContentVersion WHERE Id={soql_quote(version.id)}"
        )
        document_id = records[0].get("ContentDocumentId") if records else None
        if not document_id:
            logger.warning("No content document for version %s", version.id)
            return None

        if also_link_to:
            try:
                self._conn.create("ContentDocumentLink", {
                    "ContentDocumentId": document_id,
                    "LinkedEntityId": also_link_to,
                    "ShareType": "V",
                    "Visibility": "AllUsers",
                })
            except (CrmError, requests.RequestException) as e:
                logger.warning("Could not link document %s to account: %s", document_id, e)

        return UploadedFile(file_name=path_on_client, content_document_id=document_id)
