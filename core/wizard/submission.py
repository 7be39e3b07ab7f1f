"""
Wizard Submission - Request Building and Backend Calls

Builds the outbound request for a draft (JSON without attachments,
multipart with them), talks to the backend over requests, and maps the
structured answer back onto the wizard state.

At most one request of each kind is in flight: starting a new one aborts
the previous signal, and an answer arriving on an aborted signal is
dropped.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Final, Optional

import requests

from core.supplier.files import normalized_upload_name
from core.supplier.results import (
    AuthenticationRequired,
    DuplicateConflict,
    SubmissionResult,
    SubmissionSuccess,
    ValidationFailure,
    result_from_response,
)
from core.supplier.sanitize import is_duplicate_error, sanitize_for_client
from core.supplier.schema import (
    DOMESTIC_IDENTIFIER_FIELDS,
    FILE_CATEGORIES,
    FILES_FIELD_NAME,
    FOREIGN_IDENTIFIER_FIELDS,
    OCR_DATA_FIELD,
    Country,
)
from core.wizard.reducers import confirmation_state, effective_legal_form
from core.wizard.state import DraftFile, FormDraft, WizardState


logger = logging.getLogger(__name__)


REQUEST_TIMEOUT_SECONDS: Final[int] = 120

UNEXPECTED_ERROR_MESSAGE: Final[str] = (
    "Une erreur inattendue est survenue. Veuillez contacter l'administrateur."
)
NETWORK_ERROR_MESSAGE: Final[str] = "Erreur réseau lors de l'envoi"
DUPLICATE_FALLBACK_MESSAGE: Final[str] = "Doublon détecté"

# Duplicate labels the backend may send without a form field
DUPLICATE_LABEL_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("nom fournisseur", "raisonSociale"),
    ("raison sociale", "raisonSociale"),
    ("nom commercial", "nomCommercial"),
)

COMMON_PAYLOAD_FIELDS: Final[tuple[str, ...]] = (
    "raisonSociale",
    "nomCommercial",
    "formeJuridique",
    "formeJuridiqueAutre",
    "address",
    "postalCode",
    "city",
    "country",
    "phone",
    "fax",
    "website",
    "emailEntreprise",
    "dateCreation",
    "typeEntreprise",
    "effectifTotal",
    "effectifEncadrement",
    "exercicesClos",
    "certifications",
    "hsePolicy",
    "civility",
    "contactNom",
    "contactPrenom",
    "email",
    "contactMobile",
    "faxPro",
    "otherPhone",
    "language",
    "timezone",
)


# =============================================================================
# Cancellation
# =============================================================================


class AbortSignal:
    """Set once the request it belongs to has been superseded or cancelled."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def abort(self) -> None:
        self._event.set()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()


class InFlight:
    """One request slot: beginning a new request aborts the current one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[AbortSignal] = None

    def begin(self) -> AbortSignal:
        with self._lock:
            if self._current is not None:
                self._current.abort()
            self._current = AbortSignal()
            return self._current

    def finish(self, signal: AbortSignal) -> None:
        with self._lock:
            if self._current is signal:
                self._current = None

    def cancel(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.abort()
                self._current = None


class RequestAborted(Exception):
    """Raised when an answer arrives for an aborted request."""


# =============================================================================
# Request Building
# =============================================================================


@dataclass(frozen=True)
class SubmissionRequest:
    """What is sent to POST /api/supplier."""

    payload: dict[str, Any]
    files: tuple[tuple[str, bytes, str], ...] = ()

    @property
    def is_multipart(self) -> bool:
        return bool(self.files)

    def form_fields(self) -> dict[str, str]:
        """Scalar fields stringified for a multipart body."""
        fields: dict[str, str] = {}
        for name, value in self.payload.items():
            if value is None:
                continue
            if name == "certifications" and isinstance(value, (list, tuple)):
                fields[name] = ";".join(str(v) for v in value)
            elif isinstance(value, dict):
                fields[name] = json.dumps(value, ensure_ascii=False)
            else:
                fields[name] = str(value)
        return fields

    def multipart_files(self) -> list[tuple[str, tuple[str, bytes, str]]]:
        return [
            (FILES_FIELD_NAME, (name, content, mime or "application/octet-stream"))
            for name, content, mime in self.files
        ]


def build_submission_request(draft: FormDraft) -> SubmissionRequest:
    """
    Payload for a (normalised, validated) draft.

    Only the identifiers of the selected country are sent. Attachments are
    renamed after their category label so the user's filenames never leave
    the machine.
    """
    payload: dict[str, Any] = {name: draft.get(name) for name in COMMON_PAYLOAD_FIELDS}
    payload["formeJuridique"] = effective_legal_form(draft)

    country = draft.get("country")
    if country == Country.DOMESTIC.value:
        for name in DOMESTIC_IDENTIFIER_FIELDS:
            payload[name] = draft.get(name)
    elif country == Country.FOREIGN.value:
        for name in FOREIGN_IDENTIFIER_FIELDS:
            payload[name] = draft.get(name)

    ocr_data = draft.get(OCR_DATA_FIELD, None)
    if ocr_data:
        payload[OCR_DATA_FIELD] = ocr_data

    files: list[tuple[str, bytes, str]] = []
    for category in FILE_CATEGORIES:
        for f in draft.files.get(category.key, ()):
            files.append((normalized_upload_name(category.label, f.name), f.content, f.mime_type))

    return SubmissionRequest(payload=payload, files=tuple(files))


# =============================================================================
# Backend Client
# =============================================================================


class SupplierApiClient:
    """HTTP client for the onboarding backend."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()

    def submit(self, request: SubmissionRequest, signal: AbortSignal) -> SubmissionResult:
        """
        POST the submission.

        Raises:
            RequestAborted: If the signal was aborted before the answer arrived
            requests.RequestException: On network failure
        """
        url = f"{self._base_url}/api/supplier"
        if request.is_multipart:
            # requests sets the multipart boundary itself
            response = self._session.post(
                url,
                data=request.form_fields(),
                files=request.multipart_files(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        else:
            response = self._session.post(
                url,
                json=request.payload,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        if signal.aborted:
            raise RequestAborted(url)

        body = _json_or_none(response)
        logger.debug("Submission response %s %s", response.status_code, body)
        return result_from_response(response.status_code, body)

    def fetch_logo(self, signal: AbortSignal) -> Optional[dict]:
        """Branding metadata, or None when unavailable."""
        url = f"{self._base_url}/api/metadata/logo"
        response = self._session.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
        if signal.aborted:
            raise RequestAborted(url)
        if not response.ok:
            return None
        return _json_or_none(response)

    def analyze_attestation(self, document: DraftFile, signal: AbortSignal) -> dict:
        """
        OCR one fiscal attestation.

        Raises:
            requests.HTTPError: When the backend refuses or fails the analysis
        """
        url = f"{self._base_url}/api/ocr/analyze"
        response = self._session.post(
            url,
            files={"file": (document.name, document.content, document.mime_type or "application/octet-stream")},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        if signal.aborted:
            raise RequestAborted(url)
        response.raise_for_status()
        return response.json()


def _json_or_none(response: requests.Response) -> Optional[dict]:
    try:
        body = response.json()
    except ValueError:
        logger.warning("Backend answered %s without a JSON body", response.status_code)
        return None
    return body if isinstance(body, dict) else None


# =============================================================================
# Result Interpretation
# =============================================================================


def duplicate_errors(result: DuplicateConflict) -> dict[str, str]:
    """Inline errors for the fields reported as duplicate."""
    errors: dict[str, str] = {}
    for duplicate in result.duplicates:
        message = duplicate.message or "Valeur dupliquée"
        if duplicate.field:
            errors[duplicate.field] = message
            continue
        label = (duplicate.label or "").lower()
        for fragment, name in DUPLICATE_LABEL_FIELDS:
            if fragment in label:
                errors[name] = message
                break
    return errors


def apply_submission_result(state: WizardState, result: SubmissionResult) -> WizardState:
    """
    Map a backend answer onto the wizard.

    An unambiguous success moves to the confirmation step; a success with
    warnings stays put so the user can review them.
    """
    state = state.evolve(is_submitting=False, last_result=result)

    if isinstance(result, SubmissionSuccess):
        if result.warnings:
            warnings = tuple(sanitize_for_client(w) for w in result.warnings)
            logger.warning("Submission warnings: %s", warnings)
            return state.evolve(submit_warnings=warnings)
        return confirmation_state(state)

    if isinstance(result, DuplicateConflict):
        return state.evolve(
            validation_errors=duplicate_errors(result),
            submit_error=result.error or DUPLICATE_FALLBACK_MESSAGE,
        )

    if isinstance(result, AuthenticationRequired):
        return state.evolve(login_prompt_url=result.login_url, submit_error=None)

    raw = getattr(result, "error", None) or getattr(result, "sanitized_message", "")
    safe = sanitize_for_client(raw)
    if isinstance(result, ValidationFailure) or is_duplicate_error(safe) or "doublon" in safe.lower():
        logger.warning("Submission error (actionable): %s", safe)
        return state.evolve(submit_error=safe)

    logger.error("Submission error (hidden from UI): %s", raw)
    return state.evolve(submit_error=UNEXPECTED_ERROR_MESSAGE)
