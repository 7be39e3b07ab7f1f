"""
Submission Results - Outcome of One Supplier Submission

Each variant knows its HTTP status and its JSON body, so the backend
serialises it directly and the wizard parses the same shapes back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from core.supplier.sanitize import DUPLICATE_CONFLICT_MESSAGE, DuplicateField


@dataclass(frozen=True)
class UploadedFile:
    """A document stored in the CRM."""

    file_name: str
    content_document_id: str

    def to_dict(self) -> dict:
        return {"fileName": self.file_name, "contentDocumentId": self.content_document_id}

    @classmethod
    def from_dict(cls, data: dict) -> "UploadedFile":
        return cls(
            file_name=data.get("fileName", ""),
            content_document_id=data.get("contentDocumentId", ""),
        )


@dataclass(frozen=True)
class SubmissionSuccess:
    """Company record created; secondary writes may have produced warnings."""

    account_id: str
    contact_id: Optional[str] = None
    attestation_id: Optional[str] = None
    uploaded_files: tuple[UploadedFile, ...] = ()
    warnings: tuple[str, ...] = ()

    status_code = 201

    @property
    def contact_linked(self) -> bool:
        return self.contact_id is not None

    @property
    def attachment_refs(self) -> tuple[UploadedFile, ...]:
        return self.uploaded_files

    def to_dict(self) -> dict:
        return {
            "success": True,
            "message": "Supplier created successfully",
            "data": {
                "accountId": self.account_id,
                "contactId": self.contact_id,
                "contactLinked": self.contact_linked,
                "attestationId": self.attestation_id,
                "uploadedFiles": [f.to_dict() for f in self.uploaded_files],
            },
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class DuplicateConflict:
    """The CRM refused the company record on a unique-value rule."""

    duplicates: tuple[DuplicateField, ...] = ()
    error: str = DUPLICATE_CONFLICT_MESSAGE

    status_code = 409

    @property
    def duplicate_fields(self) -> list[str]:
        return [d.field for d in self.duplicates if d.field]

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.error,
            "duplicates": [d.to_dict() for d in self.duplicates],
            "warnings": [],
        }


@dataclass(frozen=True)
class ValidationFailure:
    """Missing or malformed input, or a refused file."""

    error: str
    fields: tuple[str, ...] = ()

    status_code = 400

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"success": False, "error": self.error, "warnings": []}
        if self.fields:
            body["fields"] = list(self.fields)
        return body


@dataclass(frozen=True)
class AuthenticationRequired:
    """No CRM session; the user must log in through the OAuth flow."""

    login_url: str
    error: str = "Not authenticated. Please log in first."

    status_code = 401

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.error,
            "loginUrl": self.login_url,
            "warnings": [],
        }


@dataclass(frozen=True)
class SubmissionFailure:
    """Anything else; `message` is already sanitized."""

    sanitized_message: str
    status_code: int = 500
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.sanitized_message,
            "warnings": list(self.warnings),
        }


SubmissionResult = Union[
    SubmissionSuccess,
    DuplicateConflict,
    ValidationFailure,
    AuthenticationRequired,
    SubmissionFailure,
]


def result_from_response(status_code: int, body: Optional[dict]) -> SubmissionResult:
    """
    Rebuild a result from an HTTP status and JSON body.

    Used by the wizard to interpret the backend's answer.
    """
    body = body or {}
    error = body.get("error") or ""

    if 200 <= status_code < 300 and body.get("success", True):
        data = body.get("data") or {}
        return SubmissionSuccess(
            account_id=data.get("accountId", ""),
            contact_id=data.get("contactId"),
            attestation_id=data.get("attestationId"),
            uploaded_files=tuple(
                UploadedFile.from_dict(f) for f in data.get("uploadedFiles") or []
            ),
            warnings=tuple(body.get("warnings") or []),
        )
    if status_code == 409 and isinstance(body.get("duplicates"), list):
        return DuplicateConflict(
            duplicates=tuple(
                DuplicateField(
                    field=d.get("field"),
                    label=d.get("label", ""),
                    message=d.get("message") or "Valeur dupliquée",
                )
                for d in body["duplicates"]
            ),
            error=error or DUPLICATE_CONFLICT_MESSAGE,
        )
    if status_code == 401 and body.get("loginUrl"):
        return AuthenticationRequired(login_url=body["loginUrl"], error=error or "Not authenticated")
    if status_code == 400:
        return ValidationFailure(error=error, fields=tuple(body.get("fields") or []))
    return SubmissionFailure(sanitized_message=error, status_code=status_code)
