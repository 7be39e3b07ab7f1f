"""
Upload Policy - Validation and Naming of Supplier Attachments

The same policy runs in the wizard (before a file is accepted into a
category) and in the backend (before anything is sent to the CRM), so a
bypassed client still cannot push an oversized or executable file through.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Optional

from core.supplier.schema import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MIME_PREFIXES,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    EXECUTABLE_EXTENSION_REGEX,
    UNLABELLED_DOCUMENT_TITLE,
    FileCategory,
    category_for_label,
)


class FilePolicyViolation(Enum):
    """Why a file was refused."""

    TOO_LARGE = "too_large"
    TYPE_NOT_ALLOWED = "type_not_allowed"
    EXECUTABLE = "executable"


# Messages shown next to the file picker
CLIENT_MESSAGES: dict[FilePolicyViolation, str] = {
    FilePolicyViolation.TOO_LARGE: "File too large (max {max_mb} MB)",
    FilePolicyViolation.TYPE_NOT_ALLOWED: "File type not allowed",
    FilePolicyViolation.EXECUTABLE: "Executable files are not allowed",
}

# Messages returned by the API
SERVER_MESSAGES: dict[FilePolicyViolation, str] = {
    FilePolicyViolation.TOO_LARGE: "Un des fichiers dépasse la taille maximale autorisée.",
    FilePolicyViolation.TYPE_NOT_ALLOWED: "Type de fichier non autorisé.",
    FilePolicyViolation.EXECUTABLE: "Type de fichier dangereux non autorisé.",
}


class FilePolicyError(ValueError):
    """Raised when an uploaded file breaks the upload policy."""

    def __init__(self, violation: FilePolicyViolation, filename: str):
        self.violation = violation
        self.filename = filename
        super().__init__(SERVER_MESSAGES[violation])

    @property
    def message(self) -> str:
        return SERVER_MESSAGES[self.violation]


def file_extension(filename: str) -> str:
    """Lower-cased extension including the dot, or empty string."""
    return os.path.splitext(os.path.basename(filename or ""))[1].lower()


def check_file_policy(
    filename: str,
    size: int,
    mime_type: Optional[str],
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> Optional[FilePolicyViolation]:
    """
    Check one file against the upload policy.

    A file passes the type check when either its extension is allow-listed
    or its MIME type starts with an allowed prefix. Executable-like
    extensions are refused whatever the declared MIME type.

    Returns:
        The violation, or None when the file is acceptable
    """
    if size > max_bytes:
        return FilePolicyViolation.TOO_LARGE

    lower = (filename or "").lower()
    mime = (mime_type or "").lower()
    ext_ok = any(lower.endswith(ext) for ext in ALLOWED_EXTENSIONS)
    mime_ok = any(mime.startswith(prefix) for prefix in ALLOWED_MIME_PREFIXES)
    if not ext_ok and not mime_ok:
        return FilePolicyViolation.TYPE_NOT_ALLOWED

    if EXECUTABLE_EXTENSION_REGEX.search(lower):
        return FilePolicyViolation.EXECUTABLE

    return None


def client_file_error(
    filename: str,
    size: int,
    mime_type: Optional[str],
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> Optional[str]:
    """Wizard-side message for a refused file, or None."""
    violation = check_file_policy(filename, size, mime_type, max_bytes)
    if violation is None:
        return None
    return CLIENT_MESSAGES[violation].format(max_mb=round(max_bytes / 1024 / 1024))


def enforce_file_policy(
    filename: str,
    size: int,
    mime_type: Optional[str],
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> None:
    """
    Server-side check.

    Raises:
        FilePolicyError: If the file breaks the policy
    """
    violation = check_file_policy(filename, size, mime_type, max_bytes)
    if violation is not None:
        raise FilePolicyError(violation, filename)


# =============================================================================
# Naming
# =============================================================================


def normalized_upload_name(label: str, original_name: str) -> str:
    """
    Filename sent on the wire: the category label plus the original extension.

    The user's own filename never leaves the browser, e.g.
    ("ICE", "scan 12.PDF") -> "ICE.pdf".
    """
    ext = file_extension(original_name) or ".pdf"
    return f"{label or 'FILE'}{ext}"


def repair_filename_encoding(filename: str) -> str:
    """Undo UTF-8 names that were decoded as Latin-1 ("Ã©" -> "é")."""
    try:
        repaired = filename.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return filename
    return repaired


def split_title(filename: str) -> tuple[str, str]:
    """Filename stem and extension for a received filename."""
    base = os.path.basename(filename or "")
    stem, ext = os.path.splitext(base)
    return (stem.strip() or UNLABELLED_DOCUMENT_TITLE), ext.lower()


def document_title(filename: str) -> tuple[Optional[FileCategory], str, str]:
    """
    Category, CRM title and extension for a received upload.

    The title is always a category label, or a fixed placeholder when the
    name matches none; the sender's own filename is never stored.
    """
    stem, ext = split_title(repair_filename_encoding(filename))
    category = category_for_label(stem)
    title = category.label if category else UNLABELLED_DOCUMENT_TITLE
    return category, title, ext
