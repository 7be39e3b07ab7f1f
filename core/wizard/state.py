"""
Wizard State - Immutable Draft and Form State

The wizard's working state is a value: every reducer returns a new
WizardState instead of mutating the previous one. UI side effects
(scrolling to the top, offering the CRM login window) are flags on the
state for the view layer to act on.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Final, Optional

from core.supplier.results import SubmissionResult
from core.supplier.schema import (
    BRANDING_FIELDS,
    COMPANY_FIELDS,
    CONTACT_FIELDS,
    DOCUMENT_FIELDS,
    FILE_CATEGORY_KEYS,
    OCR_DATA_FIELD,
)


# =============================================================================
# Steps
# =============================================================================

STEPS: Final[tuple[tuple[str, str], ...]] = (
    ("Données d'organisation principale", "ÉTAPE 01"),
    ("Contact principal entreprise", "ÉTAPE 02"),
    ("Documents", "ÉTAPE 03"),
    ("Récapitulatif", "ÉTAPE 04"),
    ("Confirmation", "ÉTAPE 05"),
)

ORGANIZATION_STEP: Final[int] = 0
CONTACT_STEP: Final[int] = 1
DOCUMENTS_STEP: Final[int] = 2
RECAP_STEP: Final[int] = 3
CONFIRMATION_STEP: Final[int] = len(STEPS) - 1

# Steps whose required fields gate submission
GATED_STEPS: Final[tuple[int, ...]] = (ORGANIZATION_STEP, CONTACT_STEP, DOCUMENTS_STEP)


# =============================================================================
# Draft
# =============================================================================

SCALAR_FIELDS: Final[tuple[str, ...]] = (
    COMPANY_FIELDS + CONTACT_FIELDS + DOCUMENT_FIELDS + BRANDING_FIELDS + (OCR_DATA_FIELD,)
)

INITIAL_FIELDS: Final[dict[str, Any]] = {
    **{name: "" for name in SCALAR_FIELDS},
    "language": "fr",
    "timezone": "WET",
    "certifications": [],
    "hsePolicy": "oui",
    OCR_DATA_FIELD: None,
}


def initial_fields() -> dict[str, Any]:
    """Fresh default field values; no list is shared between drafts."""
    return copy.deepcopy(INITIAL_FIELDS)


@dataclass(frozen=True)
class DraftFile:
    """An attachment selected in the browser. Never persisted."""

    name: str
    content: bytes
    mime_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class FormDraft:
    """
    Scalar field values plus one list of attachments per document category.

    Every category key is always present; an empty category is an empty
    tuple, never a missing key.
    """

    fields: dict[str, Any] = field(default_factory=initial_fields)
    files: dict[str, tuple[DraftFile, ...]] = field(
        default_factory=lambda: {key: () for key in FILE_CATEGORY_KEYS}
    )

    def __post_init__(self):
        missing = [key for key in FILE_CATEGORY_KEYS if key not in self.files]
        if missing:
            merged = {key: () for key in FILE_CATEGORY_KEYS}
            merged.update(self.files)
            object.__setattr__(self, "files", merged)

    @classmethod
    def empty(cls) -> "FormDraft":
        return cls()

    @classmethod
    def from_scalars(cls, values: dict[str, Any]) -> "FormDraft":
        """Draft from persisted scalars, merged over the defaults."""
        fields = initial_fields()
        fields.update({k: v for k, v in values.items() if k not in FILE_CATEGORY_KEYS})
        return cls(fields=fields)

    def get(self, name: str, default: Any = "") -> Any:
        return self.fields.get(name, default)

    def text(self, name: str) -> str:
        """Field value as a trimmed string."""
        value = self.fields.get(name)
        return str(value).strip() if value is not None else ""

    def with_field(self, name: str, value: Any) -> "FormDraft":
        fields = dict(self.fields)
        fields[name] = value
        return replace(self, fields=fields)

    def with_fields(self, values: dict[str, Any]) -> "FormDraft":
        fields = dict(self.fields)
        fields.update(values)
        return replace(self, fields=fields)

    def with_files(self, category: str, files: tuple[DraftFile, ...]) -> "FormDraft":
        all_files = dict(self.files)
        all_files[category] = tuple(files)
        return replace(self, files=all_files)

    def scalars(self) -> dict[str, Any]:
        """Persistable part of the draft."""
        return dict(self.fields)


# =============================================================================
# Wizard State
# =============================================================================


@dataclass(frozen=True)
class WizardState:
    """Complete form controller state."""

    draft: FormDraft = field(default_factory=FormDraft.empty)
    current_step: int = ORGANIZATION_STEP
    validation_errors: dict[str, str] = field(default_factory=dict)
    file_errors: dict[str, tuple[str, ...]] = field(default_factory=dict)
    is_saved: bool = False
    is_submitting: bool = False
    submit_error: Optional[str] = None
    submit_warnings: tuple[str, ...] = ()
    scroll_to_top: bool = False
    login_prompt_url: Optional[str] = None
    last_result: Optional[SubmissionResult] = None

    @property
    def is_last_step(self) -> bool:
        """The recap step, last one before the confirmation."""
        return self.current_step == RECAP_STEP

    @property
    def is_confirmation_step(self) -> bool:
        return self.current_step == CONFIRMATION_STEP

    def evolve(self, **changes: Any) -> "WizardState":
        return replace(self, **changes)
