"""
Error Sanitization - Redaction of CRM Error Text

Every message that leaves the backend goes through this module. CRM errors
carry record ids, API field names and object names that must not reach the
browser; known error families are rewritten into fixed, friendly phrasing
before the generic redaction runs.

The patterns target the error strings the CRM is known to emit. They are
not exhaustive: a new vendor error format should get its own case here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Iterable, Optional


# =============================================================================
# Patterns
# =============================================================================

RECORD_ID_PATTERN: Final = re.compile(r"\b[0-9A-Za-z]{15,18}\b")
CUSTOM_FIELD_PATTERN: Final = re.compile(r"\b([A-Za-z0-9_]+)__(?:c|r)\b")
QUALIFIED_FIELD_PATTERN: Final = re.compile(
    r"\b(?:Account|Contact)\.[A-Za-z0-9_]+\b"
)
OBJECT_NAME_PATTERN: Final = re.compile(
    r"\b(Account|Contact|ContentVersion|ContentDocument|ContentDocumentLink|RecordType)\b"
)
DUPLICATE_PATTERN: Final = re.compile(r"duplicates? value", re.IGNORECASE)
DUPLICATE_FIELD_PATTERN: Final = re.compile(
    r"duplicate value found:\s*([A-Za-z0-9_]+(?:__c|__r)?)", re.IGNORECASE
)

ID_PLACEHOLDER: Final[str] = "[id supprimé]"
FIELD_PLACEHOLDER: Final[str] = "[champ supprimé]"
OBJECT_PLACEHOLDER: Final[str] = "[objet]"

GENERIC_ERROR: Final[str] = "Une erreur est survenue"
SUPPLIER_ERROR: Final[str] = "Erreur lors de la création du fournisseur"
DUPLICATE_MESSAGE: Final[str] = "Doublon détecté : une valeur identique existe déjà."
DUPLICATE_CONFLICT_MESSAGE: Final[str] = "Doublon détecté : une valeur existe déjà."
DUPLICATE_SUPPLIER_MESSAGE: Final[str] = (
    "Doublon détecté : un enregistrement avec cette valeur existe déjà. "
    "Veuillez vérifier le nom du fournisseur et réessayer."
)
DUPLICATE_FIELD_MESSAGE: Final[str] = "Valeur dupliquée"

# CRM validation error codes, with the friendly prefix used for each.
# These are caller mistakes and map to HTTP 400.
VALIDATION_ERROR_PREFIXES: Final[dict[str, str]] = {
    "REQUIRED_FIELD_MISSING": "Des champs obligatoires sont manquants : ",
    "INVALID_EMAIL_ADDRESS": "Adresse email invalide : ",
    "FIELD_CUSTOM_VALIDATION_EXCEPTION": "Erreur de validation : ",
    "INVALID_OR_NULL_FOR_RESTRICTED_PICKLIST": "Valeur invalide pour un champ de liste : ",
    "STRING_TOO_LONG": "Valeur trop longue : ",
}

# Duplicate-value API field (lower case) -> (form field, label)
DUPLICATE_FIELD_MAP: Final[dict[str, tuple[str, str]]] = {
    "nomfournisseur__c": ("raisonSociale", "Nom fournisseur"),
    "name": ("raisonSociale", "Raison sociale"),
    "dba__c": ("nomCommercial", "Nom commercial"),
}


# =============================================================================
# Redaction
# =============================================================================


def humanize_field_name(api_name: str) -> str:
    """'Identifiant_fiscal_1__c' -> 'Identifiant fiscal 1'."""
    stem = re.sub(r"__(?:c|r)$", "", api_name)
    stem = stem.replace("_", " ")
    stem = re.sub(r"([a-z])([A-Z])", r"\1 \2", stem)
    return re.sub(r"\s+", " ", stem).strip()


def redact(message: str) -> str:
    """Strip record ids, API field names and object names from a message."""
    out = RECORD_ID_PATTERN.sub(ID_PLACEHOLDER, message)
    out = CUSTOM_FIELD_PATTERN.sub(lambda m: humanize_field_name(m.group(0)), out)
    out = QUALIFIED_FIELD_PATTERN.sub(FIELD_PLACEHOLDER, out)
    out = OBJECT_NAME_PATTERN.sub(OBJECT_PLACEHOLDER, out)
    return re.sub(r"\s+", " ", out).strip()


def is_duplicate_error(message: Optional[str]) -> bool:
    """True when the text describes a unique-constraint violation."""
    if not message:
        return False
    return bool(DUPLICATE_PATTERN.search(message)) or "duplicate" in message.lower()


def sanitize_for_client(message: Optional[str]) -> str:
    """Generic sanitization for any message bound for the browser."""
    if not message:
        return GENERIC_ERROR
    text = str(message)
    if is_duplicate_error(text):
        return DUPLICATE_MESSAGE
    return redact(text)


def validation_error_code(message: Optional[str]) -> Optional[str]:
    """The CRM validation error code mentioned in a message, if any."""
    if not message:
        return None
    for code in VALIDATION_ERROR_PREFIXES:
        if re.search(code, message, re.IGNORECASE):
            return code
    return None


def sanitize_crm_error(message: Optional[str]) -> str:
    """
    Sanitize an error raised while creating the supplier records.

    Duplicate and validation errors get fixed phrasing; the remainder of a
    validation message is still redacted.
    """
    if not message:
        return SUPPLIER_ERROR
    text = str(message)
    if re.search(r"duplicate value", text, re.IGNORECASE):
        return DUPLICATE_SUPPLIER_MESSAGE

    code = validation_error_code(text)
    if code is not None:
        detail = re.sub(rf".*{code}:?\s*", "", text, flags=re.IGNORECASE | re.DOTALL)
        if code == "REQUIRED_FIELD_MISSING":
            detail = re.sub(r"[:\[\]]", " ", detail)
        detail = redact(detail)
        return (VALIDATION_ERROR_PREFIXES[code] + detail).strip()

    return redact(text) or SUPPLIER_ERROR


# =============================================================================
# Duplicate Detection
# =============================================================================


@dataclass(frozen=True)
class DuplicateField:
    """One field reported as duplicate, safe to show to the user."""

    field: Optional[str]
    label: str
    message: str = DUPLICATE_FIELD_MESSAGE

    def to_dict(self) -> dict:
        return {"field": self.field, "label": self.label, "message": self.message}


def extract_duplicate_field(message: Optional[str]) -> Optional[str]:
    """API field name out of 'duplicate value found: <field> duplicates ...'."""
    if not message:
        return None
    match = DUPLICATE_FIELD_PATTERN.search(str(message))
    return match.group(1) if match else None


def describe_duplicates(messages: Iterable[str]) -> list[DuplicateField]:
    """
    Map CRM duplicate errors onto form fields.

    Fields missing from DUPLICATE_FIELD_MAP are still reported, with no form
    field and a humanized label, so the raw API name never reaches the caller.
    """
    duplicates: list[DuplicateField] = []
    for message in messages:
        api_name = extract_duplicate_field(message)
        if not api_name:
            continue
        mapped = DUPLICATE_FIELD_MAP.get(api_name.lower())
        if mapped:
            duplicates.append(DuplicateField(field=mapped[0], label=mapped[1]))
        else:
            duplicates.append(DuplicateField(field=None, label=humanize_field_name(api_name)))
    return duplicates
