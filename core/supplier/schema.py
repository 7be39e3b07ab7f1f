"""
Supplier Schema - Canonical Fields, Document Categories and Upload Policy

Defines the vocabulary shared by the onboarding wizard and the backend:
scalar form fields, per-country identifier sets, document categories with
their fixed upload labels, and the file policy constants enforced on both
sides of the wire.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Final, Optional


# =============================================================================
# Enums
# =============================================================================


class Country(Enum):
    """Country choice on the organisation step."""

    DOMESTIC = "MAROC"
    FOREIGN = "ETRANGER"


class LegalForm(Enum):
    """Legal forms offered on the organisation step."""

    SA = "SA"
    SAS = "SAS"
    SARL = "SARL"
    SNC = "SNC"
    SCS = "SCS"
    SCA = "SCA"
    EI = "EI"
    OTHER = "AUTRE"


@dataclass(frozen=True)
class FileCategory:
    """A named list of attachments on the documents step."""

    key: str
    label: str
    country: Country


# =============================================================================
# Document Categories
# =============================================================================

FILE_CATEGORIES: Final[tuple[FileCategory, ...]] = (
    # Domestic
    FileCategory("filesAttestationRC", "Attestation RC", Country.DOMESTIC),
    FileCategory("filesAttestationRIB", "Attestation RIB", Country.DOMESTIC),
    FileCategory("filesAttestationTVA", "Attestation TVA", Country.DOMESTIC),
    FileCategory("filesICE", "ICE", Country.DOMESTIC),
    FileCategory("filesIdentifiantFiscal", "Identifiant Fiscal", Country.DOMESTIC),
    FileCategory(
        "filesPresentationCommerciale", "Présentation Commerciale", Country.DOMESTIC
    ),
    FileCategory("filesStatutMaroc", "Statut", Country.DOMESTIC),
    FileCategory(
        "filesAttestationRegulariteFiscale",
        "Attestation de Régularité Fiscale",
        Country.DOMESTIC,
    ),
    # Foreign
    FileCategory("filesAttestationAT", "Attestation d'assurance (AT)", Country.FOREIGN),
    FileCategory(
        "filesAttestationRC_Etranger", "Attestation d'assurance (RC)", Country.FOREIGN
    ),
    FileCategory("filesAttestationRIB_Etranger", "Attestation RIB", Country.FOREIGN),
    FileCategory("filesICE_Etranger", "ICE", Country.FOREIGN),
)

FILE_CATEGORY_KEYS: Final[tuple[str, ...]] = tuple(c.key for c in FILE_CATEGORIES)

FISCAL_ATTESTATION_CATEGORY: Final[str] = "filesAttestationRegulariteFiscale"

# Title for a received document whose name matches no category label
UNLABELLED_DOCUMENT_TITLE: Final[str] = "FILE"


def _label_key(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    plain = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(plain.casefold().split())


def category_for_label(text: str) -> Optional[FileCategory]:
    """
    Document category whose upload label matches a received filename stem.

    Case and accents are ignored, so "attestation de regularite fiscale"
    still resolves to the fiscal attestation. Labels shared by a domestic
    and a foreign category resolve to the domestic one.
    """
    wanted = _label_key(text)
    if not wanted:
        return None
    for category in FILE_CATEGORIES:
        if _label_key(category.label) == wanted:
            return category
    return None


# =============================================================================
# Scalar Fields
# =============================================================================

COMPANY_FIELDS: Final[tuple[str, ...]] = (
    "country",
    "raisonSociale",
    "nomCommercial",
    "formeJuridique",
    "formeJuridiqueAutre",
    "ice",
    "rc",
    "identifiantFiscal",
    "siret",
    "tva",
    "address",
    "postalCode",
    "city",
    "phone",
    "fax",
    "website",
    "emailEntreprise",
)

CONTACT_FIELDS: Final[tuple[str, ...]] = (
    "civility",
    "contactNom",
    "contactPrenom",
    "contactMobile",
    "faxPro",
    "otherPhone",
    "email",
    "language",
    "timezone",
)

DOCUMENT_FIELDS: Final[tuple[str, ...]] = (
    "dateCreation",
    "typeEntreprise",
    "effectifTotal",
    "effectifEncadrement",
    "exercicesClos",
    "certifications",
    "hsePolicy",
)

BRANDING_FIELDS: Final[tuple[str, ...]] = ("logoUrl", "logoName", "logoDeveloper")

OCR_DATA_FIELD: Final[str] = "attestationRegulariteFiscaleData"

# Identifiers only sent for the matching country
DOMESTIC_IDENTIFIER_FIELDS: Final[tuple[str, ...]] = ("ice", "rc", "identifiantFiscal")
FOREIGN_IDENTIFIER_FIELDS: Final[tuple[str, ...]] = ("siret", "tva")

# Required fields per wizard step, with the inline message shown to the user
REQUIRED_STEP_FIELDS: Final[dict[int, tuple[tuple[str, str], ...]]] = {
    0: (
        ("raisonSociale", "Raison sociale est requise"),
        ("formeJuridique", "Forme juridique est requise"),
        ("address", "Adresse est requise"),
        ("postalCode", "Code postal est requis"),
        ("city", "Ville est requise"),
        ("emailEntreprise", "Email entreprise est requis"),
    ),
    1: (
        ("civility", "Civilité est requise"),
        ("contactNom", "Nom du contact est requis"),
        ("contactPrenom", "Prénom du contact est requis"),
        ("email", "Email principal est requis"),
    ),
    2: (),
}

OTHER_LEGAL_FORM_MESSAGE: Final[str] = "Veuillez préciser la forme juridique"

# Platform-imposed length limits
ICE_MAX_DIGITS: Final[int] = 18
SIRET_MAX_LENGTH: Final[int] = 14
TRADE_NAME_MAX_LENGTH: Final[int] = 20


# =============================================================================
# Upload Policy
# =============================================================================

ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (
    ".pdf",
    ".jpg",
    ".jpeg",
    ".png",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".csv",
    ".txt",
    ".tiff",
)

ALLOWED_MIME_PREFIXES: Final[tuple[str, ...]] = ("application/", "image/", "text/")

EXECUTABLE_EXTENSION_REGEX: Final = re.compile(
    r"\.(exe|sh|bat|cmd|js|jar|msi)$", re.IGNORECASE
)

# Default per-file ceiling (5 MiB), overridable through configuration
DEFAULT_MAX_FILE_SIZE_BYTES: Final[int] = 5 * 1024 * 1024

MAX_FILES_PER_SUBMISSION: Final[int] = 20

# Multipart field name shared by every attachment
FILES_FIELD_NAME: Final[str] = "files"


def is_domestic_country(value: Optional[str]) -> bool:
    """True when the (normalised) country designates the domestic market."""
    if not value:
        return False
    return value.strip().lower() in ("maroc", "ma")
