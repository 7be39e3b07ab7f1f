"""
Supplier Mapping - Form Payload to CRM Records

Translates the flat wizard payload into Account, Contact and fiscal
attestation field sets. Empty values are dropped so the CRM applies its own
defaults instead of receiving blank strings.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Final, Optional

from core.supplier.schema import is_domestic_country


logger = logging.getLogger(__name__)


# =============================================================================
# Record Types
# =============================================================================

DOMESTIC_RECORD_TYPE: Final[str] = "LocalSupplier"
FOREIGN_RECORD_TYPE: Final[str] = "ForeignSupplier"

ATTESTATION_OBJECT: Final[str] = "AttestationDeregularite__c"
ACCOUNT_CONTACT_FIELD: Final[str] = "Contact__c"

# Printable ASCII, Latin-1 Supplement and Latin Extended-A
_COUNTRY_STRIP_PATTERN: Final = re.compile(r"[^\x20-\x7E\u00A0-\u00FF\u0100-\u017F]")

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"oui", "true", "yes", "1"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"non", "false", "no", "0"})


# =============================================================================
# Value Helpers
# =============================================================================


def drop_empty(record: dict[str, Any]) -> dict[str, Any]:
    """Remove None and empty-string values."""
    return {k: v for k, v in record.items() if v is not None and v != ""}


def normalize_country(value: Optional[str]) -> Optional[str]:
    """Picklist token for the country input, invisible characters removed."""
    if value is None:
        return None
    cleaned = _COUNTRY_STRIP_PATTERN.sub("", str(value).strip())
    return cleaned or None


def record_type_for_country(country: Optional[str]) -> str:
    """Account record type developer name for a normalised country."""
    return DOMESTIC_RECORD_TYPE if is_domestic_country(country) else FOREIGN_RECORD_TYPE


def join_certifications(value: Any) -> str:
    """Certifications arrive as a list, a JSON list, or a plain string."""
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return value
        if isinstance(parsed, list):
            return ", ".join(str(v) for v in parsed)
        return value
    return ""


def parse_hse_policy(value: Any) -> Optional[bool]:
    """'oui'/'non' style answers to a boolean; unknown values give None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def to_iso_date(value: Optional[str]) -> Optional[str]:
    """DD-MM-YYYY to YYYY-MM-DD; ISO dates pass through, anything else is None."""
    if not value:
        return None
    text = str(value).strip()
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", text):
        return text
    match = re.fullmatch(r"(\d{2})-(\d{2})-(\d{4})", text)
    if match:
        return f"{match.group(3)}-{match.group(2)}-{match.group(1)}"
    logger.warning("Unrecognized date format: %s", text)
    return None


def _is_true(value: Any) -> bool:
    return value is True or value == "true"


# =============================================================================
# Record Builders
# =============================================================================


def build_account_record(
    payload: dict[str, Any],
    country: Optional[str],
    record_type_id: Optional[str] = None,
) -> dict[str, Any]:
    """Account fields for the supplier company."""
    record = {
        "Name": payload.get("raisonSociale"),
        "RecordTypeId": record_type_id,
        "Phone": payload.get("phone"),
        "Website": payload.get("website"),
        "BillingStreet": payload.get("address"),
        "BillingCity": payload.get("city"),
        "BillingPostalCode": payload.get("postalCode"),
        "BillingCountry": payload.get("country"),
        "Country__c": country,
        "DBA__c": payload.get("nomCommercial"),
        "RC__c": payload.get("rc"),
        "LegalForm__c": payload.get("formeJuridique"),
        "CommonCompanyIdentifier__c": payload.get("ice"),
        "FiscalIdentifier__c": payload.get("identifiantFiscal"),
        "Identifiant_fiscal_1__c": payload.get("identifiantFiscal1"),
        "Identifiant_fiscal_2__c": payload.get("identifiantFiscal2"),
        "Siret__c": payload.get("siret"),
        "VATNumber__c": payload.get("tva"),
        "EmailPrincipale__c": payload.get("emailEntreprise"),
        "DateCreation__c": payload.get("dateCreation"),
        "SupplierType__c": payload.get("typeEntreprise"),
        "Nombre_d_employes__c": payload.get("effectifTotal"),
        "Effectif_Encadrement__c": payload.get("effectifEncadrement"),
        "ExercicesClos__c": payload.get("exercicesClos"),
        "Certifications_generales__c": join_certifications(payload.get("certifications")),
        "PolitiqueHSE__c": parse_hse_policy(payload.get("hsePolicy")),
    }
    return drop_empty(record)


def build_contact_record(payload: dict[str, Any]) -> dict[str, Any]:
    """Contact fields for the primary supplier contact."""
    record = {
        "FirstName": payload.get("contactPrenom"),
        "LastName": payload.get("contactNom"),
        "Email": payload.get("email"),
        "Salutation": payload.get("civility"),
        "Phone": payload.get("contactMobile"),
        "OtherPhone": payload.get("otherPhone"),
        "PreferredLanguage__c": payload.get("language"),
        "Timezone__c": payload.get("timezone"),
    }
    return drop_empty(record)


def parse_ocr_data(value: Any) -> Optional[dict[str, Any]]:
    """OCR data arrives as a mapping (JSON body) or a JSON string (multipart)."""
    if not value:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        parsed = json.loads(value)
        return parsed if isinstance(parsed, dict) else None
    return None


def build_attestation_record(ocr_data: dict[str, Any], account_id: str) -> dict[str, Any]:
    """Fiscal compliance attestation fields, linked to the supplier account."""
    professional_tax = ocr_data.get("taxe_professionnelle")
    record = {
        "NumeroAttestation__c": ocr_data.get("numero_attestation"),
        "NumeroDidentificationFiscale__c": ocr_data.get("numero_d_identification_fiscale"),
        "IdentifiantCommunEntreprise__c": ocr_data.get("ice"),
        "NumeroRegistreCommerce__c": ocr_data.get("registre_de_commerce"),
        "NumeroDidentificationTaxePro__c": (
            str(professional_tax) if professional_tax else None
        ),
        "DateDebut__c": to_iso_date(ocr_data.get("date_reception")),
        "DateEdition__c": to_iso_date(ocr_data.get("date_edition")),
        "EstEnRegularite__c": _is_true(ocr_data.get("statut_regularite")),
        "AConstiteDesGarantiesSuffisante__c": _is_true(ocr_data.get("statut_garanties")),
        "NestPasEnRegle__c": _is_true(ocr_data.get("nest_pas_en_regle")),
    }
    record = drop_empty(record)
    record["Fournisseur__c"] = account_id
    return record
