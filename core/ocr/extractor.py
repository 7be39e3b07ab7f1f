"""
Fiscal attestation extraction.

Sends the uploaded attestation to the vision model and coerces the reply
into a fixed set of keys; keys the model omits come back as None.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Final, Optional

from core.ocr.client import VisionClient
from core.ocr.exceptions import OcrConfigurationError, OcrResponseError


logger = logging.getLogger(__name__)


STRING_FIELDS: Final[tuple[str, ...]] = (
    "numero_attestation",
    "numero_d_identification_fiscale",
    "ice",
    "registre_de_commerce",
    "taxe_professionnelle",
    "date_reception",
    "date_edition",
)

BOOLEAN_FIELDS: Final[tuple[str, ...]] = (
    "statut_regularite",
    "statut_garanties",
    "nest_pas_en_regle",
)

ATTESTATION_PROMPT: Final[str] = """
Analyse ce document (Attestation de Régularité Fiscale Marocaine) et extrais les informations suivantes au format JSON uniquement.
Ne mets pas de markdown (pas de ```json). Renvoie juste l'objet JSON brut.

Champs à extraire :
- numero_attestation (String)
- numero_d_identification_fiscale (String)
- ice (String)
- registre_de_commerce (String)
- taxe_professionnelle (String)
- date_reception (String, format DD-MM-YYYY)
- date_edition (String, format DD-MM-YYYY)
- statut_regularite (Boolean, true si le contribuable est en situation fiscale régulière)
- statut_garanties (Boolean, true si le contribuable a constitué des garanties suffisantes)
- nest_pas_en_regle (Boolean, true si le contribuable n'est pas en règle)

Si un champ n'est pas trouvé, mets null.
""".strip()


def strip_markdown_fences(text: str) -> str:
    """Remove ```json fences some models add despite instructions."""
    return re.sub(r"```(?:json)?", "", text).strip()


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "oui", "yes", "1"):
        return True
    if text in ("false", "non", "no", "0"):
        return False
    return None


def coerce_attestation(raw: dict[str, Any]) -> dict[str, Any]:
    """Project a model reply onto the fixed attestation schema."""
    result: dict[str, Any] = {}
    for name in STRING_FIELDS:
        value = raw.get(name)
        result[name] = str(value) if value not in (None, "") else None
    for name in BOOLEAN_FIELDS:
        result[name] = _as_bool(raw.get(name))
    return result


def parse_attestation_reply(text: str) -> dict[str, Any]:
    """
    Parse the model's text reply.

    Raises:
        OcrResponseError: If the reply is not a JSON object
    """
    cleaned = strip_markdown_fences(text)
    try:
        parsed = json.loads(cleaned)
    except ValueError as exc:
        raise OcrResponseError(f"Model reply is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise OcrResponseError("Model reply is not a JSON object")
    return coerce_attestation(parsed)


class AttestationExtractor:
    """Extracts fiscal attestation fields from a scanned document."""

    def __init__(self, client: Optional[VisionClient], model: str) -> None:
        self._client = client
        self._model = model

    def analyze(self, content: bytes, mime_type: str) -> dict[str, Any]:
        if self._client is None:
            raise OcrConfigurationError("OCR API key missing")

        logger.info("Sending attestation to vision model %s", self._model)
        text = self._client.describe_document(
            model=self._model,
            prompt=ATTESTATION_PROMPT,
            content=content,
            mime_type=mime_type,
        )
        logger.debug("Vision model raw reply: %s", text)
        return parse_attestation_reply(text)


def build_attestation_extractor(
    api_key: str,
    model: str,
    base_url: Optional[str] = None,
    timeout_seconds: int = 60,
) -> AttestationExtractor:
    """Extractor from configuration; without an API key every call fails with a config error."""
    client = None
    if api_key:
        client = VisionClient(api_key=api_key, timeout_seconds=timeout_seconds, base_url=base_url)
    return AttestationExtractor(client, model)
