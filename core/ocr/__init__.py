from core.ocr.exceptions import (
    OcrConfigurationError,
    OcrError,
    OcrNetworkError,
    OcrResponseError,
)
from core.ocr.extractor import (
    AttestationExtractor,
    build_attestation_extractor,
    parse_attestation_reply,
)

__all__ = [
    "AttestationExtractor",
    "OcrConfigurationError",
    "OcrError",
    "OcrNetworkError",
    "OcrResponseError",
    "build_attestation_extractor",
    "parse_attestation_reply",
]
