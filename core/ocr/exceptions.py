class OcrError(Exception):
    """Raised when document extraction fails."""


class OcrConfigurationError(OcrError):
    """Raised when the vision model is not configured (missing API key)."""


class OcrNetworkError(OcrError):
    """Raised when the vision API call fails due to network/infrastructure issues."""


class OcrResponseError(OcrError):
    """Raised when the model reply is not the expected JSON object."""
