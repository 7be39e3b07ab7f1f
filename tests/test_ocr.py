"""
Tests for Fiscal Attestation OCR

The vision client is tested with a patched openai.OpenAI.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from core.ocr import (
    AttestationExtractor,
    OcrConfigurationError,
    OcrError,
    OcrNetworkError,
    OcrResponseError,
    build_attestation_extractor,
    parse_attestation_reply,
)
from core.ocr.client import VisionClient
from core.ocr.extractor import BOOLEAN_FIELDS, STRING_FIELDS, strip_markdown_fences


def _make_mock_response(content):
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def _client_with(mock_client) -> VisionClient:
    with patch("core.ocr.client.openai.OpenAI", return_value=mock_client):
        return VisionClient(api_key="k", timeout_seconds=30, base_url="https://vision.example/")


class TestVisionClient:
    """Tests for VisionClient."""

    def test_sends_prompt_and_image(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = _make_mock_response("{}")
        client = _client_with(mock_client)

        text = client.describe_document(model="m", prompt="extract", content=b"img", mime_type="image/png")

        assert text == "{}"
        content = mock_client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "extract"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,aW1n"

    def test_empty_response(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = _make_mock_response(None)
        client = _client_with(mock_client)

        with pytest.raises(OcrError, match="empty response"):
            client.describe_document(model="m", prompt="p", content=b"x", mime_type="image/png")

    def test_no_choices(self):
        mock_client = MagicMock()
        response = MagicMock()
        response.choices = []
        mock_client.chat.completions.create.return_value = response
        client = _client_with(mock_client)

        with pytest.raises(OcrError, match="no choices"):
            client.describe_document(model="m", prompt="p", content=b"x", mime_type="image/png")

    def test_connection_failure(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = openai.APIConnectionError(request=MagicMock())
        client = _client_with(mock_client)

        with pytest.raises(OcrNetworkError, match="network error"):
            client.describe_document(model="m", prompt="p", content=b"x", mime_type="image/png")

    def test_timeout(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = httpx.TimeoutException("timeout")
        client = _client_with(mock_client)

        with pytest.raises(OcrNetworkError):
            client.describe_document(model="m", prompt="p", content=b"x", mime_type="image/png")


class TestParseReply:
    """Tests for reply parsing."""

    def test_strips_fences(self):
        assert strip_markdown_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_fixed_schema(self):
        data = parse_attestation_reply('```json\n{"ice": "0015", "statut_regularite": "true", "extra": 1}\n```')

        assert set(data) == set(STRING_FIELDS) | set(BOOLEAN_FIELDS)
        assert data["ice"] == "0015"
        assert data["statut_regularite"] is True
        assert data["numero_attestation"] is None
        assert data["nest_pas_en_regle"] is None

    def test_invalid_json(self):
        with pytest.raises(OcrResponseError):
            parse_attestation_reply("Voici les informations : ...")

    def test_non_object_json(self):
        with pytest.raises(OcrResponseError):
            parse_attestation_reply("[1, 2]")


class TestAttestationExtractor:
    """Tests for AttestationExtractor."""

    def test_missing_key_is_configuration_error(self):
        extractor = build_attestation_extractor(api_key="", model="gemini-1.5-flash")

        with pytest.raises(OcrConfigurationError):
            extractor.analyze(b"x", "image/png")

    def test_analyze(self):
        client = MagicMock()
        client.describe_document.return_value = '{"numero_attestation": "ATT-42", "statut_garanties": false}'
        extractor = AttestationExtractor(client, model="gemini-1.5-flash")

        data = extractor.analyze(b"scan", "application/pdf")

        assert data["numero_attestation"] == "ATT-42"
        assert data["statut_garanties"] is False
        kwargs = client.describe_document.call_args.kwargs
        assert kwargs["model"] == "gemini-1.5-flash"
        assert kwargs["mime_type"] == "application/pdf"
