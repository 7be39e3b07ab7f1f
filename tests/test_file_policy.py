"""
Tests for the Upload Policy

Tests covering:
1. Size ceiling enforced before type checks
2. Extension or MIME allow-list
3. Executable extensions refused whatever the MIME type
4. Client and server messages
5. Upload naming helpers
"""

from __future__ import annotations

import pytest

from core.supplier.files import (
    FilePolicyError,
    FilePolicyViolation,
    check_file_policy,
    client_file_error,
    document_title,
    enforce_file_policy,
    normalized_upload_name,
    repair_filename_encoding,
    split_title,
)
from core.supplier.schema import DEFAULT_MAX_FILE_SIZE_BYTES, category_for_label


SIX_MIB = 6 * 1024 * 1024


# =============================================================================
# Policy
# =============================================================================


class TestCheckFilePolicy:
    """Tests for check_file_policy."""

    def test_accepts_pdf_within_limit(self):
        assert check_file_policy("rib.pdf", 1024, "application/pdf") is None

    def test_accepts_allowed_extension_without_mime(self):
        assert check_file_policy("photo.PNG", 1024, "") is None

    def test_accepts_allowed_mime_without_extension(self):
        assert check_file_policy("scan", 1024, "image/jpeg") is None

    def test_rejects_oversized_file(self):
        assert check_file_policy("scan.pdf", SIX_MIB, "application/pdf") == FilePolicyViolation.TOO_LARGE

    def test_exact_limit_is_accepted(self):
        assert check_file_policy("scan.pdf", DEFAULT_MAX_FILE_SIZE_BYTES, "application/pdf") is None

    def test_rejects_unknown_type(self):
        assert check_file_policy("archive.zip", 10, "") == FilePolicyViolation.TYPE_NOT_ALLOWED

    def test_rejects_executable_with_allowed_mime(self):
        assert check_file_policy("invoice.exe", 10, "application/pdf") == FilePolicyViolation.EXECUTABLE

    def test_rejects_script_with_text_mime(self):
        assert check_file_policy("run.js", 10, "text/javascript") == FilePolicyViolation.EXECUTABLE

    def test_custom_limit(self):
        assert check_file_policy("a.pdf", 2048, "application/pdf", max_bytes=1024) == FilePolicyViolation.TOO_LARGE


class TestMessages:
    """Client and server phrasing of refusals."""

    def test_client_message_for_oversized_file(self):
        assert client_file_error("big.pdf", SIX_MIB, "application/pdf") == "File too large (max 5 MB)"

    def test_client_message_none_when_accepted(self):
        assert client_file_error("ok.pdf", 10, "application/pdf") is None

    def test_enforce_raises_with_server_message(self):
        with pytest.raises(FilePolicyError) as exc_info:
            enforce_file_policy("big.pdf", SIX_MIB, "application/pdf")

        assert exc_info.value.violation == FilePolicyViolation.TOO_LARGE
        assert exc_info.value.filename == "big.pdf"
        assert exc_info.value.message == "Un des fichiers dépasse la taille maximale autorisée."

    def test_enforce_executable_message(self):
        with pytest.raises(FilePolicyError, match="dangereux"):
            enforce_file_policy("setup.msi", 10, "application/octet-stream")

    def test_enforce_passes_valid_file(self):
        enforce_file_policy("statut.docx", 10, "")


# =============================================================================
# Naming
# =============================================================================


class TestNaming:
    """Tests for filename helpers."""

    def test_normalized_name_uses_label_and_extension(self):
        assert normalized_upload_name("ICE", "scan 12.PDF") == "ICE.pdf"

    def test_normalized_name_defaults_to_pdf(self):
        assert normalized_upload_name("Statut", "noext") == "Statut.pdf"

    def test_repairs_latin1_decoded_utf8(self):
        assert repair_filename_encoding("rÃ©sumÃ©.pdf") == "résumé.pdf"

    def test_leaves_correct_names_alone(self):
        assert repair_filename_encoding("résumé.pdf") == "résumé.pdf"

    def test_split_title(self):
        assert split_title("uploads/Attestation RC.PDF") == ("Attestation RC", ".pdf")

    def test_split_title_empty(self):
        assert split_title("") == ("FILE", "")

    @pytest.mark.parametrize("stem,key", [
        ("Attestation de Régularité Fiscale", "filesAttestationRegulariteFiscale"),
        ("attestation de regularite fiscale", "filesAttestationRegulariteFiscale"),
        ("ICE", "filesICE"),
        ("Attestation d'assurance (AT)", "filesAttestationAT"),
    ])
    def test_category_for_label(self, stem, key):
        assert category_for_label(stem).key == key

    @pytest.mark.parametrize("stem", ["", "Attestation", "salaires_jean_dupont"])
    def test_category_for_unknown_label(self, stem):
        assert category_for_label(stem) is None

    def test_document_title_uses_the_label(self):
        category, title, ext = document_title("uploads/ice.PDF")

        assert category.key == "filesICE"
        assert (title, ext) == ("ICE", ".pdf")

    def test_document_title_hides_unknown_names(self):
        category, title, ext = document_title("salaires_jean_dupont.pdf")

        assert category is None
        assert (title, ext) == ("FILE", ".pdf")
