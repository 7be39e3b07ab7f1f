"""
Tests for Wizard Submission

Tests covering:
1. Payload building (legal form, per-country identifiers, attachment names)
2. Multipart stringification
3. Abort signals
4. Backend client over a fake requests session
5. Mapping results back onto the wizard state
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from core.supplier import (
    AuthenticationRequired,
    DuplicateConflict,
    DuplicateField,
    SubmissionFailure,
    SubmissionSuccess,
    ValidationFailure,
)
from core.wizard.state import CONFIRMATION_STEP, RECAP_STEP, DraftFile, FormDraft, WizardState
from core.wizard.submission import (
    UNEXPECTED_ERROR_MESSAGE,
    AbortSignal,
    InFlight,
    RequestAborted,
    SupplierApiClient,
    apply_submission_result,
    build_submission_request,
)


@pytest.fixture
def draft():
    return FormDraft.empty().with_fields({
        "raisonSociale": "ACME SA",
        "formeJuridique": "SA",
        "country": "MAROC",
        "ice": "001234567000089",
        "rc": "RC-1",
        "siret": "12345678901234",
        "tva": "FR00",
        "certifications": ["ISO 9001", "ISO 14001"],
        "contactNom": "Doe",
        "contactPrenom": "Jane",
        "email": "jane@acme.test",
    })


def make_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = body
    return response


# =============================================================================
# Request Building
# =============================================================================


class TestBuildSubmissionRequest:
    """Tests for build_submission_request."""

    def test_json_without_files(self, draft):
        request = build_submission_request(draft)

        assert not request.is_multipart
        assert request.payload["raisonSociale"] == "ACME SA"
        assert request.payload["certifications"] == ["ISO 9001", "ISO 14001"]

    def test_domestic_identifiers_only(self, draft):
        payload = build_submission_request(draft).payload

        assert payload["ice"] == "001234567000089"
        assert payload["rc"] == "RC-1"
        assert "siret" not in payload
        assert "tva" not in payload

    def test_foreign_identifiers_only(self, draft):
        payload = build_submission_request(draft.with_field("country", "ETRANGER")).payload

        assert payload["siret"] == "12345678901234"
        assert "ice" not in payload

    def test_no_identifiers_without_country(self, draft):
        payload = build_submission_request(draft.with_field("country", "")).payload

        assert "ice" not in payload
        assert "siret" not in payload

    def test_other_legal_form(self, draft):
        draft = draft.with_fields({"formeJuridique": "AUTRE", "formeJuridiqueAutre": "GIE"})
        assert build_submission_request(draft).payload["formeJuridique"] == "GIE"

    def test_attachments_renamed_after_category(self, draft):
        draft = draft.with_files("filesICE", (DraftFile("scan 12.PDF", b"%PDF", "application/pdf"),))

        request = build_submission_request(draft)

        assert request.is_multipart
        assert request.files == (("ICE.pdf", b"%PDF", "application/pdf"),)
        assert request.multipart_files() == [("files", ("ICE.pdf", b"%PDF", "application/pdf"))]

    def test_multipart_fields_are_strings(self, draft):
        draft = draft.with_field("attestationRegulariteFiscaleData", {"ice": "0015"})

        fields = build_submission_request(draft).form_fields()

        assert fields["certifications"] == "ISO 9001;ISO 14001"
        assert json.loads(fields["attestationRegulariteFiscaleData"]) == {"ice": "0015"}
        assert all(isinstance(v, str) for v in fields.values())

    def test_ocr_data_omitted_when_absent(self, draft):
        assert "attestationRegulariteFiscaleData" not in build_submission_request(draft).payload


# =============================================================================
# Cancellation
# =============================================================================


class TestInFlight:
    """Tests for InFlight and AbortSignal."""

    def test_new_request_aborts_previous(self):
        slot = InFlight()
        first = slot.begin()
        second = slot.begin()

        assert first.aborted
        assert not second.aborted

    def test_cancel(self):
        slot = InFlight()
        signal = slot.begin()

        slot.cancel()

        assert signal.aborted

    def test_finish_keeps_signal_alive(self):
        slot = InFlight()
        signal = slot.begin()

        slot.finish(signal)
        slot.begin()

        assert not signal.aborted


# =============================================================================
# Backend Client
# =============================================================================


class TestSupplierApiClient:
    """Tests for SupplierApiClient with a fake session."""

    SUCCESS = {
        "success": True,
        "data": {"accountId": "001ACC", "contactId": "003CON", "uploadedFiles": []},
        "warnings": [],
    }

    def test_json_submission(self, draft):
        session = MagicMock()
        session.post.return_value = make_response(201, self.SUCCESS)
        client = SupplierApiClient("http://localhost:3001/", session=session)

        result = client.submit(build_submission_request(draft), AbortSignal())

        assert isinstance(result, SubmissionSuccess)
        assert result.account_id == "001ACC"
        args, kwargs = session.post.call_args
        assert args[0] == "http://localhost:3001/api/supplier"
        assert kwargs["json"]["raisonSociale"] == "ACME SA"
        assert "files" not in kwargs

    def test_multipart_submission(self, draft):
        session = MagicMock()
        session.post.return_value = make_response(201, self.SUCCESS)
        client = SupplierApiClient("http://localhost:3001", session=session)
        draft = draft.with_files("filesICE", (DraftFile("a.pdf", b"%PDF", "application/pdf"),))

        client.submit(build_submission_request(draft), AbortSignal())

        kwargs = session.post.call_args.kwargs
        assert kwargs["data"]["raisonSociale"] == "ACME SA"
        assert kwargs["files"] == [("files", ("ICE.pdf", b"%PDF", "application/pdf"))]

    def test_aborted_answer_is_dropped(self, draft):
        session = MagicMock()
        session.post.return_value = make_response(201, self.SUCCESS)
        client = SupplierApiClient("http://localhost:3001", session=session)
        signal = AbortSignal()
        signal.abort()

        with pytest.raises(RequestAborted):
            client.submit(build_submission_request(draft), signal)

    def test_duplicate_answer(self, draft):
        session = MagicMock()
        session.post.return_value = make_response(409, {
            "success": False,
            "error": "Doublon détecté : une valeur existe déjà.",
            "duplicates": [{"field": "raisonSociale", "label": "Nom fournisseur", "message": "Valeur dupliquée"}],
        })
        client = SupplierApiClient("http://localhost:3001", session=session)

        result = client.submit(build_submission_request(draft), AbortSignal())

        assert isinstance(result, DuplicateConflict)
        assert result.duplicate_fields == ["raisonSociale"]

    def test_non_json_answer(self, draft):
        session = MagicMock()
        response = make_response(502, None)
        response.json.side_effect = ValueError("no json")
        session.post.return_value = response
        client = SupplierApiClient("http://localhost:3001", session=session)

        result = client.submit(build_submission_request(draft), AbortSignal())

        assert isinstance(result, SubmissionFailure)
        assert result.status_code == 502


# =============================================================================
# Result Interpretation
# =============================================================================


class TestApplySubmissionResult:
    """Tests for apply_submission_result."""

    @pytest.fixture
    def state(self, draft):
        return WizardState(draft=draft, current_step=RECAP_STEP, is_submitting=True)

    def test_clean_success_goes_to_confirmation(self, state):
        state = apply_submission_result(state, SubmissionSuccess(account_id="001ACC"))

        assert state.current_step == CONFIRMATION_STEP
        assert not state.is_submitting

    def test_success_with_warnings_stays_on_recap(self, state):
        result = SubmissionSuccess(
            account_id="001ACC",
            warnings=("Contact 001AB00000abcdEFGH could not be linked",),
        )

        state = apply_submission_result(state, result)

        assert state.current_step == RECAP_STEP
        assert state.submit_warnings == ("[objet] [id supprimé] could not be linked",)

    def test_duplicate_maps_fields(self, state):
        result = DuplicateConflict(duplicates=(
            DuplicateField(field=None, label="Nom fournisseur"),
            DuplicateField(field=None, label="Nom commercial"),
            DuplicateField(field="raisonSociale", label="Raison sociale", message="Déjà utilisée"),
        ))

        state = apply_submission_result(state, result)

        assert state.validation_errors == {
            "raisonSociale": "Déjà utilisée",
            "nomCommercial": "Valeur dupliquée",
        }
        assert state.submit_error == result.error

    def test_authentication_required(self, state):
        state = apply_submission_result(state, AuthenticationRequired(login_url="https://x/login"))

        assert state.login_prompt_url == "https://x/login"
        assert state.current_step == RECAP_STEP

    def test_validation_failure_is_shown(self, state):
        state = apply_submission_result(state, ValidationFailure(error="Adresse email invalide : Email"))
        assert state.submit_error == "Adresse email invalide : Email"

    def test_other_failure_is_generic(self, state):
        result = SubmissionFailure(sanitized_message="UNKNOWN_EXCEPTION in trigger AccountTrigger")

        state = apply_submission_result(state, result)

        assert state.submit_error == UNEXPECTED_ERROR_MESSAGE
        assert not state.is_submitting
