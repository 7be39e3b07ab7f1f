"""
Tests for the Wizard Controller

The backend is replaced by a fake API client; drafts are stored under
pytest's tmp_path.
"""

from __future__ import annotations

import pytest
import requests

from core.supplier import SubmissionSuccess, ValidationFailure
from core.supplier.schema import FISCAL_ATTESTATION_CATEGORY
from core.wizard.controller import (
    FILE_VALIDATION_MESSAGE,
    OCR_ERROR_MESSAGE,
    SUBMIT_VALIDATION_MESSAGE,
    WizardController,
)
from core.wizard.reducers import ICE_TOO_LONG_MESSAGE
from core.wizard.state import CONFIRMATION_STEP, RECAP_STEP, DraftFile, FormDraft, WizardState
from core.wizard.storage import DraftStore
from core.wizard.submission import NETWORK_ERROR_MESSAGE


class FakeApi:
    """Records calls and answers with canned results."""

    def __init__(self, result=None, error=None, logo=None, ocr=None):
        self.result = result or SubmissionSuccess(account_id="001ACC")
        self.error = error
        self.logo = logo
        self.ocr = ocr
        self.submitted = []

    def submit(self, request, signal):
        self.submitted.append(request)
        if self.error:
            raise self.error
        return self.result

    def fetch_logo(self, signal):
        if isinstance(self.logo, Exception):
            raise self.logo
        return self.logo

    def analyze_attestation(self, document, signal):
        if isinstance(self.ocr, Exception):
            raise self.ocr
        return self.ocr


COMPLETE = {
    "raisonSociale": "ACME SA",
    "formeJuridique": "SA",
    "address": "1 rue de la Paix",
    "postalCode": "20000",
    "city": "Casablanca",
    "emailEntreprise": "contact@acme.test",
    "country": "MAROC",
    "civility": "Mme",
    "contactNom": "Doe",
    "contactPrenom": "Jane",
    "email": "jane@acme.test",
}


@pytest.fixture
def store(tmp_path):
    return DraftStore(str(tmp_path))


def controller_with(api, store=None, fields=None, step=RECAP_STEP):
    draft = FormDraft.empty().with_fields(fields if fields is not None else COMPLETE)
    return WizardController(api, store=store, state=WizardState(draft=draft, current_step=step))


# =============================================================================
# Submission
# =============================================================================


class TestSubmitForm:
    """Tests for submit_form."""

    def test_success_reaches_confirmation_and_clears_draft(self, store):
        api = FakeApi()
        controller = controller_with(api, store=store)
        store.save(controller.state)

        state = controller.submit_form()

        assert state.current_step == CONFIRMATION_STEP
        assert len(api.submitted) == 1
        assert not store.path.exists()

    def test_missing_fields_block_submission(self):
        api = FakeApi()
        controller = controller_with(api, fields={"raisonSociale": "ACME SA"})

        state = controller.submit_form()

        assert api.submitted == []
        assert state.submit_error == SUBMIT_VALIDATION_MESSAGE
        assert "email" in state.validation_errors

    def test_ice_too_long_blocks_submission(self):
        api = FakeApi()
        controller = controller_with(api, fields={**COMPLETE, "ice": "1" * 19})

        state = controller.submit_form()

        assert api.submitted == []
        assert state.validation_errors == {"ice": ICE_TOO_LONG_MESSAGE}

    def test_ice_is_normalized_before_sending(self):
        api = FakeApi()
        controller = controller_with(api, fields={**COMPLETE, "ice": "0012 3456 7000 089"})

        controller.submit_form()

        assert api.submitted[0].payload["ice"] == "001234567000089"

    def test_invalid_file_blocks_submission(self):
        api = FakeApi()
        controller = controller_with(api)
        big = DraftFile("big.pdf", b"0" * (6 * 1024 * 1024), "application/pdf")
        controller.state = controller.state.evolve(draft=controller.state.draft.with_files("filesICE", (big,)))

        state = controller.submit_form()

        assert api.submitted == []
        assert state.submit_error == FILE_VALIDATION_MESSAGE
        assert state.file_errors == {"filesICE": ("big.pdf: File too large (max 5 MB)",)}

    def test_network_error(self):
        api = FakeApi(error=requests.ConnectionError("refused"))
        controller = controller_with(api)

        state = controller.submit_form()

        assert state.submit_error == NETWORK_ERROR_MESSAGE
        assert not state.is_submitting
        assert state.current_step == RECAP_STEP

    def test_backend_validation_error(self):
        api = FakeApi(result=ValidationFailure(error="Type de fichier non autorisé."))
        controller = controller_with(api)

        state = controller.submit_form()

        assert state.submit_error == "Type de fichier non autorisé."
        assert state.current_step == RECAP_STEP


# =============================================================================
# Navigation and Persistence
# =============================================================================


class TestNavigation:
    """Tests for navigation and draft persistence."""

    def test_advancing_saves_progress(self, store):
        controller = controller_with(FakeApi(), store=store, step=0)

        state = controller.go_to_next_step()

        assert state.current_step == 1
        assert store.load().current_step == 1

    def test_blocked_step_is_not_saved(self, store):
        controller = controller_with(FakeApi(), store=store, fields={}, step=0)

        controller.go_to_next_step()

        assert not store.path.exists()

    def test_save_progress(self, store):
        controller = controller_with(FakeApi(), store=store, step=1)

        state = controller.save_progress()

        assert state.is_saved
        assert store.load().draft.get("raisonSociale") == "ACME SA"

    def test_editing_clears_saved_flag(self, store):
        controller = controller_with(FakeApi(), store=store)
        controller.save_progress()

        state = controller.update_field("city", "Rabat")

        assert not state.is_saved

    def test_restore(self, store):
        controller_with(FakeApi(), store=store, step=2).save_progress()
        controller = WizardController(FakeApi(), store=store)

        state = controller.restore()

        assert state.current_step == 2
        assert state.draft.get("raisonSociale") == "ACME SA"

    def test_reset_clears_store(self, store):
        controller = controller_with(FakeApi(), store=store)
        controller.save_progress()

        state = controller.reset_form()

        assert state.current_step == 0
        assert not store.path.exists()

    def test_validate_step(self):
        controller = controller_with(FakeApi(), fields={}, step=1)
        assert "contactNom" in controller.validate_step()

    def test_scroll_acknowledged(self):
        controller = controller_with(FakeApi(), fields={}, step=0)
        assert controller.go_to_next_step().scroll_to_top

        state = controller.acknowledge_scroll()

        assert state.scroll_to_top is False


# =============================================================================
# Branding and OCR
# =============================================================================


class TestBackendHelpers:
    """Tests for fetch_branding and analyze_attestation."""

    def test_fetch_branding(self):
        api = FakeApi(logo={"success": True, "logoUrl": "https://x/logo.png", "logoName": "Groupe", "developerName": "Main"})
        controller = controller_with(api)

        state = controller.fetch_branding()

        assert state.draft.get("logoUrl") == "https://x/logo.png"
        assert state.draft.get("logoName") == "Groupe"
        assert state.draft.get("logoDeveloper") == "Main"

    def test_branding_failure_is_ignored(self):
        controller = controller_with(FakeApi(logo=requests.ConnectionError("down")))
        before = controller.state

        assert controller.fetch_branding() == before

    def test_analyze_attestation(self):
        data = {"ice": "0015", "statut_regularite": True}
        controller = controller_with(FakeApi(ocr=data))
        document = DraftFile("attestation.pdf", b"%PDF", "application/pdf")

        state = controller.analyze_attestation(document)

        assert state.draft.get("attestationRegulariteFiscaleData") == data
        assert state.draft.files[FISCAL_ATTESTATION_CATEGORY] == (document,)

    def test_analyze_attestation_failure(self):
        controller = controller_with(FakeApi(ocr=requests.HTTPError("500")))

        state = controller.analyze_attestation(DraftFile("a.pdf", b"%PDF", "application/pdf"))

        assert state.submit_error == OCR_ERROR_MESSAGE
        assert state.draft.get("attestationRegulariteFiscaleData") is None

    def test_analyze_refuses_invalid_file(self):
        api = FakeApi(ocr={"ice": "1"})
        controller = controller_with(api)

        state = controller.analyze_attestation(DraftFile("a.exe", b"MZ", "application/pdf"))

        assert FISCAL_ATTESTATION_CATEGORY in state.file_errors
        assert state.draft.get("attestationRegulariteFiscaleData") is None
