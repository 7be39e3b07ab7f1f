"""
Wizard Controller - Stateful Facade over the Reducers

Owns the current WizardState, persists progress through a DraftStore and
talks to the backend through a SupplierApiClient. This is the object a
view layer binds to.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import requests

from core.supplier.files import client_file_error
from core.supplier.schema import (
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FISCAL_ATTESTATION_CATEGORY,
    OCR_DATA_FIELD,
)
from core.wizard import reducers
from core.wizard.state import CONFIRMATION_STEP, DraftFile, WizardState
from core.wizard.storage import DraftStore
from core.wizard.submission import (
    NETWORK_ERROR_MESSAGE,
    InFlight,
    RequestAborted,
    SupplierApiClient,
    apply_submission_result,
    build_submission_request,
)


logger = logging.getLogger(__name__)


SUBMIT_VALIDATION_MESSAGE = "Veuillez corriger les champs requis avant de soumettre."
FILE_VALIDATION_MESSAGE = "Certains fichiers ne sont pas acceptés. Veuillez les corriger."
OCR_ERROR_MESSAGE = "Erreur lors de l'analyse du document"


class WizardController:
    """
    Multi-step supplier form.

    Every public method updates `state` and returns it.
    """

    def __init__(
        self,
        api: SupplierApiClient,
        store: Optional[DraftStore] = None,
        max_file_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
        state: Optional[WizardState] = None,
    ):
        self.api = api
        self.store = store
        self.max_file_bytes = max_file_bytes
        self.state = state or WizardState()
        self._submission = InFlight()
        self._branding = InFlight()
        self._ocr = InFlight()

    # =========================================================================
    # Loading
    # =========================================================================

    def restore(self) -> WizardState:
        """Resume the saved draft, if any."""
        if self.store is not None:
            saved = self.store.load()
            if saved is not None:
                self.state = saved
                logger.info("Restored draft at step %d", saved.current_step)
        return self.state

    def fetch_branding(self) -> WizardState:
        """Load the logo metadata into the draft. Failures are ignored."""
        signal = self._branding.begin()
        try:
            branding = self.api.fetch_logo(signal)
        except RequestAborted:
            return self.state
        except requests.RequestException as e:
            logger.info("Branding unavailable: %s", e)
            return self.state
        finally:
            self._branding.finish(signal)

        if branding and branding.get("success"):
            self.state = self.state.evolve(
                draft=self.state.draft.with_fields(
                    {
                        "logoUrl": branding.get("logoUrl") or "",
                        "logoName": branding.get("logoName") or "",
                        "logoDeveloper": branding.get("developerName") or "",
                    }
                )
            )
        return self.state

    # =========================================================================
    # Editing
    # =========================================================================

    def update_field(self, name: str, value: Any) -> WizardState:
        self.state = reducers.update_field(self.state, name, value)
        return self.state

    def add_files(self, category: str, files: Iterable[DraftFile]) -> WizardState:
        self.state = reducers.add_files(self.state, category, files, self.max_file_bytes)
        return self.state

    def remove_file(self, category: str, index: int) -> WizardState:
        self.state = reducers.remove_file(self.state, category, index)
        return self.state

    def validate_step(self, step_index: Optional[int] = None) -> dict[str, str]:
        step = self.state.current_step if step_index is None else step_index
        errors = reducers.validate_step(self.state.draft, step)
        self.state = self.state.evolve(validation_errors=errors)
        return errors

    def analyze_attestation(self, document: DraftFile) -> WizardState:
        """
        OCR the fiscal attestation and keep the extracted data on the draft.

        The document is also attached under its category when it passes the
        file policy.
        """
        error = client_file_error(document.name, document.size, document.mime_type, self.max_file_bytes)
        if error:
            file_errors = dict(self.state.file_errors)
            file_errors[FISCAL_ATTESTATION_CATEGORY] = (f"{document.name}: {error}",)
            self.state = self.state.evolve(file_errors=file_errors)
            return self.state

        signal = self._ocr.begin()
        try:
            body = self.api.analyze_attestation(document, signal)
        except RequestAborted:
            return self.state
        except requests.RequestException as e:
            logger.warning("Attestation analysis failed: %s", e)
            self.state = self.state.evolve(submit_error=OCR_ERROR_MESSAGE)
            return self.state
        finally:
            self._ocr.finish(signal)

        self.state = reducers.update_field(self.state, OCR_DATA_FIELD, body)
        self.state = reducers.add_files(
            self.state, FISCAL_ATTESTATION_CATEGORY, [document], self.max_file_bytes
        )
        return self.state

    # =========================================================================
    # Navigation
    # =========================================================================

    def go_to_next_step(self) -> WizardState:
        """Advance when the step validates; progress is saved on every advance."""
        previous = self.state.current_step
        self.state = reducers.go_to_next_step(self.state)
        if self.state.current_step != previous and self.state.current_step != CONFIRMATION_STEP:
            self._persist()
        return self.state

    def go_to_prev_step(self) -> WizardState:
        self.state = reducers.go_to_prev_step(self.state)
        return self.state

    def go_to_step(self, step_index: int) -> WizardState:
        self.state = reducers.go_to_step(self.state, step_index)
        return self.state

    def acknowledge_scroll(self) -> WizardState:
        """The view has scrolled to the top."""
        self.state = reducers.scrolled(self.state)
        return self.state

    def save_progress(self) -> WizardState:
        """Explicit save from the UI."""
        if self._persist():
            self.state = reducers.mark_saved(self.state)
        return self.state

    def reset_form(self) -> WizardState:
        """Start over; the saved draft is discarded and pending requests dropped."""
        self._submission.cancel()
        self._ocr.cancel()
        if self.store is not None:
            self.store.clear()
        self.state = reducers.reset_form()
        return self.state

    def _persist(self) -> bool:
        if self.store is None:
            return False
        return self.store.save(self.state) is not None

    # =========================================================================
    # Submission
    # =========================================================================

    def submit_form(self) -> WizardState:
        """
        Normalise, validate, send and interpret.

        No request is sent when the draft does not validate.
        """
        draft, normalization_errors = reducers.normalize_for_submission(self.state.draft)
        self.state = self.state.evolve(draft=draft)
        if normalization_errors:
            self.state = self.state.evolve(
                validation_errors=normalization_errors,
                submit_error=next(iter(normalization_errors.values())),
            )
            return self.state

        errors = reducers.validate_all(draft)
        if errors:
            self.state = self.state.evolve(
                validation_errors=errors,
                submit_error=SUBMIT_VALIDATION_MESSAGE,
                scroll_to_top=True,
            )
            return self.state

        file_errors = reducers.validate_draft_files(draft, self.max_file_bytes)
        if file_errors:
            self.state = self.state.evolve(
                file_errors=file_errors,
                submit_error=FILE_VALIDATION_MESSAGE,
            )
            return self.state

        request = build_submission_request(draft)
        self.state = self.state.evolve(
            is_submitting=True,
            submit_error=None,
            submit_warnings=(),
            validation_errors={},
            login_prompt_url=None,
        )

        signal = self._submission.begin()
        try:
            result = self.api.submit(request, signal)
        except RequestAborted:
            logger.info("Dropped answer of a superseded submission")
            return self.state
        except requests.RequestException as e:
            logger.error("Submission failed: %s", e)
            self.state = self.state.evolve(
                is_submitting=False,
                submit_error=NETWORK_ERROR_MESSAGE,
            )
            return self.state
        finally:
            self._submission.finish(signal)

        self.state = apply_submission_result(self.state, result)
        if self.state.is_confirmation_step and self.store is not None:
            self.store.clear()
        return self.state
