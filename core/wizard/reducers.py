"""
Wizard Reducers - Pure State Transitions

Each function takes a WizardState (or a FormDraft) and returns a new one.
Nothing here touches storage or the network; the controller decides when
to persist and when to call the backend.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from core.supplier.files import client_file_error
from core.supplier.schema import (
    DEFAULT_MAX_FILE_SIZE_BYTES,
    FILE_CATEGORY_KEYS,
    ICE_MAX_DIGITS,
    OTHER_LEGAL_FORM_MESSAGE,
    REQUIRED_STEP_FIELDS,
    SIRET_MAX_LENGTH,
    TRADE_NAME_MAX_LENGTH,
    LegalForm,
)
from core.wizard.state import (
    CONFIRMATION_STEP,
    GATED_STEPS,
    STEPS,
    DraftFile,
    FormDraft,
    WizardState,
)


ICE_TOO_LONG_MESSAGE = f"L'ICE ne peut pas dépasser {ICE_MAX_DIGITS} chiffres"


# =============================================================================
# Field Edits
# =============================================================================


def update_field(state: WizardState, name: str, value: Any) -> WizardState:
    """Set one scalar field. Clears the saved indicator; does not validate."""
    return state.evolve(draft=state.draft.with_field(name, value), is_saved=False)


def add_files(
    state: WizardState,
    category: str,
    files: Iterable[DraftFile],
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> WizardState:
    """
    Append accepted files to a category.

    Refused files are listed as "<name>: <reason>" under the category's
    file errors. When at least one file is accepted the category's previous
    errors are cleared.
    """
    if category not in FILE_CATEGORY_KEYS:
        raise ValueError(f"Unknown file category: {category}")

    errors: list[str] = []
    accepted: list[DraftFile] = []
    for candidate in files:
        error = client_file_error(candidate.name, candidate.size, candidate.mime_type, max_bytes)
        if error:
            errors.append(f"{candidate.name}: {error}")
        else:
            accepted.append(candidate)

    file_errors = dict(state.file_errors)
    if errors:
        file_errors[category] = tuple(errors)

    if not accepted:
        return state.evolve(file_errors=file_errors)

    file_errors.pop(category, None)
    draft = state.draft.with_files(category, state.draft.files[category] + tuple(accepted))
    return state.evolve(draft=draft, file_errors=file_errors, is_saved=False)


def remove_file(state: WizardState, category: str, index: int) -> WizardState:
    """Remove one attachment; no validation is re-run."""
    current = list(state.draft.files.get(category, ()))
    if 0 <= index < len(current):
        del current[index]
    return state.evolve(
        draft=state.draft.with_files(category, tuple(current)),
        is_saved=False,
    )


# =============================================================================
# Validation
# =============================================================================


def validate_step(draft: FormDraft, step_index: int) -> dict[str, str]:
    """
    Required-field check for one step.

    Returns:
        Field name -> message; empty when the step is valid
    """
    errors: dict[str, str] = {}
    for name, message in REQUIRED_STEP_FIELDS.get(step_index, ()):
        if not draft.text(name):
            errors[name] = message

    if step_index == 0:
        if draft.get("formeJuridique") == LegalForm.OTHER.value and not draft.text(
            "formeJuridiqueAutre"
        ):
            errors["formeJuridiqueAutre"] = OTHER_LEGAL_FORM_MESSAGE
    return errors


def validate_all(draft: FormDraft) -> dict[str, str]:
    """Union of the errors of every gated step."""
    errors: dict[str, str] = {}
    for step in GATED_STEPS:
        errors.update(validate_step(draft, step))
    return errors


def validate_draft_files(
    draft: FormDraft,
    max_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
) -> dict[str, tuple[str, ...]]:
    """Re-check every selected file; category -> error lines."""
    errors: dict[str, tuple[str, ...]] = {}
    for category, files in draft.files.items():
        lines = []
        for f in files:
            error = client_file_error(f.name, f.size, f.mime_type, max_bytes)
            if error:
                lines.append(f"{f.name}: {error}")
        if lines:
            errors[category] = tuple(lines)
    return errors


# =============================================================================
# Navigation
# =============================================================================


def go_to_next_step(state: WizardState) -> WizardState:
    """Advance when the current step validates; otherwise store its errors."""
    errors = validate_step(state.draft, state.current_step)
    if errors:
        return state.evolve(validation_errors=errors, scroll_to_top=True)

    if state.current_step >= len(STEPS) - 1:
        return state
    return state.evolve(
        current_step=state.current_step + 1,
        validation_errors={},
        scroll_to_top=True,
    )


def go_to_prev_step(state: WizardState) -> WizardState:
    """Step back; never blocked."""
    if state.current_step <= 0:
        return state
    return state.evolve(current_step=state.current_step - 1, scroll_to_top=True)


def go_to_step(state: WizardState, step_index: int) -> WizardState:
    """Jump to any step; never blocked. Out-of-range indexes are ignored."""
    if not 0 <= step_index < len(STEPS):
        return state
    return state.evolve(current_step=step_index, scroll_to_top=True)


def reset_form() -> WizardState:
    """Fresh, empty wizard."""
    return WizardState(scroll_to_top=True)


def mark_saved(state: WizardState) -> WizardState:
    return state.evolve(is_saved=True)


def scrolled(state: WizardState) -> WizardState:
    """Acknowledge the scroll request."""
    return state.evolve(scroll_to_top=False)


# =============================================================================
# Submission Preparation
# =============================================================================


def effective_legal_form(draft: FormDraft) -> str:
    """The free-text legal form when "other" is selected and filled in."""
    selected = draft.get("formeJuridique") or ""
    if selected == LegalForm.OTHER.value:
        return draft.text("formeJuridiqueAutre") or LegalForm.OTHER.value
    return selected


def normalize_for_submission(draft: FormDraft) -> tuple[FormDraft, dict[str, str]]:
    """
    Apply the CRM's length and character constraints.

    ICE keeps digits only and may not exceed 18 of them; SIRET is cut at 14
    characters and the trade name at 20.

    Returns:
        (normalised draft, field errors)
    """
    changes: dict[str, Any] = {}
    errors: dict[str, str] = {}

    ice = draft.get("ice")
    if ice:
        digits = re.sub(r"\D", "", str(ice))
        if len(digits) > ICE_MAX_DIGITS:
            errors["ice"] = ICE_TOO_LONG_MESSAGE
        elif digits != str(ice):
            changes["ice"] = digits

    siret = draft.get("siret")
    if siret and len(str(siret)) > SIRET_MAX_LENGTH:
        changes["siret"] = str(siret)[:SIRET_MAX_LENGTH]

    trade_name = draft.get("nomCommercial")
    if trade_name and len(str(trade_name)) > TRADE_NAME_MAX_LENGTH:
        changes["nomCommercial"] = str(trade_name)[:TRADE_NAME_MAX_LENGTH]

    if changes:
        draft = draft.with_fields(changes)
    return draft, errors


def confirmation_state(state: WizardState) -> WizardState:
    """State after an unambiguous success."""
    return state.evolve(
        current_step=CONFIRMATION_STEP,
        is_submitting=False,
        submit_error=None,
        submit_warnings=(),
        scroll_to_top=True,
    )
