"""
Draft Storage - Local Persistence of Wizard Progress

Plays the role of the browser's local storage: one JSON document per
session key holding the scalar fields, the current step and a timestamp.
Attachments are never written; a restored draft always has empty file
categories.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Optional

from core.supplier.schema import FILE_CATEGORY_KEYS
from core.wizard.state import CONFIRMATION_STEP, FormDraft, WizardState


logger = logging.getLogger(__name__)


STORAGE_KEY: Final[str] = "supplierFormState"


class DraftStore:
    """
    JSON file persistence for wizard drafts.

    Drafts are stored as {storage_root}/{session_key}.json.
    """

    def __init__(self, storage_root: str, session_key: str = STORAGE_KEY):
        self._root = Path(storage_root)
        self._session_key = re.sub(r"[^A-Za-z0-9_.-]", "_", session_key) or STORAGE_KEY

    @property
    def path(self) -> Path:
        return self._root / f"{self._session_key}.json"

    def save(self, state: WizardState) -> Optional[str]:
        """
        Persist the scalar fields and the current step.

        Returns:
            The savedAt timestamp, or None when the write failed
        """
        form_data = state.draft.scalars()
        for key in FILE_CATEGORY_KEYS:
            form_data[key] = []

        saved_at = datetime.now(timezone.utc).isoformat()
        document = {
            "formData": form_data,
            "currentStep": state.current_step,
            "savedAt": saved_at,
        }
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, ensure_ascii=False, indent=2))
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not save draft %s: %s", self.path, e)
            return None
        return saved_at

    def load(self) -> Optional[WizardState]:
        """Restore a saved draft; None when nothing (readable) is stored."""
        if not self.path.exists():
            return None
        try:
            document = json.loads(self.path.read_text())
            form_data = document.get("formData") or {}
            step = int(document.get("currentStep") or 0)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not load draft %s: %s", self.path, e)
            return None

        if not 0 <= step < CONFIRMATION_STEP:
            step = 0
        return WizardState(draft=FormDraft.from_scalars(form_data), current_step=step)

    def saved_at(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text()).get("savedAt")
        except (OSError, ValueError, AttributeError):
            return None

    def clear(self) -> None:
        """Discard the saved draft."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not clear draft %s: %s", self.path, e)
