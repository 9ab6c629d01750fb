"""JSON persistence of the last published quote.

The store keeps a small JSON object on disk and writes the latest quote
under a fixed key. At start-up the stored quote is rendered as a
provisional value until the first fetch completes.

Reads are forgiving: a missing, corrupt or outdated file simply means
there is no provisional value. Writes go through a temporary file that
atomically replaces the original.
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from config.settings import GlobalConfig, get_config
from carttracker.exceptions import StateStoreError
from carttracker.logger import get_logger
from carttracker.validator import QuoteUpdate

log = get_logger(__name__)


class QuoteStore:
    """Key-value file store for the last published QuoteUpdate.

    Attributes:
        config: GlobalConfig with the state path and key.

    Example:
        store = QuoteStore()
        publisher.subscribe(store.save, name="state-store")
        provisional = store.load()
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()

    @property
    def path(self) -> Path:
        return self.config.state_path

    @property
    def key(self) -> str:
        return self.config.state_key

    def _read_state(self) -> dict[str, Any] | None:
        """Load the whole state object, or None if it is absent or unreadable."""
        if not self.path.exists():
            log.debug("No stored quote state found", path=str(self.path))
            return None

        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            log.warning(
                "Corrupted quote state file, starting fresh",
                path=str(self.path),
                error=str(exc),
            )
            return None
        except OSError as exc:
            log.warning(
                "Failed to read quote state, starting fresh",
                path=str(self.path),
                error=str(exc),
            )
            return None

        if not isinstance(state, dict):
            log.warning("Invalid quote state structure, starting fresh", path=str(self.path))
            return None

        return state

    def load(self) -> QuoteUpdate | None:
        """Return the stored quote, if a valid one exists."""
        state = self._read_state()
        if state is None or self.key not in state:
            return None

        try:
            update = QuoteUpdate.model_validate(state[self.key])
        except ValidationError as exc:
            log.warning(
                "Stored quote failed validation, ignoring it",
                path=str(self.path),
                key=self.key,
                errors=exc.error_count(),
            )
            return None

        log.info("Loaded stored quote", symbol=update.symbol, price=update.price)
        return update

    def save(self, update: QuoteUpdate) -> Path:
        """Persist ``update`` under the configured key, keeping other keys.

        Returns:
            Path to the state file.

        Raises:
            StateStoreError: If the file cannot be written.
        """
        state = self._read_state() or {}
        state[self.key] = update.model_dump(mode="json")

        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(state, indent=2), encoding="utf-8")
            os.replace(temp_path, self.path)
        except OSError as exc:
            raise StateStoreError(path=str(self.path), reason=str(exc)) from exc

        log.debug("Quote state saved", path=str(self.path), key=self.key)
        return self.path
