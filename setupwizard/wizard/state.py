"""
Wizard Session State

Key/value session store with change notification and JSON persistence.
Every other component reads and writes the wizard session through here.
"""

import copy
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import OwnershipError

logger = logging.getLogger(__name__)


class NavigationPath(str, Enum):
    """Branch tag selecting which steps are active."""
    UNSET = "unset"
    TEMPLATE = "template"
    CUSTOM = "custom"


# Fields only the navigation controller may write.
NAVIGATION_FIELDS = frozenset({
    "current_step",
    "navigation_history",
    "navigation_path",
    "visible_steps",
})

Listener = Callable[..., None]


class WizardSession:
    """
    Manages wizard session state with optional file persistence.

    State is saved to ~/.setupwizard/wizard_state.json unless another
    state file is given. Passing ``state_file=None`` with
    ``persist=False`` keeps the session in memory only.
    """

    DEFAULT_STATE_DIR = Path.home() / ".setupwizard"
    STATE_FILENAME = "wizard_state.json"

    def __init__(self, state_file: Optional[Path] = None, persist: bool = True):
        """
        Initialize the session.

        Args:
            state_file: JSON file backing the session
            persist: Whether changes are written to the state file
        """
        if persist and state_file is None:
            state_file = self._get_state_dir() / self.STATE_FILENAME
        self.state_file = state_file if persist else None

        self._state: Dict[str, Any] = self.initial_state()
        self._listeners: Dict[str, List[Listener]] = {}
        self._navigation_token: Optional[object] = None

    @classmethod
    def _get_state_dir(cls) -> Path:
        """Get state directory from environment or default."""
        env_dir = os.environ.get("SETUPWIZARD_STATE_DIR")
        if env_dir:
            return Path(env_dir)
        return cls.DEFAULT_STATE_DIR

    @staticmethod
    def initial_state() -> Dict[str, Any]:
        """Get the initial state structure."""
        return {
            "current_step": 1,
            "navigation_path": NavigationPath.UNSET.value,
            "navigation_history": [],
            "visible_steps": [],
            "selected_profiles": [],
            "selected_template": None,
            "template_applied": False,
            "custom_setup": False,
            "configuration": {},
            "system_check": None,
            "installation_phase": None,
            "installation_complete": False,
            "background_tasks": [],
            "services": [],
            "version_history": [],
            "checkpoints": [],
        }

    # ============================================================
    # Ownership
    # ============================================================

    def claim_navigation(self) -> object:
        """
        Claim the writer token for navigation-owned fields.

        Only one component may hold it for the lifetime of the session.
        """
        if self._navigation_token is not None:
            raise OwnershipError("Navigation fields are already owned by another controller")
        self._navigation_token = object()
        return self._navigation_token

    def _check_writer(self, key: str, writer: Optional[object]) -> None:
        if key in NAVIGATION_FIELDS and (writer is None or writer is not self._navigation_token):
            raise OwnershipError(f"Field '{key}' may only be written by the navigation controller")

    # ============================================================
    # Store contract
    # ============================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a copy of a state value."""
        return copy.deepcopy(self._state.get(key, default))

    def set(self, key: str, value: Any, writer: Optional[object] = None) -> None:
        """Set a state value and notify subscribers."""
        self._check_writer(key, writer)
        self._state[key] = copy.deepcopy(value)
        self.save()
        self._notify(key, self.get(key))

    def update(self, key: str, updates: Dict[str, Any], writer: Optional[object] = None) -> None:
        """Merge a mapping into a dict-valued state entry."""
        self._check_writer(key, writer)
        current = self._state.get(key)
        if current is None:
            current = {}
        if not isinstance(current, dict):
            raise TypeError(f"Cannot update non-mapping state key '{key}'")
        merged = dict(current)
        merged.update(copy.deepcopy(updates))
        self._state[key] = merged
        self.save()
        self._notify(key, self.get(key))

    def remove(self, key: str, writer: Optional[object] = None) -> None:
        """Delete a state key if present."""
        self._check_writer(key, writer)
        if key in self._state:
            del self._state[key]
            self.save()
            self._notify(key, None)

    def clear(self) -> None:
        """Reset to the initial state and delete the state file."""
        self._state = self.initial_state()
        if self.state_file is not None and self.state_file.exists():
            self.state_file.unlink()
        self._notify("reset", self.get_state())

    def subscribe(self, key: str, callback: Listener) -> Callable[[], None]:
        """
        Subscribe to changes of a key, or "all" for every change.

        "all" listeners receive ``(key, value)``; others receive ``value``.

        Returns:
            Function that removes the subscription
        """
        self._listeners.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._listeners.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _notify(self, key: str, value: Any) -> None:
        for callback in list(self._listeners.get(key, [])):
            callback(value)
        for callback in list(self._listeners.get("all", [])):
            callback(key, value)

    def get_state(self) -> Dict[str, Any]:
        """Get a copy of the entire state."""
        return copy.deepcopy(self._state)

    # ============================================================
    # Typed accessors
    # ============================================================

    @property
    def current_step(self) -> int:
        return int(self._state.get("current_step", 1))

    @property
    def navigation_path(self) -> NavigationPath:
        return NavigationPath(self._state.get("navigation_path") or NavigationPath.UNSET.value)

    @property
    def navigation_history(self) -> List[int]:
        return list(self._state.get("navigation_history") or [])

    @property
    def selected_profiles(self) -> List[str]:
        return list(self._state.get("selected_profiles") or [])

    @property
    def configuration(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state.get("configuration") or {})

    @property
    def selected_template(self) -> Optional[str]:
        return self._state.get("selected_template")

    @property
    def template_applied(self) -> bool:
        return self._state.get("template_applied") is True

    @property
    def custom_setup(self) -> bool:
        return self._state.get("custom_setup") is True

    @property
    def system_check(self) -> Optional[Dict[str, Any]]:
        return self.get("system_check")

    @property
    def installation_phase(self) -> Optional[str]:
        return self._state.get("installation_phase")

    @property
    def installation_complete(self) -> bool:
        return bool(self._state.get("installation_complete"))

    @property
    def background_tasks(self) -> List[Any]:
        return self.get("background_tasks") or []

    @property
    def services(self) -> List[Dict[str, Any]]:
        return self.get("services") or []

    @property
    def version_history(self) -> List[Dict[str, Any]]:
        return self.get("version_history") or []

    @property
    def checkpoints(self) -> List[Dict[str, Any]]:
        return self.get("checkpoints") or []

    @property
    def visible_steps(self) -> List[Dict[str, Any]]:
        return self.get("visible_steps") or []

    # ============================================================
    # Persistence
    # ============================================================

    def to_dict(self) -> Dict[str, Any]:
        """Convert state to dictionary for serialization."""
        return self.get_state()

    def save(self) -> None:
        """Save state to disk."""
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w") as f:
            json.dump(self._state, f, indent=2)

    def load(self) -> bool:
        """
        Load state from disk.

        Returns:
            True if state was loaded successfully, False otherwise.
        """
        if self.state_file is None or not self.state_file.exists():
            return False

        try:
            with open(self.state_file, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load session state from %s: %s", self.state_file, e)
            return False

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed session state in %s", self.state_file)
            return False

        # Merge with initial state so every key exists
        state = self.initial_state()
        state.update(data)
        self._state = state
        return True

    def has_saved_state(self) -> bool:
        """Check if there's a saved session on disk."""
        return self.state_file is not None and self.state_file.exists()
