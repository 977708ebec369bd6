"""Lab state file recording what setup has done.

The state file lets later commands (validate, status, cleanup) find the
lab's resources without repeating every flag. It persists:
- The resolved settings used by the last setup run
- Each completed setup step with a timestamp

The file is plain, pretty-printed JSON so it can be inspected by hand.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = ".fluxlab-state.json"


class LabState:
    """Persistent record of a lab's setup progress.

    Example:
        >>> state = LabState(".fluxlab-state.json")
        >>> state.record_settings(settings.to_dict())
        >>> state.record_step("resource-group", "created")
        >>> state.completed_steps()
        ['resource-group']
    """

    def __init__(self, file_path: Optional[str] = DEFAULT_STATE_FILE):
        """Initialize lab state.

        Args:
            file_path: Path to JSON file for persistence (None disables persistence)
        """
        self.file_path = file_path
        self.settings: Dict[str, Any] = {}
        self.steps: List[Dict[str, Any]] = []

        if file_path and Path(file_path).exists():
            self.load()

    def record_settings(self, settings: Dict[str, Any]) -> None:
        self.settings = dict(settings)
        self.save()

    def record_step(self, step: str, outcome: str) -> None:
        """Record a finished setup step.

        Args:
            step: Step key, e.g. "cluster"
            outcome: "created", "skipped" or "requested"
        """
        self.steps = [s for s in self.steps if s.get("step") != step]
        self.steps.append({
            "step": step,
            "outcome": outcome,
            "at": datetime.now().isoformat(),
        })
        self.save()

    def completed_steps(self) -> List[str]:
        return [s["step"] for s in self.steps]

    def save(self) -> None:
        """Persist state to JSON file."""
        if not self.file_path:
            return

        data = {
            "version": "1.0",
            "settings": self.settings,
            "steps": self.steps,
        }
        Path(self.file_path).write_text(json.dumps(data, indent=2, sort_keys=True))
        logger.debug(f"Saved lab state to {self.file_path}")

    def load(self) -> None:
        """Load state from JSON file."""
        if not self.file_path:
            return

        try:
            data = json.loads(Path(self.file_path).read_text())
            self.settings = data.get("settings", {})
            self.steps = data.get("steps", [])
            logger.info(f"Loaded lab state from {self.file_path} ({len(self.steps)} steps)")
        except Exception as e:
            logger.error(f"Failed to load lab state: {e}")
            self.settings = {}
            self.steps = []

    def clear(self) -> None:
        """Forget everything and remove the state file."""
        self.settings = {}
        self.steps = []
        if self.file_path:
            path = Path(self.file_path)
            if path.exists():
                path.unlink()
                logger.info(f"Removed lab state file {self.file_path}")
