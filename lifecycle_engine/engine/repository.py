"""
Lifecycle Repository for the Lifecycle Engine.

Stores lifecycles and provides version-guarded persistence. Every save
re-runs the status aggregator and returns the domain events raised by
the committed state.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from ..exceptions import ConcurrentModificationError, LifecycleConflictError, LifecycleNotFoundError
from ..models import Lifecycle, LifecycleType, TimelineEntry, utcnow
from .aggregator import recompute_status
from .events import DomainEvent

logger = logging.getLogger(__name__)


class SaveResult(NamedTuple):
    lifecycle: Lifecycle
    events: List[DomainEvent]
    new_entries: List[TimelineEntry]


class LifecycleRepository:
    """
    Stores lifecycle aggregates.

    Provides in-memory storage with optional JSON file persistence. Callers
    always receive copies: a lifecycle is loaded, modified and saved back as a
    whole, and a save is rejected when the stored version moved on since the
    copy was loaded.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the repository.

        Args:
            storage_path: Path to store lifecycles as JSON.
                          If None, lifecycles are kept in memory only.
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self._lifecycles: Dict[str, Lifecycle] = {}
        self._lock = threading.RLock()

        if self.storage_path:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_state()

        logger.info(
            f"Initialized LifecycleRepository with {'persistent' if self.storage_path else 'in-memory'} storage"
        )

    def get(self, lifecycle_id: str) -> Optional[Lifecycle]:
        """
        Get a copy of a lifecycle.

        Args:
            lifecycle_id: Lifecycle ID to look up

        Returns:
            Lifecycle if found, None otherwise
        """
        with self._lock:
            stored = self._lifecycles.get(lifecycle_id)
            return stored.model_copy(deep=True) if stored else None

    def load(self, lifecycle_id: str) -> Lifecycle:
        """Get a copy of a lifecycle, raising LifecycleNotFoundError if missing."""
        lifecycle = self.get(lifecycle_id)
        if lifecycle is None:
            raise LifecycleNotFoundError("Lifecycle not found")
        return lifecycle

    def find_active(self, employee_id: str, lifecycle_type: LifecycleType) -> Optional[Lifecycle]:
        """Get the Initiated/In Progress lifecycle of a type for an employee, if any."""
        with self._lock:
            stored = self._find_active(employee_id, lifecycle_type)
            return stored.model_copy(deep=True) if stored else None

    def find_by_employee_and_type(self, employee_id: str, lifecycle_type: LifecycleType) -> Optional[Lifecycle]:
        """Get the most recently created lifecycle of a type for an employee."""
        with self._lock:
            matches = [
                lc for lc in self._lifecycles.values()
                if lc.employee_id == employee_id and lc.type == lifecycle_type
            ]
            if not matches:
                return None
            latest = max(matches, key=lambda lc: lc.created_at)
            return latest.model_copy(deep=True)

    def all(self) -> List[Lifecycle]:
        """Get copies of all lifecycles."""
        with self._lock:
            return [lc.model_copy(deep=True) for lc in self._lifecycles.values()]

    def add(self, lifecycle: Lifecycle) -> SaveResult:
        """
        Insert a new lifecycle.

        The active-lifecycle check and the insert happen under one lock, so at
        most one Initiated/In Progress lifecycle exists per employee and type.

        Raises:
            LifecycleConflictError: if the lifecycle is active and another active
                lifecycle of the same type exists for the employee, or the ID is taken
        """
        with self._lock:
            if lifecycle.id in self._lifecycles:
                raise LifecycleConflictError(f"Lifecycle {lifecycle.id} already exists", lifecycle.id)
            self._check_active_conflict(lifecycle)

            candidate = lifecycle.model_copy(deep=True)
            candidate.version = 1
            events = recompute_status(candidate)

            self._lifecycles[candidate.id] = candidate
            self._save_state()

            logger.info(f"Added {candidate.type.value} lifecycle {candidate.id} for employee {candidate.employee_id}")
            return SaveResult(candidate.model_copy(deep=True), events, list(candidate.timeline))

    def save(self, lifecycle: Lifecycle) -> SaveResult:
        """
        Persist a modified lifecycle.

        The status aggregator runs on the candidate state before it is stored;
        the returned events belong to the committed version only.

        Args:
            lifecycle: Modified copy obtained from get/load

        Returns:
            SaveResult with the stored copy and raised events

        Raises:
            LifecycleNotFoundError: if the lifecycle was never added
            ConcurrentModificationError: if the stored version differs
            LifecycleConflictError: if the save would create a second active
                lifecycle of the same type for the employee
        """
        with self._lock:
            stored = self._lifecycles.get(lifecycle.id)
            if stored is None:
                raise LifecycleNotFoundError("Lifecycle not found")

            if stored.version != lifecycle.version:
                logger.warning(
                    f"Rejected stale save of lifecycle {lifecycle.id}: "
                    f"version {lifecycle.version} != {stored.version}"
                )
                raise ConcurrentModificationError(lifecycle.id, lifecycle.version, stored.version)

            self._check_active_conflict(lifecycle)

            candidate = lifecycle.model_copy(deep=True)
            candidate.version = stored.version + 1
            candidate.updated_at = utcnow()
            events = recompute_status(candidate)

            self._lifecycles[candidate.id] = candidate
            self._save_state()

            logger.debug(f"Saved lifecycle {candidate.id} at version {candidate.version}")
            new_entries = list(candidate.timeline[len(stored.timeline):])
            return SaveResult(candidate.model_copy(deep=True), events, new_entries)

    def update(
        self,
        lifecycle_id: str,
        mutate: Callable[[Lifecycle], Any],
        max_retries: int = 3,
    ) -> Tuple[SaveResult, Any]:
        """
        Load, modify and save a lifecycle, retrying on concurrent modification.

        ``mutate`` is re-applied to a freshly loaded copy on every attempt and
        may raise to abort without saving.

        Args:
            lifecycle_id: Lifecycle to update
            mutate: Function applying the change; its return value is passed back
            max_retries: Number of attempts before giving up

        Returns:
            Tuple of the SaveResult and the value returned by ``mutate``

        Raises:
            ConcurrentModificationError: if every attempt lost a race
        """
        attempts = max(1, max_retries)
        for attempt in range(1, attempts + 1):
            lifecycle = self.load(lifecycle_id)
            value = mutate(lifecycle)
            try:
                return self.save(lifecycle), value
            except ConcurrentModificationError:
                if attempt == attempts:
                    raise
                logger.info(f"Retrying update of lifecycle {lifecycle_id} (attempt {attempt + 1}/{attempts})")
        raise AssertionError("unreachable")

    def _find_active(self, employee_id: str, lifecycle_type: LifecycleType) -> Optional[Lifecycle]:
        for lc in self._lifecycles.values():
            if lc.employee_id == employee_id and lc.type == lifecycle_type and lc.is_active:
                return lc
        return None

    def _check_active_conflict(self, lifecycle: Lifecycle):
        if not lifecycle.is_active:
            return
        existing = self._find_active(lifecycle.employee_id, lifecycle.type)
        if existing and existing.id != lifecycle.id:
            raise LifecycleConflictError(
                "Employee already has an active lifecycle of this type", existing.id
            )

    def _save_state(self):
        """Save current state to persistent storage."""
        if not self.storage_path:
            return

        state_data = {
            "lifecycles": {
                lc_id: lc.model_dump(mode="json") for lc_id, lc in self._lifecycles.items()
            },
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

        tmp_path = self.storage_path.with_suffix(self.storage_path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(state_data, f, indent=2)
            tmp_path.replace(self.storage_path)
        except OSError as e:
            logger.error(f"Failed to save state to {self.storage_path}: {e}")
            raise

    def _load_state(self):
        """Load state from persistent storage."""
        if not self.storage_path or not self.storage_path.exists():
            return

        try:
            with open(self.storage_path, encoding="utf-8") as f:
                state_data = json.load(f)

            for lc_id, lc_data in state_data.get("lifecycles", {}).items():
                self._lifecycles[lc_id] = Lifecycle.model_validate(lc_data)

            logger.info(
                f"Loaded {len(self._lifecycles)} lifecycles from {self.storage_path}"
            )

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load state from {self.storage_path}: {e}")
            # Continue with empty state if load fails
            self._lifecycles = {}
