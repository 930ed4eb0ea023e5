"""
Kanban board state with optimistic moves.

The board keeps a snapshot of server-confirmed cards plus at most one
pending move per card. What the user sees is the snapshot with pending
destinations overlaid, so a card is always in exactly one column. When the
server answers, that single entry is either replaced by the server's card
(commit) or the overlay is dropped (rollback); the rest of the board is
untouched. The only blocking call in `move` is the round-trip to the
lifecycle store, made without holding the board lock.
"""
from __future__ import annotations
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

from changetrack.core.errors import ChangeTrackError, PolicyViolation, ValidationError
from changetrack.models.change import Status
from changetrack.schemas import ChangeOut
from changetrack.utils.policy import explain_transition, parse_status

logger = logging.getLogger(__name__)

BOARD_COLUMNS = (
    Status.PENDING,
    Status.APPROVED,
    Status.IN_PROGRESS,
    Status.COMPLETED,
    Status.REJECTED,
    Status.CANCELLED,
)
# cancellation is a separate action, never a drop
DROP_TARGETS = frozenset(BOARD_COLUMNS) - {Status.CANCELLED}

GENERIC_FAILURE = "Failed to update change status. Please try again."
CONFIRM_COMPLETION = (
    "Are you sure you want to mark this change as completed? "
    "This will notify all stakeholders."
)


class ChangeClient(Protocol):
    def list_changes(self) -> List[ChangeOut]: ...
    def transition(self, change_id: str, status: Union[str, Status], comment: Optional[str] = None) -> ChangeOut: ...


Notify = Callable[[str, str], None]


def _log_notice(level: str, message: str) -> None:
    logger.info("[board:%s] %s", level, message)


class MoveOutcome(str, enum.Enum):
    IGNORED = "ignored"                        # same column, nothing to do
    REJECTED = "rejected"                      # refused before any server call
    NEEDS_CONFIRMATION = "needs_confirmation"  # completion requires confirmed=True
    BUSY = "busy"                              # card already has a move in flight
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    DETACHED = "detached"                      # board closed before the answer arrived


@dataclass
class MoveResult:
    outcome: MoveOutcome
    card: Optional[ChangeOut] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (MoveOutcome.IGNORED, MoveOutcome.COMMITTED)


@dataclass(frozen=True)
class _PendingMove:
    previous: ChangeOut
    destination: Status


class BoardReconciler:
    def __init__(self, client: ChangeClient, notify: Optional[Notify] = None,
                 columns: Iterable[Status] = BOARD_COLUMNS):
        self._client = client
        self._notify = notify if notify is not None else _log_notice
        self.column_order = tuple(columns)
        self._lock = threading.RLock()
        self._snapshot: Dict[str, ChangeOut] = {}
        self._order: List[str] = []
        self._pending: Dict[str, _PendingMove] = {}
        self._closed = False

    # ---- view ----

    def load(self) -> None:
        """Replace the confirmed snapshot with the server's list; pending overlays survive."""
        cards = self._client.list_changes()
        with self._lock:
            if self._closed:
                return
            self._snapshot = {c.id: c for c in cards}
            self._order = [c.id for c in cards]

    def _view(self, change_id: str) -> Optional[ChangeOut]:
        base = self._snapshot.get(change_id)
        if base is None:
            return None
        pending = self._pending.get(change_id)
        if pending is not None:
            return base.model_copy(update={"status": pending.destination})
        return base

    def card(self, change_id: str) -> Optional[ChangeOut]:
        with self._lock:
            return self._view(change_id)

    def columns(self) -> Dict[Status, List[ChangeOut]]:
        with self._lock:
            cols: Dict[Status, List[ChangeOut]] = {s: [] for s in self.column_order}
            for cid in self._order:
                card = self._view(cid)
                if card is not None and card.status in cols:
                    cols[card.status].append(card)
            return cols

    def is_busy(self, change_id: str) -> bool:
        with self._lock:
            return change_id in self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear down the view; in-flight requests finish server-side but are not applied."""
        with self._lock:
            self._closed = True
            self._pending.clear()

    # ---- moves ----

    def move(self, change_id: str, destination: Union[str, Status], confirmed: bool = False,
             comment: Optional[str] = None) -> MoveResult:
        try:
            dest = parse_status(destination)
        except ValidationError as e:
            return self._refuse(None, e.message)

        with self._lock:
            if self._closed:
                return MoveResult(MoveOutcome.DETACHED, None, "board is closed")
            card = self._view(change_id)
            if card is None:
                return self._refuse(None, "Change not found on board")
            if card.status == dest:
                return MoveResult(MoveOutcome.IGNORED, card)
            if change_id in self._pending:
                return MoveResult(MoveOutcome.BUSY, card, "An update for this change is already in progress")

            decision = explain_transition(card.status, dest, card.approved_by is not None)
            if not decision.allowed:
                reason = decision.reason
            elif dest not in DROP_TARGETS:
                reason = f"{dest.value} is not a board action"
            else:
                reason = None
            if reason is None and dest == Status.COMPLETED and not confirmed:
                return MoveResult(MoveOutcome.NEEDS_CONFIRMATION, card, CONFIRM_COMPLETION)
            if reason is None:
                self._pending[change_id] = _PendingMove(previous=card, destination=dest)

        if reason is not None:
            return self._refuse(card, reason)

        try:
            updated = self._client.transition(change_id, dest, comment)
        except ChangeTrackError as e:
            return self._rollback(change_id, e)
        except Exception:
            self._rollback(change_id, None)
            raise
        return self._commit(change_id, updated)

    def _refuse(self, card: Optional[ChangeOut], reason: str) -> MoveResult:
        self._notify("error", reason)
        return MoveResult(MoveOutcome.REJECTED, card, reason)

    def _commit(self, change_id: str, updated: ChangeOut) -> MoveResult:
        with self._lock:
            self._pending.pop(change_id, None)
            if self._closed:
                return MoveResult(MoveOutcome.DETACHED, updated)
            if change_id not in self._snapshot:
                self._order.append(change_id)
            self._snapshot[change_id] = updated
        self._notify("success", "Change status updated successfully")
        return MoveResult(MoveOutcome.COMMITTED, updated)

    def _rollback(self, change_id: str, error: Optional[ChangeTrackError]) -> MoveResult:
        with self._lock:
            pending = self._pending.pop(change_id, None)
            if self._closed:
                return MoveResult(MoveOutcome.DETACHED, None, error.message if error else None)
            restored = self._view(change_id) or (pending.previous if pending else None)

        message = error.message if isinstance(error, PolicyViolation) else GENERIC_FAILURE
        logger.info("rolled back move of change=%s: %s", change_id, error.message if error else "client error")
        self._notify("error", message)
        return MoveResult(MoveOutcome.ROLLED_BACK, restored, message)
