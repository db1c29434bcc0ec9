"""
Board controller: drag transitions and CRUD against the record store.

Every mutation follows the same shape as a drag between columns:

    validate ─► update in-memory board ─► one remote call ─► notify

Remote failures never propagate out of the controller: they are logged,
turned into one error notification, and the board stays usable. A failed
drag is rolled back to the estado the item had before the drop.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .board import Board
from .errors import MalformedDataError, NotFoundError, TablerosError
from .forms import validate_form
from .schema import BoardItem, BoardKind, Estado, Responsable

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Notifications
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Notification:
    """One transient, dismissible message for the user."""
    level: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "message": self.message, "timestamp": self.timestamp}


class Notifier:
    """Fans notifications out to subscribers (toasts, logs, API responses)."""

    def __init__(self):
        self.subscribers: Dict[str, list] = {}  # level -> list of callbacks
        self.history: List[Notification] = []

    def subscribe(self, level: str, callback: Callable[[Notification], None]) -> None:
        """Register a callback for a level ("success" or "error")."""
        self.subscribers.setdefault(level, []).append(callback)

    def _emit(self, level: str, message: str) -> Notification:
        note = Notification(level=level, message=message)
        self.history.append(note)
        for callback in self.subscribers.get(level, []):
            try:
                callback(note)
            except Exception as e:
                logger.warning(f"Error in {level} notification callback: {e}")
        return note

    def success(self, message: str) -> Notification:
        return self._emit(SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self._emit(ERROR, message)

    def drain(self) -> List[Notification]:
        """Return and forget everything emitted so far."""
        notes, self.history = self.history, []
        return notes


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Drag gesture
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class DragResult:
    """
    End of a drag gesture.

    Column ids are estado values ("Pendiente", "En Proceso", "Finalizado").
    destination is None when the card was dropped outside every column.
    """
    item_id: str
    source: str
    destination: Optional[str]
    source_index: int = 0
    destination_index: int = 0

    def is_noop(self) -> bool:
        if self.destination is None:
            return True
        return (
            self.destination == self.source
            and self.destination_index == self.source_index
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DragResult":
        return cls(
            item_id=str(data.get("item_id") or data.get("draggable_id") or ""),
            source=data.get("source") or "",
            destination=data.get("destination") or None,
            source_index=int(data.get("source_index") or 0),
            destination_index=int(data.get("destination_index") or 0),
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Controller
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardController:
    """
    Orchestrates one mounted board.

    table is anything with the list/insert/update/delete capability
    (see store.TableStore). Its calls are blocking and run off the event
    loop, so the board stays responsive while a request is in flight.
    Concurrent mutations are not serialized: last write wins.
    """

    def __init__(
        self,
        board: Board,
        table,
        notifier: Optional[Notifier] = None,
        responsables_loader: Optional[Callable[[], List[Responsable]]] = None,
    ):
        self.board = board
        self.table = table
        self.notifier = notifier or Notifier()
        self.responsables_loader = responsables_loader
        self.responsables: List[Responsable] = []
        self._attached = True
        self._load_token = 0
        self._drag_tokens: Dict[str, int] = {}  # item_id -> latest drag
        self._saved_estados: Dict[str, Estado] = {}  # item_id -> last persisted, while drags are in flight
        self._in_flight: Dict[str, int] = {}  # item_id -> pending drag writes

    @property
    def kind(self) -> BoardKind:
        return self.board.kind

    @property
    def attached(self) -> bool:
        return self._attached

    def detach(self) -> None:
        """Board unmounted: responses still in flight are dropped."""
        self._attached = False

    async def _call(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    # ── Loading ──────────────────────────────────────────────────────────

    async def load(self) -> bool:
        """Fetch the process items. Returns True if the board was refreshed."""
        self._load_token += 1
        token = self._load_token
        try:
            items = await self._call(self.table.list, self.board.process_id)
        except TablerosError as e:
            if not self._attached:
                return False
            logger.error(f"Error fetching {self.kind.table}: {e}")
            self.notifier.error(
                f"Error al cargar {self.kind.plural_article} {self.kind.plural}."
            )
            return False

        if not self._attached or token != self._load_token:
            return False
        self.board.replace_items(items)
        return True

    async def load_responsables(self) -> bool:
        if self.responsables_loader is None:
            return False
        try:
            responsables = await self._call(self.responsables_loader)
        except TablerosError as e:
            if not self._attached:
                return False
            logger.error(f"Error fetching responsables: {e}")
            self.notifier.error("Error al cargar los responsables.")
            return False
        if not self._attached:
            return False
        self.responsables = list(responsables)
        return True

    def get_responsable(self, responsable_id: Optional[str]) -> Optional[Responsable]:
        if not responsable_id:
            return None
        for r in self.responsables:
            if r.id == responsable_id:
                return r
        return None

    # ── Drag and drop ────────────────────────────────────────────────────

    async def on_drag_end(self, result: DragResult) -> bool:
        """
        Move a card to the destination column.

        Returns True when the new estado was persisted. Dropping a card
        where it started writes nothing.
        """
        if result.is_noop():
            return False

        try:
            item = self.board.find(result.item_id)
        except NotFoundError as e:
            logger.debug(f"Ignoring drag: {e}")
            return False

        try:
            new_estado = Estado.from_str(result.destination)
        except MalformedDataError as e:
            logger.error(f"Rejected drop on unknown column: {e}")
            self.notifier.error(f"Error al actualizar {self.kind.article} {self.kind.noun}.")
            return False

        # Only the first of overlapping drags sees the persisted estado
        self._saved_estados.setdefault(item.id, item.estado)
        self._in_flight[item.id] = self._in_flight.get(item.id, 0) + 1
        item.estado = new_estado
        token = self._drag_tokens.get(item.id, 0) + 1
        self._drag_tokens[item.id] = token

        try:
            await self._call(self.table.update, item.id, {"estado": new_estado.value})
        except TablerosError as e:
            saved = self._finish_drag(item.id)
            if not self._attached:
                return False
            logger.error(f"Error updating {self.kind.noun} {item.id}: {e}")
            # A newer drag of the same card owns its estado now
            if self._drag_tokens.get(item.id) == token:
                item.estado = saved
            self.notifier.error(f"Error al actualizar {self.kind.article} {self.kind.noun}.")
            return False

        self._saved_estados[item.id] = new_estado
        self._finish_drag(item.id)
        if not self._attached:
            return False
        self.notifier.success(
            f"{self.kind.label} {self.kind.participle('movid')} a {new_estado.value}"
        )
        return True

    def _finish_drag(self, item_id: str) -> Estado:
        """One drag write resolved. Returns the last persisted estado."""
        saved = self._saved_estados[item_id]
        self._in_flight[item_id] -= 1
        if not self._in_flight[item_id]:
            del self._in_flight[item_id]
            del self._saved_estados[item_id]
        return saved

    # ── Create / edit / delete ───────────────────────────────────────────

    async def submit(
        self, form_data: Dict[str, Any], item_id: Optional[str] = None
    ) -> Optional[BoardItem]:
        """
        Create (item_id None) or fully update an item from form data.

        Raises ValidationError before any remote call when the form is
        invalid, and NotFoundError when editing an item not on the board.
        Returns the saved item, or None if the store rejected it.
        """
        editing = self.board.find(item_id) if item_id else None
        payload = validate_form(self.kind, form_data, process_id=self.board.process_id)

        try:
            if editing is not None:
                await self._call(self.table.update, editing.id, payload)
            else:
                created = await self._call(self.table.insert, payload)
        except TablerosError as e:
            if not self._attached:
                return None
            logger.error(f"Error saving {self.kind.noun}: {e}")
            self.notifier.error(
                f"Error al guardar {self.kind.article} {self.kind.noun}: {e}"
            )
            return None

        if not self._attached:
            return None

        if editing is not None:
            merged = {**editing.to_dict(), **payload, "id": editing.id}
            saved = self.kind.item_from_dict(merged)
            self.board.items = [saved if i.id == editing.id else i for i in self.board.items]
            self.notifier.success(
                f"{self.kind.label} {self.kind.participle('actualizad')} correctamente."
            )
        else:
            saved = created
            self.board.items.insert(0, saved)
            self.notifier.success(
                f"{self.kind.label} {self.kind.participle('cread')} correctamente."
            )
        return saved

    def confirm_delete_message(self) -> str:
        return (
            f"¿Estás seguro de que quieres eliminar "
            f"{self.kind.demonstrative} {self.kind.noun}?"
        )

    async def delete(self, item_id: str, confirmed: bool = False) -> bool:
        """Delete after the user confirmed. Irreversible."""
        if not confirmed:
            return False
        try:
            await self._call(self.table.delete, item_id)
        except TablerosError as e:
            if not self._attached:
                return False
            logger.error(f"Error deleting {self.kind.noun} {item_id}: {e}")
            self.notifier.error(f"Error al eliminar {self.kind.article} {self.kind.noun}.")
            return False

        if not self._attached:
            return False
        self.board.items = [i for i in self.board.items if i.id != item_id]
        self.notifier.success(
            f"{self.kind.label} {self.kind.participle('eliminad')} correctamente."
        )
        return True
