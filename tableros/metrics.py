"""
Per-process metrics for the four boards.

Counts by estado, priority and responsable, completion rate, and one
kind-specific figure: upcoming vs past for scheduled boards (hearings,
meetings), average duration for ranged boards (deadlines, activities),
and overdue deadlines.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .schema import (
    ACTIVIDADES,
    AUDIENCIAS,
    BOARD_KINDS,
    REUNIONES,
    TERMINOS,
    BoardItem,
    BoardKind,
    Estado,
    Responsable,
)

SECONDS_PER_DAY = 60 * 60 * 24

# kind name -> (start field, end field)
DURATION_FIELDS = {
    TERMINOS.name: ("fecha_inicio_termino", "fecha_finaliza_termino"),
    ACTIVIDADES.name: ("fecha_inicio", "fecha_fin"),
}
SCHEDULED_KINDS = (AUDIENCIAS.name, REUNIONES.name)


@dataclass
class BoardMetrics:
    kind: str
    total: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    by_priority: Dict[str, int] = field(default_factory=dict)
    by_responsable: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    completion_rate: float = 0.0
    upcoming: Optional[int] = None
    past: Optional[int] = None
    avg_duration_days: Optional[float] = None
    expired: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "kind": self.kind,
            "total": self.total,
            "by_status": self.by_status,
            "by_priority": self.by_priority,
            "by_responsable": self.by_responsable,
            "completion_rate": round(self.completion_rate, 2),
        }
        for name in ("upcoming", "past", "avg_duration_days", "expired"):
            value = getattr(self, name)
            if value is not None:
                data[name] = round(value, 2) if isinstance(value, float) else value
        return data


def _as_datetime(value) -> Optional[datetime]:
    """Dates count from midnight UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return None


def compute_metrics(
    kind: BoardKind,
    items: Iterable[BoardItem],
    responsables: Iterable[Responsable] = (),
    now: Optional[datetime] = None,
) -> BoardMetrics:
    """Aggregate one board. Only active responsables are attributed."""
    now = now or datetime.now(timezone.utc)
    names = {r.id: r.nombre_completo for r in responsables}
    m = BoardMetrics(kind=kind.name)

    completed = 0
    total_duration = 0.0
    with_duration = 0
    upcoming = past = expired = 0

    for item in items:
        m.total += 1
        estado = item.estado.value
        m.by_status[estado] = m.by_status.get(estado, 0) + 1

        if item.prioridad:
            pri = item.prioridad.value
            m.by_priority[pri] = m.by_priority.get(pri, 0) + 1

        if item.responsable_id and item.responsable_id in names:
            entry = m.by_responsable.setdefault(
                item.responsable_id,
                {"count": 0, "name": names[item.responsable_id]},
            )
            entry["count"] += 1

        if item.estado == Estado.FINALIZADO:
            completed += 1

        if kind.name in SCHEDULED_KINDS:
            when = _as_datetime(getattr(item, "fecha_hora", None))
            # Unscheduled items count as past
            if when is not None and when > now:
                upcoming += 1
            else:
                past += 1

        if kind.name in DURATION_FIELDS:
            start_name, end_name = DURATION_FIELDS[kind.name]
            start = _as_datetime(getattr(item, start_name, None))
            end = _as_datetime(getattr(item, end_name, None))
            if start and end:
                total_duration += abs((end - start).total_seconds()) / SECONDS_PER_DAY
                with_duration += 1
                if kind.name == TERMINOS.name and end < now and item.estado != Estado.FINALIZADO:
                    expired += 1

    m.completion_rate = (completed / m.total) * 100 if m.total else 0.0

    if kind.name in SCHEDULED_KINDS:
        m.upcoming, m.past = upcoming, past
    if kind.name in DURATION_FIELDS:
        m.avg_duration_days = total_duration / with_duration if with_duration else 0.0
    if kind.name == TERMINOS.name:
        m.expired = expired
    return m


def fetch_process_metrics(store, process_id: str, now: Optional[datetime] = None) -> Dict[str, BoardMetrics]:
    """
    Metrics of every board for one process.

    Raises RemoteReadError if any read fails; callers notify once.
    """
    responsables: List[Responsable] = store.list_active_responsables()
    result = {}
    for kind in BOARD_KINDS.values():
        items = store.table(kind).list(process_id)
        result[kind.name] = compute_metrics(kind, items, responsables, now=now)
    return result
