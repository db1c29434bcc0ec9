"""
Client-side board filtering.

Runs on every keystroke against the list already in memory: no network
calls, no mutation of the input list.
"""
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .schema import BoardItem, parse_date, utc_day


def fold(text: Optional[str]) -> str:
    """Unicode-aware caseless form ("AUDIENCIA", "Audiencia" → "audiencia")."""
    return unicodedata.normalize("NFC", text or "").casefold()


@dataclass(frozen=True)
class FilterCriteria:
    """Search box, responsable dropdown and date picker. Empty = no filter."""
    search: str = ""
    responsable_id: str = ""
    fecha: str = ""  # YYYY-MM-DD

    def is_empty(self) -> bool:
        return not (self.search or self.responsable_id or self.fecha)


def matches(item: BoardItem, criteria: FilterCriteria, date_field: str) -> bool:
    """True if the item satisfies every non-empty predicate."""
    if criteria.search and fold(criteria.search) not in fold(item.search_text()):
        return False

    if criteria.responsable_id and item.responsable_id != criteria.responsable_id:
        return False

    if criteria.fecha:
        day = utc_day(getattr(item, date_field, None))
        if day is None or day != parse_date(criteria.fecha):
            return False

    return True


def filter_items(
    items: Iterable[BoardItem],
    criteria: FilterCriteria,
    date_field: str,
) -> List[BoardItem]:
    """Subset of items matching criteria, in their original order."""
    if criteria.is_empty():
        return list(items)
    return [item for item in items if matches(item, criteria, date_field)]
