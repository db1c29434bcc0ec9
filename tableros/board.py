"""
Board view state: status columns and per-column pagination.

    items ─► filter_items ─► partition_by_estado ─► paginate ─► BoardView

Pagination only windows a column; it never drops or reorders items.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, TypeVar

from .errors import MalformedDataError, NotFoundError
from .filters import FilterCriteria, filter_items
from .schema import BoardItem, BoardKind, Estado

PAGE_SIZE = 5

T = TypeVar("T")


def partition_by_estado(items: Sequence[BoardItem]) -> Dict[Estado, List[BoardItem]]:
    """
    Split items into the three columns, keeping relative order.

    Raises MalformedDataError for an item whose estado is not an Estado.
    """
    columns: Dict[Estado, List[BoardItem]] = {estado: [] for estado in Estado}
    for item in items:
        if not isinstance(item.estado, Estado):
            raise MalformedDataError(
                f"Item {item.id} has invalid estado {item.estado!r}"
            )
        columns[item.estado].append(item)
    return columns


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(count / page_size)


def display_total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    """Total pages as shown to the user: an empty column is page 1/1."""
    return max(1, total_pages(count, page_size))


def paginate(seq: Sequence[T], page: int, page_size: int = PAGE_SIZE) -> List[T]:
    """1-based page window; empty past the last page."""
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    start = (page - 1) * page_size
    return list(seq[start:start + page_size])


@dataclass
class ColumnView:
    """One rendered column."""
    estado: Estado
    items: List[BoardItem]
    page: int
    total_pages: int
    count: int

    @property
    def show_paginator(self) -> bool:
        return self.total_pages > 1

    def to_dict(self) -> dict:
        return {
            "estado": self.estado.value,
            "items": [i.to_dict() for i in self.items],
            "page": self.page,
            "total_pages": self.total_pages,
            "count": self.count,
        }


@dataclass
class BoardView:
    kind: BoardKind
    criteria: FilterCriteria
    columns: List[ColumnView]
    filtered_count: int

    def column(self, estado: Estado) -> ColumnView:
        for col in self.columns:
            if col.estado == estado:
                return col
        raise KeyError(estado)

    def to_dict(self) -> dict:
        return {
            "tablero": self.kind.name,
            "filters": {
                "q": self.criteria.search,
                "responsable": self.criteria.responsable_id,
                "fecha": self.criteria.fecha,
            },
            "total": self.filtered_count,
            "columns": [c.to_dict() for c in self.columns],
        }


@dataclass
class Board:
    """
    In-memory state of one board for one process.

    The item list is what the store returned (newest first), mutated in
    place by the controller; criteria and pages are UI state and are lost
    when the board goes away.
    """
    kind: BoardKind
    process_id: str
    items: List[BoardItem] = field(default_factory=list)
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    page_size: int = PAGE_SIZE
    pages: Dict[Estado, int] = field(default_factory=lambda: {e: 1 for e in Estado})

    def find(self, item_id: str) -> BoardItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"{self.kind.noun} {item_id} not on board")

    def replace_items(self, items: List[BoardItem]) -> None:
        self.items = list(items)

    def set_criteria(self, criteria: FilterCriteria) -> bool:
        """Change filters. Pages reset to 1 only if the filters changed."""
        if criteria == self.criteria:
            return False
        self.criteria = criteria
        self.reset_pages()
        return True

    def set_page(self, estado: Estado, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        self.pages[estado] = page

    def reset_pages(self) -> None:
        self.pages = {e: 1 for e in Estado}

    def filtered(self) -> List[BoardItem]:
        return filter_items(self.items, self.criteria, self.kind.date_field)

    def view(self) -> BoardView:
        filtered = self.filtered()
        columns = partition_by_estado(filtered)
        views = []
        for estado, col_items in columns.items():
            page = self.pages.get(estado, 1)
            views.append(ColumnView(
                estado=estado,
                items=paginate(col_items, page, self.page_size),
                page=page,
                total_pages=display_total_pages(len(col_items), self.page_size),
                count=len(col_items),
            ))
        return BoardView(
            kind=self.kind,
            criteria=self.criteria,
            columns=views,
            filtered_count=len(filtered),
        )

    def index_in_column(self, item_id: str) -> Optional[int]:
        """Position of an item within its (filtered) column, or None."""
        for col_items in partition_by_estado(self.filtered()).values():
            for idx, item in enumerate(col_items):
                if item.id == item_id:
                    return idx
        return None
