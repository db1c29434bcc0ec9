"""
Record store backend (hosted relational store over HTTP).

Speaks the PostgREST dialect: one URL per table, equality filters as
``column=eq.value`` query params, ``order=column.desc``. Only the four
capabilities the boards need are exposed per table: list, insert,
update-by-id and delete-by-id.
"""
import logging
from typing import List, Optional, Dict, Any

import requests

from .errors import RemoteReadError, RemoteWriteError
from .schema import BoardItem, BoardKind, Responsable, ComentarioAudiencia

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response) -> str:
    """Best-effort human message from an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error") or body.get("hint")
        if msg:
            return str(msg)
    return response.text.strip() or response.reason or f"HTTP {response.status_code}"


class RecordStore:
    """HTTP client for the remote record store."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    @classmethod
    def from_config(cls, cfg) -> "RecordStore":
        return cls(cfg.store_url, api_key=cfg.store_key, timeout=cfg.http_timeout)

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    # ── Raw table operations ─────────────────────────────────────────────

    def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """Select rows matching every equality filter."""
        params = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"

        try:
            r = self.session.get(self._url(table), params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteReadError(f"Error reading {table}: {e}")
        if not r.ok:
            raise RemoteReadError(
                f"Error reading {table}: {_error_message(r)}", status_code=r.status_code
            )
        try:
            rows = r.json()
        except ValueError:
            raise RemoteReadError(f"Error reading {table}: response is not JSON")
        if not isinstance(rows, list):
            raise RemoteReadError(f"Error reading {table}: expected a list of rows")
        return rows

    def insert(self, table: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored (with id and timestamps)."""
        try:
            r = self.session.post(
                self._url(table),
                json=payload,
                headers={"Prefer": "return=representation"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteWriteError(f"Error inserting into {table}: {e}")
        if not r.ok:
            raise RemoteWriteError(
                f"Error inserting into {table}: {_error_message(r)}",
                status_code=r.status_code,
            )
        try:
            rows = r.json()
        except ValueError:
            raise RemoteWriteError(f"Error inserting into {table}: response is not JSON")
        if isinstance(rows, dict):
            return rows
        if not rows:
            raise RemoteWriteError(f"Error inserting into {table}: no row returned")
        return rows[0]

    def update(self, table: str, row_id: str, payload: Dict[str, Any]) -> None:
        """Update columns of one row. Last write wins."""
        try:
            r = self.session.patch(
                self._url(table),
                params={"id": f"eq.{row_id}"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteWriteError(f"Error updating {table} {row_id}: {e}")
        if not r.ok:
            raise RemoteWriteError(
                f"Error updating {table} {row_id}: {_error_message(r)}",
                status_code=r.status_code,
            )

    def delete(self, table: str, row_id: str) -> None:
        """Delete one row. Irreversible."""
        try:
            r = self.session.delete(
                self._url(table),
                params={"id": f"eq.{row_id}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteWriteError(f"Error deleting {table} {row_id}: {e}")
        if not r.ok:
            raise RemoteWriteError(
                f"Error deleting {table} {row_id}: {_error_message(r)}",
                status_code=r.status_code,
            )

    # ── Supporting reads ─────────────────────────────────────────────────

    def list_active_responsables(self) -> List[Responsable]:
        rows = self.select(
            "responsables", filters={"estado": "Activo"}, order="nombre"
        )
        return [Responsable.from_dict(r) for r in rows]

    def get_bucket_path(self, process_id: str) -> Optional[str]:
        """Object storage bucket that holds the process documents."""
        rows = self.select(
            "procesos", filters={"id": process_id}, columns="bucket_path"
        )
        if not rows:
            return None
        return rows[0].get("bucket_path") or None

    def list_comentarios(self, audiencia_id: str) -> List[ComentarioAudiencia]:
        rows = self.select(
            "comentarios_audiencia",
            filters={"audiencia_id": audiencia_id},
            order="fecha_creacion",
        )
        return [ComentarioAudiencia.from_dict(r) for r in rows]

    def add_comentario(
        self, audiencia_id: str, responsable_id: str, texto: str
    ) -> ComentarioAudiencia:
        row = self.insert("comentarios_audiencia", {
            "audiencia_id": audiencia_id,
            "responsable_id": responsable_id,
            "comentario_texto": texto,
        })
        return ComentarioAudiencia.from_dict(row)

    def table(self, kind: BoardKind) -> "TableStore":
        return TableStore(self, kind)


class TableStore:
    """
    The {list, insert, update, delete} capability for one board kind.

    Rows come back as the kind's item class.
    """

    def __init__(self, store: RecordStore, kind: BoardKind):
        self.store = store
        self.kind = kind

    def list(self, process_id: str) -> List[BoardItem]:
        """Items of one process, newest first. MalformedDataError on bad estado."""
        rows = self.store.select(
            self.kind.table,
            filters={"process_id": process_id},
            order=self.kind.created_field,
            descending=True,
        )
        return [self.kind.item_from_dict(r) for r in rows]

    def insert(self, payload: Dict[str, Any]) -> BoardItem:
        row = self.store.insert(self.kind.table, payload)
        return self.kind.item_from_dict(row)

    def update(self, item_id: str, partial: Dict[str, Any]) -> None:
        self.store.update(self.kind.table, item_id, partial)

    def delete(self, item_id: str) -> None:
        self.store.delete(self.kind.table, item_id)
