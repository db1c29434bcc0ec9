#!/usr/bin/env python3
"""
Tableros Server
---------------
JSON API in front of the process boards (audiencias, reuniones, terminos,
actividades) and their metrics. The browser UI renders whatever this
returns; filtering and pagination run here against the in-memory board,
never against the remote store.

Usage:
    export TABLEROS_STORE_URL=https://<project>.example.co
    export TABLEROS_STORE_KEY=...
    export TABLEROS_STORAGE_URL=https://storage.example.com/api
    export TABLEROS_API_SECRET=...
    tableros-server --port 3000

API:
    GET    /api/procesos/<pid>/<tablero>                  → board view
               ?q=&responsable=&fecha=YYYY-MM-DD
               &page_pendiente=&page_en_proceso=&page_finalizado=&refresh=1
    POST   /api/procesos/<pid>/<tablero>                  → create item
    PUT    /api/procesos/<pid>/<tablero>/<item_id>        → edit item
    DELETE /api/procesos/<pid>/<tablero>/<item_id>?confirm=1
    POST   /api/procesos/<pid>/<tablero>/drag             → move card
               { item_id, source, destination, source_index, destination_index }
    GET    /api/procesos/<pid>/<tablero>/<item_id>/archivos
    GET    /api/procesos/<pid>/audiencias/<item_id>/comentarios
    POST   /api/procesos/<pid>/audiencias/<item_id>/comentarios
               { responsable_id, comentario_texto }
    GET    /api/procesos/<pid>/archivos                   → attachable files
    GET    /api/procesos/<pid>/archivos/<file_id>/descarga → { download_url }
    GET    /api/procesos/<pid>/metricas
    GET    /health

Every board response carries the notifications raised while serving it.
"""

import asyncio
import hmac
import logging
import sys
import threading
from functools import wraps
from typing import Dict, Optional, Tuple

from flask import Flask, jsonify, request, abort

from tableros.board import Board
from tableros.config import Config
from tableros.controller import BoardController, DragResult, Notifier
from tableros.errors import MalformedDataError, NotFoundError, TablerosError, ValidationError
from tableros.files import StorageClient
from tableros.filters import FilterCriteria
from tableros.metrics import fetch_process_metrics
from tableros.schema import Estado, get_kind, parse_date
from tableros.store import RecordStore

app = Flask(__name__)
logger = logging.getLogger("tableros")

# Column → query parameter carrying its page
PAGE_PARAMS = {
    Estado.PENDIENTE: "page_pendiente",
    Estado.EN_PROCESO: "page_en_proceso",
    Estado.FINALIZADO: "page_finalizado",
}

# ── State ────────────────────────────────────────────────────────────────────
# One user, one set of mounted boards; lost on restart like any UI state.

_state: Dict[str, object] = {"config": None, "store": None, "storage": None}
_boards: Dict[Tuple[str, str], BoardController] = {}
_boards_lock = threading.RLock()  # guards _boards and first loads


def configure(
    cfg: Optional[Config] = None,
    store: Optional[RecordStore] = None,
    storage: Optional[StorageClient] = None,
) -> None:
    """Install config and clients, unmounting every board."""
    cfg = cfg or Config.load()
    _state["config"] = cfg
    _state["store"] = store or RecordStore.from_config(cfg)
    _state["storage"] = storage or StorageClient.from_config(cfg)
    with _boards_lock:
        for controller in _boards.values():
            controller.detach()
        _boards.clear()


def get_config() -> Config:
    if _state["config"] is None:
        configure()
    return _state["config"]


def get_store() -> RecordStore:
    if _state["store"] is None:
        configure()
    return _state["store"]


def get_storage() -> StorageClient:
    if _state["storage"] is None:
        configure()
    return _state["storage"]


def get_controller(tablero: str, process_id: str, refresh: bool = False) -> BoardController:
    """Mount (or reuse) the board for one process, loading it on first use."""
    try:
        kind = get_kind(tablero)
    except KeyError:
        abort(404, f"Unknown board: {tablero}")

    key = (kind.name, process_id)
    with _boards_lock:
        controller = _boards.get(key)
        if controller is None:
            store = get_store()
            board = Board(kind=kind, process_id=process_id, page_size=get_config().page_size)
            controller = BoardController(
                board,
                store.table(kind),
                notifier=Notifier(),
                responsables_loader=store.list_active_responsables,
            )
            asyncio.run(_load(controller))
            _boards[key] = controller
            return controller

    if refresh:
        asyncio.run(_load(controller))
    return controller


async def _load(controller: BoardController) -> None:
    await asyncio.gather(controller.load(), controller.load_responsables())


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: reject requests without a valid X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_config().api_secret
        if not secret:
            return jsonify({"error": "API secret not set"}), 503
        provided = request.headers.get("X-API-Key", "").strip()
        if not hmac.compare_digest(provided, secret):
            code = 401 if not provided else 403
            return jsonify({"error": "Unauthorized"}), code
        return f(*args, **kwargs)
    return decorated


# ── Helpers ──────────────────────────────────────────────────────────────────


def _board_payload(controller: BoardController) -> dict:
    view = controller.board.view()
    data = view.to_dict()
    data["process_id"] = controller.board.process_id
    data["responsables"] = [
        {"id": r.id, "nombre": r.nombre_completo} for r in controller.responsables
    ]
    data["notifications"] = [n.to_dict() for n in controller.notifier.drain()]
    return data


def _criteria_from_args() -> FilterCriteria:
    fecha = request.args.get("fecha", "").strip()
    if fecha:
        try:
            parse_date(fecha)
        except MalformedDataError:
            abort(400, f"Invalid fecha: {fecha}")
    return FilterCriteria(
        search=request.args.get("q", ""),
        responsable_id=request.args.get("responsable", "").strip(),
        fecha=fecha,
    )


def _page_arg(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        page = int(raw)
    except ValueError:
        abort(400, f"{name} must be an integer")
    if page < 1:
        abort(400, f"{name} must be >= 1")
    return page


# ── Routes ───────────────────────────────────────────────────────────────────


@app.route("/api/procesos/<process_id>/<tablero>", methods=["GET"])
def api_board(process_id, tablero):
    refresh = request.args.get("refresh") in ("1", "true")
    controller = get_controller(tablero, process_id, refresh=refresh)
    board = controller.board

    # New filters put every column back on page 1
    if not board.set_criteria(_criteria_from_args()):
        for estado, param in PAGE_PARAMS.items():
            page = _page_arg(param)
            if page is not None:
                board.set_page(estado, page)

    try:
        return jsonify(_board_payload(controller))
    except TablerosError as e:
        logger.error(f"Cannot render {tablero} for {process_id}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/procesos/<process_id>/<tablero>", methods=["POST"])
@require_api_key
def api_create_item(process_id, tablero):
    controller = get_controller(tablero, process_id)
    data = request.get_json(force=True, silent=True) or {}
    try:
        item = asyncio.run(controller.submit(data))
    except ValidationError as e:
        return jsonify({"errors": e.field_errors}), 422

    notes = [n.to_dict() for n in controller.notifier.drain()]
    if item is None:
        return jsonify({"error": "save failed", "notifications": notes}), 502
    return jsonify({"item": item.to_dict(), "notifications": notes}), 201


@app.route("/api/procesos/<process_id>/<tablero>/<item_id>", methods=["PUT"])
@require_api_key
def api_update_item(process_id, tablero, item_id):
    controller = get_controller(tablero, process_id)
    data = request.get_json(force=True, silent=True) or {}
    try:
        item = asyncio.run(controller.submit(data, item_id=item_id))
    except NotFoundError:
        return jsonify({"error": "Item not found"}), 404
    except ValidationError as e:
        return jsonify({"errors": e.field_errors}), 422

    notes = [n.to_dict() for n in controller.notifier.drain()]
    if item is None:
        return jsonify({"error": "save failed", "notifications": notes}), 502
    return jsonify({"item": item.to_dict(), "notifications": notes})


@app.route("/api/procesos/<process_id>/<tablero>/<item_id>", methods=["DELETE"])
@require_api_key
def api_delete_item(process_id, tablero, item_id):
    controller = get_controller(tablero, process_id)
    confirmed = request.args.get("confirm") in ("1", "true")
    if not confirmed:
        return jsonify({"confirm": controller.confirm_delete_message()}), 409

    deleted = asyncio.run(controller.delete(item_id, confirmed=True))
    notes = [n.to_dict() for n in controller.notifier.drain()]
    return jsonify({"deleted": deleted, "notifications": notes}), (200 if deleted else 502)


@app.route("/api/procesos/<process_id>/<tablero>/drag", methods=["POST"])
@require_api_key
def api_drag(process_id, tablero):
    """Move a card between columns."""
    controller = get_controller(tablero, process_id)
    data = request.get_json(force=True, silent=True) or {}
    try:
        result = DragResult.from_dict(data)
    except (TypeError, ValueError):
        return jsonify({"error": "invalid drag payload"}), 400
    if not result.item_id:
        return jsonify({"error": "item_id is required"}), 400

    moved = asyncio.run(controller.on_drag_end(result))
    payload = _board_payload(controller)
    payload["moved"] = moved
    return jsonify(payload)


@app.route("/api/procesos/<process_id>/<tablero>/<item_id>/archivos")
def api_item_files(process_id, tablero, item_id):
    """Attachments of one card, enriched with size/date/type."""
    controller = get_controller(tablero, process_id)
    try:
        item = controller.board.find(item_id)
    except NotFoundError:
        return jsonify({"error": "Item not found"}), 404

    paths = list(getattr(item, "archivos_adjuntos", None) or [])
    try:
        bucket = get_store().get_bucket_path(process_id)
    except TablerosError as e:
        logger.error(f"Error fetching bucket for {process_id}: {e}")
        return jsonify({"error": "Error al cargar la información del bucket."}), 502
    if not bucket:
        return jsonify({"files": [], "count": 0})

    files = asyncio.run(get_storage().describe_attachments(bucket, paths))
    return jsonify({"files": [f.to_dict() for f in files], "count": len(files)})


@app.route("/api/procesos/<process_id>/audiencias/<item_id>/comentarios", methods=["GET"])
def api_comments(process_id, item_id):
    try:
        comentarios = get_store().list_comentarios(item_id)
    except TablerosError as e:
        logger.error(f"Error fetching comments for {item_id}: {e}")
        return jsonify({"error": "Error al cargar los comentarios."}), 502
    return jsonify({"comentarios": [c.to_dict() for c in comentarios]})


@app.route("/api/procesos/<process_id>/audiencias/<item_id>/comentarios", methods=["POST"])
@require_api_key
def api_add_comment(process_id, item_id):
    data = request.get_json(force=True, silent=True) or {}
    texto = (data.get("comentario_texto") or "").strip()
    responsable_id = (data.get("responsable_id") or "").strip()
    if not texto or not responsable_id:
        return jsonify({"error": "comentario_texto and responsable_id are required"}), 400
    try:
        comentario = get_store().add_comentario(item_id, responsable_id, texto)
    except TablerosError as e:
        logger.error(f"Error adding comment to {item_id}: {e}")
        return jsonify({"error": "Error al guardar el comentario."}), 502
    return jsonify({"comentario": comentario.to_dict()}), 201


@app.route("/api/procesos/<process_id>/archivos")
def api_process_files(process_id):
    """Files that can be attached to a card of this process."""
    try:
        bucket = get_store().get_bucket_path(process_id)
        if not bucket:
            return jsonify({"error": "No se pudo cargar el bucket para este proceso."}), 404
        files = get_storage().selectable_files(bucket)
    except TablerosError as e:
        logger.error(f"Error listing files for {process_id}: {e}")
        return jsonify({"error": "Error al cargar los archivos."}), 502
    return jsonify({"files": [f.to_dict() for f in files], "count": len(files)})


@app.route("/api/procesos/<process_id>/archivos/<path:file_id>/descarga")
def api_download(process_id, file_id):
    try:
        bucket = get_store().get_bucket_path(process_id)
        if not bucket:
            return jsonify({"error": "No se pudo cargar el bucket para este proceso."}), 404
        url = get_storage().download_url(bucket, file_id)
    except TablerosError as e:
        logger.error(f"Error downloading {file_id}: {e}")
        return jsonify({"error": "Error al descargar el archivo."}), 502
    return jsonify({"download_url": url})


@app.route("/api/procesos/<process_id>/metricas")
def api_metrics(process_id):
    try:
        metrics = fetch_process_metrics(get_store(), process_id)
    except TablerosError as e:
        logger.error(f"Error fetching metrics for {process_id}: {e}")
        return jsonify({"error": "Error al cargar las métricas."}), 502
    return jsonify({
        "process_id": process_id,
        "metrics": {name: m.to_dict() for name, m in metrics.items()},
    })


@app.route("/health")
def health():
    return jsonify({"status": "ok", "boards": len(_boards)})


# ── Main ─────────────────────────────────────────────────────────────────────


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Tableros Server")
    parser.add_argument("--host", default="127.0.0.1",
                        help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--config", help="Path to tableros.yaml (overrides TABLEROS_CONFIG)")
    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except TablerosError as e:
        sys.exit(f"Config error: {e}")
    logging.basicConfig(
        level=getattr(logging, str(cfg.log_level).upper(), logging.INFO),
        format="%(asctime)s [tableros] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    try:
        cfg.validate()
    except TablerosError as e:
        logger.error(str(e))
        sys.exit(1)
    configure(cfg)

    logger.info(f"Tableros server on http://{args.host}:{args.port} (store: {cfg.store_url})")
    app.run(host=args.host, port=args.port, debug=False, threaded=True)


if __name__ == "__main__":
    main()
