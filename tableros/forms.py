"""
Create/edit form validation.

Errors are returned per field, with the messages shown under each input.
Submission is blocked until the form is valid.
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from .errors import MalformedDataError, ValidationError
from .schema import (
    ACTIVIDADES,
    BoardKind,
    Estado,
    Prioridad,
    format_timestamp,
    parse_date,
    parse_timestamp,
)

MSG_DESCRIPCION = "La descripción es obligatoria"
MSG_NOMBRE = "El nombre es obligatorio"
MSG_FECHA_HORA = "La fecha y hora de la {noun} es obligatoria"
MSG_FECHA_INVALIDA = "Fecha inválida"
MSG_RANGO = "La fecha de fin no puede ser anterior a la fecha de inicio"
MSG_ESTADO = "Estado inválido"
MSG_ADJUNTOS = "Archivos adjuntos inválidos"

# Optional text fields that become NULL when left blank
_OPTIONAL_BLANKS = ("responsable_id", "link")

# (start, end, parser) per kind with a date range
_RANGES = {
    "terminos": ("fecha_inicio_termino", "fecha_finaliza_termino", parse_date),
    "actividades": ("fecha_inicio", "fecha_fin", parse_timestamp),
}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> Optional[str]:
    """Stripped text, or None when blank or not text at all."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _serialize(value):
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def validate_form(kind: BoardKind, data: Dict[str, Any], process_id: str = "") -> Dict[str, Any]:
    """
    Validate and clean a create/edit payload.

    Returns:
        dict ready for the store (ISO dates, None for empty optionals,
        estado/prioridad defaults applied). id and the creation timestamp
        are never part of the payload.

    Raises:
        ValidationError with field_errors on failure.
    """
    errors: Dict[str, str] = {}
    allowed = {f for f in kind.item_cls.__dataclass_fields__}
    allowed.discard("id")
    allowed.discard(kind.created_field)
    cleaned = {k: v for k, v in data.items() if k in allowed}

    if process_id:
        cleaned["process_id"] = process_id
    if _blank(cleaned.get("process_id")):
        errors["process_id"] = "El proceso es obligatorio"

    # ── Required text ──
    if kind.name == ACTIVIDADES.name:
        cleaned["nombre"] = _text(cleaned.get("nombre"))
        if cleaned["nombre"] is None:
            errors["nombre"] = MSG_NOMBRE
        cleaned["descripcion"] = _text(cleaned.get("descripcion"))
    else:
        cleaned["descripcion"] = _text(cleaned.get("descripcion"))
        if cleaned["descripcion"] is None:
            errors["descripcion"] = MSG_DESCRIPCION

    # ── Enumerations ──
    try:
        cleaned["estado"] = Estado.from_str(cleaned.get("estado") or Estado.PENDIENTE).value
    except MalformedDataError:
        errors["estado"] = MSG_ESTADO
    prioridad = Prioridad.from_str(cleaned.get("prioridad") or Prioridad.MEDIA)
    cleaned["prioridad"] = (prioridad or Prioridad.MEDIA).value

    for name in _OPTIONAL_BLANKS:
        if name in cleaned and _blank(cleaned[name]):
            cleaned[name] = None

    # ── Scheduled time (hearings, meetings) ──
    if "fecha_hora" in kind.item_cls.DATETIME_FIELDS:
        if _blank(cleaned.get("fecha_hora")):
            errors["fecha_hora"] = MSG_FECHA_HORA.format(noun=kind.noun)
        else:
            try:
                cleaned["fecha_hora"] = parse_timestamp(cleaned["fecha_hora"])
            except MalformedDataError:
                errors["fecha_hora"] = MSG_FECHA_INVALIDA

    # ── Date ranges (deadlines, activities) ──
    if kind.name in _RANGES:
        start_name, end_name, parser = _RANGES[kind.name]
        parsed = {}
        for name in (start_name, end_name):
            if _blank(cleaned.get(name)):
                cleaned[name] = None
                continue
            try:
                parsed[name] = cleaned[name] = parser(cleaned[name])
            except MalformedDataError:
                errors[name] = MSG_FECHA_INVALIDA
        if len(parsed) == 2 and parsed[start_name] > parsed[end_name]:
            errors[end_name] = MSG_RANGO

    if "archivos_adjuntos" in allowed:
        adjuntos = cleaned.get("archivos_adjuntos") or []
        if isinstance(adjuntos, (list, tuple)) and all(isinstance(p, str) for p in adjuntos):
            cleaned["archivos_adjuntos"] = list(adjuntos)
        else:
            errors["archivos_adjuntos"] = MSG_ADJUNTOS

    if errors:
        raise ValidationError(errors)

    return {k: _serialize(v) for k, v in cleaned.items()}
