"""
Tests for create/edit form validation.
"""
import pytest

from tableros.errors import ValidationError
from tableros.forms import (
    MSG_ADJUNTOS,
    MSG_DESCRIPCION,
    MSG_FECHA_INVALIDA,
    MSG_NOMBRE,
    MSG_RANGO,
    validate_form,
)
from tableros.schema import ACTIVIDADES, AUDIENCIAS, REUNIONES, TERMINOS


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Form Validation Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_form_defaults_and_cleanup():
    payload = validate_form(REUNIONES, {
        "id": "should-go",
        "fecha_creacion": "2020-01-01",
        "descripcion": "  Reunión con cliente ",
        "fecha_hora": "2024-03-01T14:30",
        "responsable_id": "",
        "link": " ",
        "extra": "ignored",
    }, process_id="P-1")

    assert payload == {
        "process_id": "P-1",
        "descripcion": "Reunión con cliente",
        "fecha_hora": "2024-03-01T14:30:00Z",
        "estado": "Pendiente",
        "prioridad": "Media",
        "responsable_id": None,
        "link": None,
    }


def test_form_requires_descripcion_and_fecha_hora():
    with pytest.raises(ValidationError) as exc:
        validate_form(AUDIENCIAS, {"descripcion": ""}, process_id="P-1")
    errors = exc.value.field_errors
    assert errors["descripcion"] == MSG_DESCRIPCION
    assert errors["fecha_hora"] == "La fecha y hora de la audiencia es obligatoria"


def test_form_rejects_inverted_range():
    with pytest.raises(ValidationError) as exc:
        validate_form(ACTIVIDADES, {
            "nombre": "",
            "fecha_inicio": "2024-03-02T10:00",
            "fecha_fin": "2024-03-01T10:00",
        }, process_id="P-1")
    assert exc.value.field_errors == {"nombre": MSG_NOMBRE, "fecha_fin": MSG_RANGO}


def test_form_accepts_same_day_range():
    payload = validate_form(TERMINOS, {
        "descripcion": "Recurso",
        "fecha_inicio_termino": "2024-03-01",
        "fecha_finaliza_termino": "2024-03-01",
    }, process_id="P-1")
    assert payload["fecha_finaliza_termino"] == "2024-03-01"


def test_form_rejects_unknown_estado_and_bad_date():
    with pytest.raises(ValidationError) as exc:
        validate_form(TERMINOS, {
            "descripcion": "x", "estado": "Archivado", "fecha_inicio_termino": "31/02/2024",
        }, process_id="P-1")
    assert set(exc.value.field_errors) == {"estado", "fecha_inicio_termino"}


def test_form_requires_process():
    with pytest.raises(ValidationError) as exc:
        validate_form(TERMINOS, {"descripcion": "x"})
    assert "process_id" in exc.value.field_errors


def test_form_keeps_attachments_as_list():
    payload = validate_form(ACTIVIDADES, {"nombre": "Archivo"}, process_id="P-1")
    assert payload["archivos_adjuntos"] == []
    assert payload["descripcion"] is None


def test_form_rejects_non_text_required_fields():
    with pytest.raises(ValidationError) as exc:
        validate_form(AUDIENCIAS, {"descripcion": 5, "fecha_hora": 1709303400},
                      process_id="P-1")
    assert exc.value.field_errors == {
        "descripcion": MSG_DESCRIPCION,
        "fecha_hora": MSG_FECHA_INVALIDA,
    }

    with pytest.raises(ValidationError) as exc:
        validate_form(ACTIVIDADES, {"nombre": ["x"], "fecha_inicio": True}, process_id="P-1")
    assert exc.value.field_errors == {
        "nombre": MSG_NOMBRE,
        "fecha_inicio": MSG_FECHA_INVALIDA,
    }


def test_form_rejects_malformed_attachments():
    with pytest.raises(ValidationError) as exc:
        validate_form(AUDIENCIAS, {
            "descripcion": "A", "fecha_hora": "2024-03-01T10:00", "archivos_adjuntos": "acta.pdf",
        }, process_id="P-1")
    assert exc.value.field_errors == {"archivos_adjuntos": MSG_ADJUNTOS}
