"""
Tests for the board pipeline: schema, filtering, status columns, pagination.
"""
from datetime import date, datetime, timezone

import pytest

from tableros.board import (
    Board,
    display_total_pages,
    paginate,
    partition_by_estado,
    total_pages,
)
from tableros.errors import MalformedDataError, NotFoundError
from tableros.filters import FilterCriteria, filter_items
from tableros.schema import (
    ACTIVIDADES,
    AUDIENCIAS,
    TERMINOS,
    Actividad,
    Audiencia,
    Estado,
    Prioridad,
    Termino,
    get_kind,
    parse_timestamp,
    utc_day,
)


def audiencia(i, descripcion="Audiencia", estado=Estado.PENDIENTE, **kw):
    return Audiencia(
        id=str(i), process_id="P-1", descripcion=descripcion, estado=estado, **kw
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Schema Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_audiencia_from_dict():
    """Store rows become typed items"""
    item = Audiencia.from_dict({
        "id": 7,
        "process_id": "P-1",
        "descripcion": "Audiencia inicial",
        "estado": "En Proceso",
        "prioridad": "Alta",
        "fecha_hora": "2024-03-01T14:30:00Z",
        "fecha_creacion": "2024-02-20T09:00:00+00:00",
        "archivos_adjuntos": ["docs/acta.pdf"],
        "unknown_column": "ignored",
    })
    assert item.id == "7"
    assert item.estado == Estado.EN_PROCESO
    assert item.prioridad == Prioridad.ALTA
    assert item.fecha_hora == datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc)
    assert item.archivos_adjuntos == ["docs/acta.pdf"]
    assert item.created_at == datetime(2024, 2, 20, 9, 0, tzinfo=timezone.utc)


def test_unknown_estado_is_malformed():
    """An estado outside the three columns is surfaced, never coerced"""
    with pytest.raises(MalformedDataError):
        Audiencia.from_dict({"id": "1", "estado": "Archivado"})


def test_unknown_prioridad_is_dropped():
    item = Audiencia.from_dict({"id": "1", "estado": "Pendiente", "prioridad": "Urgente"})
    assert item.prioridad is None


def test_termino_dates_serialize_as_days():
    item = Termino.from_dict({
        "id": "1",
        "estado": "Pendiente",
        "fecha_inicio_termino": "2024-03-01",
        "fecha_finaliza_termino": "2024-03-15",
    })
    assert item.fecha_inicio_termino == date(2024, 3, 1)
    data = item.to_dict()
    assert data["fecha_finaliza_termino"] == "2024-03-15"
    assert data["estado"] == "Pendiente"


def test_actividad_uses_fecha_registro_and_nombre():
    item = Actividad.from_dict({
        "id": "1",
        "estado": "Finalizado",
        "nombre": "Revisar expediente",
        "fecha_registro": "2024-01-02T00:00:00Z",
    })
    assert item.title == "Revisar expediente"
    assert ACTIVIDADES.created_field == "fecha_registro"
    assert item.created_at.year == 2024


def test_timestamps_with_short_fractions():
    item = Audiencia.from_dict({
        "id": "1", "estado": "Pendiente",
        "fecha_hora": "2024-03-01T14:30:00.12+00:00",
        "fecha_creacion": "2024-02-20 09:00:00.1234567",
    })
    assert item.fecha_hora == datetime(2024, 3, 1, 14, 30, 0, 120000, tzinfo=timezone.utc)
    assert item.fecha_creacion.microsecond == 123456


def test_unparseable_dates_are_malformed():
    with pytest.raises(MalformedDataError):
        Audiencia.from_dict({"id": "1", "estado": "Pendiente", "fecha_hora": "01/03/2024 10:00"})
    with pytest.raises(MalformedDataError):
        Termino.from_dict({"id": "1", "estado": "Pendiente", "fecha_inicio_termino": "2024-02-31"})
    with pytest.raises(MalformedDataError):
        parse_timestamp(1709303400)


def test_get_kind():
    assert get_kind("terminos") is TERMINOS
    with pytest.raises(KeyError):
        get_kind("tareas")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Filter Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_empty_criteria_is_identity():
    items = [audiencia(1), audiencia(2, estado=Estado.FINALIZADO)]
    result = filter_items(items, FilterCriteria(), "fecha_hora")
    assert result == items
    assert result is not items


def test_search_is_case_insensitive():
    items = [
        audiencia(1, "Audiencia inicial"),
        audiencia(2, "reunion semanal"),
    ]
    result = filter_items(items, FilterCriteria(search="audiencia"), "fecha_hora")
    assert [i.id for i in result] == ["1"]


def test_search_folds_unicode():
    items = [audiencia(1, "ACTUACIÓN del juzgado"), audiencia(2, "Otra")]
    result = filter_items(items, FilterCriteria(search="actuación"), "fecha_hora")
    assert [i.id for i in result] == ["1"]

    items = [audiencia(3, "Straße"), audiencia(4, "Calle")]
    result = filter_items(items, FilterCriteria(search="STRASSE"), "fecha_hora")
    assert [i.id for i in result] == ["3"]


def test_responsable_filter_is_exact():
    items = [
        audiencia(1, responsable_id="R-1"),
        audiencia(2, responsable_id="R-10"),
        audiencia(3),
    ]
    result = filter_items(items, FilterCriteria(responsable_id="R-1"), "fecha_hora")
    assert [i.id for i in result] == ["1"]


def test_date_filter_matches_utc_day():
    hit = audiencia(1, fecha_hora=datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc))
    miss = audiencia(2, fecha_hora=datetime(2024, 3, 2, 0, 0, 1, tzinfo=timezone.utc))
    undated = audiencia(3)
    result = filter_items([hit, miss, undated], FilterCriteria(fecha="2024-03-01"), "fecha_hora")
    assert [i.id for i in result] == ["1"]


def test_date_filter_projects_offsets_to_utc():
    # 23:30 at UTC-5 is already the next day in UTC
    item = Audiencia.from_dict({
        "id": "1", "estado": "Pendiente", "fecha_hora": "2024-03-01T23:30:00-05:00",
    })
    assert utc_day(item.fecha_hora) == date(2024, 3, 2)
    assert filter_items([item], FilterCriteria(fecha="2024-03-01"), "fecha_hora") == []


def test_predicates_combine():
    items = [
        audiencia(1, "Audiencia A", responsable_id="R-1"),
        audiencia(2, "Audiencia B", responsable_id="R-2"),
        audiencia(3, "Reunión", responsable_id="R-1"),
    ]
    criteria = FilterCriteria(search="audiencia", responsable_id="R-1")
    assert [i.id for i in filter_items(items, criteria, "fecha_hora")] == ["1"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Partition Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_partition_keeps_order_and_every_item():
    estados = [Estado.PENDIENTE, Estado.FINALIZADO, Estado.PENDIENTE,
               Estado.EN_PROCESO, Estado.FINALIZADO, Estado.PENDIENTE]
    items = [audiencia(i, estado=e) for i, e in enumerate(estados)]

    columns = partition_by_estado(items)
    assert list(columns) == [Estado.PENDIENTE, Estado.EN_PROCESO, Estado.FINALIZADO]
    assert [i.id for i in columns[Estado.PENDIENTE]] == ["0", "2", "5"]
    assert [i.id for i in columns[Estado.EN_PROCESO]] == ["3"]
    assert [i.id for i in columns[Estado.FINALIZADO]] == ["1", "4"]

    flattened = [i for col in columns.values() for i in col]
    assert sorted(i.id for i in flattened) == sorted(i.id for i in items)
    for estado, col in columns.items():
        assert all(i.estado == estado for i in col)


def test_partition_empty_list_has_three_columns():
    columns = partition_by_estado([])
    assert len(columns) == 3
    assert all(col == [] for col in columns.values())


def test_partition_rejects_malformed_estado():
    item = audiencia(1)
    item.estado = "Archivado"
    with pytest.raises(MalformedDataError):
        partition_by_estado([item])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pagination Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_paginate_twelve_pending_items():
    """12 items, page size 5: 1-5, 6-10, 11-12, then nothing"""
    items = [audiencia(i) for i in range(1, 13)]
    assert [i.id for i in paginate(items, 1, 5)] == ["1", "2", "3", "4", "5"]
    assert [i.id for i in paginate(items, 3, 5)] == ["11", "12"]
    assert paginate(items, 4, 5) == []
    assert total_pages(len(items), 5) == 3


def test_pages_reconstruct_sequence():
    for n in (0, 1, 4, 5, 6, 10, 23):
        seq = list(range(n))
        rebuilt = []
        for page in range(1, total_pages(n, 5) + 1):
            rebuilt.extend(paginate(seq, page, 5))
        assert rebuilt == seq


def test_display_total_pages_never_zero():
    assert total_pages(0) == 0
    assert display_total_pages(0) == 1
    assert display_total_pages(6) == 2


def test_paginate_rejects_page_zero():
    with pytest.raises(ValueError):
        paginate([1, 2, 3], 0)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board State Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def make_board(n=12):
    board = Board(kind=AUDIENCIAS, process_id="P-1")
    board.replace_items([audiencia(i, f"Audiencia {i}") for i in range(1, n + 1)])
    return board


def test_board_view_columns():
    board = make_board()
    board.items[0].estado = Estado.FINALIZADO
    view = board.view()

    pendientes = view.column(Estado.PENDIENTE)
    assert pendientes.count == 11
    assert pendientes.total_pages == 3
    assert len(pendientes.items) == 5
    assert pendientes.show_paginator

    finalizados = view.column(Estado.FINALIZADO)
    assert [i.id for i in finalizados.items] == ["1"]
    assert finalizados.total_pages == 1
    assert not finalizados.show_paginator

    assert view.column(Estado.EN_PROCESO).items == []


def test_board_page_change_keeps_filters():
    board = make_board()
    board.set_page(Estado.PENDIENTE, 3)
    view = board.view()
    assert [i.id for i in view.column(Estado.PENDIENTE).items] == ["11", "12"]


def test_filter_change_resets_pages():
    board = make_board()
    board.set_page(Estado.PENDIENTE, 3)
    board.set_page(Estado.FINALIZADO, 2)

    assert board.set_criteria(FilterCriteria(search="audiencia 1"))
    assert board.pages == {e: 1 for e in Estado}

    # Same filters again: pagination state is left alone
    board.set_page(Estado.PENDIENTE, 2)
    assert not board.set_criteria(FilterCriteria(search="audiencia 1"))
    assert board.pages[Estado.PENDIENTE] == 2


def test_page_past_end_is_empty():
    board = make_board(3)
    board.set_page(Estado.PENDIENTE, 4)
    assert board.view().column(Estado.PENDIENTE).items == []


def test_board_find():
    board = make_board(2)
    assert board.find("2").descripcion == "Audiencia 2"
    with pytest.raises(NotFoundError):
        board.find("99")


def test_index_in_column():
    board = make_board(3)
    board.items[1].estado = Estado.EN_PROCESO
    assert board.index_in_column("3") == 1
    assert board.index_in_column("2") == 0
    assert board.index_in_column("99") is None
