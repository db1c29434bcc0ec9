"""
Board item schema.

Every board (audiencias, reuniones, terminos, actividades) shows the same
kind of card: a record scoped to one process with a three-valued estado.

  Pendiente ⇄ En Proceso ⇄ Finalizado

Any column accepts a drop from any other column; there is no terminal state.
"""
import re
from enum import Enum
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Type

from .errors import MalformedDataError


class Estado(Enum):
    """Board columns, in display order."""
    PENDIENTE = "Pendiente"
    EN_PROCESO = "En Proceso"
    FINALIZADO = "Finalizado"

    @classmethod
    def from_str(cls, value: Any) -> "Estado":
        if isinstance(value, Estado):
            return value
        try:
            return cls(value)
        except ValueError:
            raise MalformedDataError(f"Invalid estado: {value!r}")


class Prioridad(Enum):
    """Display-only priority (color coding)."""
    ALTA = "Alta"
    MEDIA = "Media"
    BAJA = "Baja"

    @classmethod
    def from_str(cls, value: Any) -> Optional["Prioridad"]:
        if isinstance(value, Prioridad):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# ── Timestamp helpers ────────────────────────────────────────────────────────


# Fractional seconds of any length; fromisoformat on 3.10 wants 3 or 6 digits
_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def _pad_fraction(match) -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO timestamp from the store. Naive values are taken as UTC.

    Raises MalformedDataError when the value is not a timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(_pad_fraction, text.replace(" ", "T", 1))
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise MalformedDataError(f"Invalid timestamp: {value!r}") from e
    else:
        raise MalformedDataError(f"Invalid timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_date(value: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD date (or the date part of a timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise MalformedDataError(f"Invalid date: {value!r}")
    text = value.strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError as e:
            raise MalformedDataError(f"Invalid date: {value!r}") from e
    return parse_timestamp(text).date()


def utc_day(value: Any) -> Optional[date]:
    """Calendar day of a timestamp, projected to UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value).astimezone(timezone.utc).date()


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ── Records ──────────────────────────────────────────────────────────────────


@dataclass
class BoardItem:
    """Fields shared by every card, whatever the board."""

    id: str = ""
    process_id: str = ""
    descripcion: str = ""
    estado: Estado = Estado.PENDIENTE
    prioridad: Optional[Prioridad] = None
    responsable_id: Optional[str] = None

    # Field names converted on the way in and out of the store
    DATETIME_FIELDS = ()
    DATE_FIELDS = ()
    CREATED_FIELD = "fecha_creacion"

    @property
    def title(self) -> str:
        return self.descripcion

    @property
    def created_at(self) -> Optional[datetime]:
        return getattr(self, self.CREATED_FIELD, None)

    def search_text(self) -> str:
        """Text matched by the free-text search box."""
        return self.descripcion or ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a store row."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif f.name in self.DATETIME_FIELDS:
                value = format_timestamp(value)
            elif f.name in self.DATE_FIELDS:
                value = value.isoformat() if value else None
            elif isinstance(value, list):
                value = list(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardItem":
        """
        Deserialize a store row.

        Raises MalformedDataError when estado is outside the three columns
        or a date column does not parse.
        Unknown keys are ignored.
        """
        kwargs = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name == "estado":
                value = Estado.from_str(value)
            elif f.name == "prioridad":
                value = Prioridad.from_str(value) if value else None
            elif f.name in cls.DATETIME_FIELDS:
                value = parse_timestamp(value)
            elif f.name in cls.DATE_FIELDS:
                value = parse_date(value)
            elif f.name == "archivos_adjuntos":
                value = list(value or [])
            elif f.name in ("id", "process_id") and value is not None:
                value = str(value)
            kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class Audiencia(BoardItem):
    """Hearing."""
    link: Optional[str] = None
    fecha_hora: Optional[datetime] = None
    fecha_creacion: Optional[datetime] = None
    archivos_adjuntos: List[str] = field(default_factory=list)

    DATETIME_FIELDS = ("fecha_hora", "fecha_creacion")


@dataclass
class Reunion(BoardItem):
    """Meeting."""
    link: Optional[str] = None
    fecha_hora: Optional[datetime] = None
    fecha_creacion: Optional[datetime] = None

    DATETIME_FIELDS = ("fecha_hora", "fecha_creacion")


@dataclass
class Termino(BoardItem):
    """Legal deadline, a date range."""
    fecha_inicio_termino: Optional[date] = None
    fecha_finaliza_termino: Optional[date] = None
    fecha_creacion: Optional[datetime] = None

    DATETIME_FIELDS = ("fecha_creacion",)
    DATE_FIELDS = ("fecha_inicio_termino", "fecha_finaliza_termino")


@dataclass
class Actividad(BoardItem):
    """Activity. Titled by nombre; descripcion is optional."""
    nombre: str = ""
    fecha_inicio: Optional[datetime] = None
    fecha_fin: Optional[datetime] = None
    fecha_registro: Optional[datetime] = None
    archivos_adjuntos: List[str] = field(default_factory=list)

    DATETIME_FIELDS = ("fecha_inicio", "fecha_fin", "fecha_registro")
    CREATED_FIELD = "fecha_registro"

    @property
    def title(self) -> str:
        return self.nombre or self.descripcion

    def search_text(self) -> str:
        return f"{self.nombre or ''} {self.descripcion or ''}"


@dataclass
class Responsable:
    """Person who can be assigned to a card."""
    id: str
    nombre: str = ""
    apellido: str = ""
    estado: str = "Activo"

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Responsable":
        return cls(
            id=str(data.get("id", "")),
            nombre=data.get("nombre") or "",
            apellido=data.get("apellido") or "",
            estado=data.get("estado") or "Activo",
        )


@dataclass
class ComentarioAudiencia:
    """Comment left on a hearing."""
    id: str
    audiencia_id: str
    responsable_id: str
    comentario_texto: str
    fecha_creacion: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComentarioAudiencia":
        return cls(
            id=str(data.get("id", "")),
            audiencia_id=str(data.get("audiencia_id", "")),
            responsable_id=str(data.get("responsable_id", "")),
            comentario_texto=data.get("comentario_texto") or "",
            fecha_creacion=parse_timestamp(data.get("fecha_creacion")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "audiencia_id": self.audiencia_id,
            "responsable_id": self.responsable_id,
            "comentario_texto": self.comentario_texto,
            "fecha_creacion": format_timestamp(self.fecha_creacion),
        }


# ── Board kinds ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BoardKind:
    """
    One board type: which table backs it, which class its rows become,
    and which timestamp the date filter looks at.
    """
    name: str
    table: str
    item_cls: Type[BoardItem]
    date_field: str
    label: str            # "Audiencia"
    noun: str             # "audiencia"
    plural: str           # "audiencias"
    feminine: bool = True

    @property
    def created_field(self) -> str:
        return self.item_cls.CREATED_FIELD

    @property
    def article(self) -> str:
        return "la" if self.feminine else "el"

    @property
    def plural_article(self) -> str:
        return "las" if self.feminine else "los"

    @property
    def demonstrative(self) -> str:
        return "esta" if self.feminine else "este"

    def participle(self, stem: str) -> str:
        """'cread' -> 'creada' / 'creado'."""
        return stem + ("a" if self.feminine else "o")

    def item_from_dict(self, data: Dict[str, Any]) -> BoardItem:
        return self.item_cls.from_dict(data)


AUDIENCIAS = BoardKind(
    name="audiencias", table="audiencias", item_cls=Audiencia,
    date_field="fecha_hora", label="Audiencia", noun="audiencia",
    plural="audiencias",
)
REUNIONES = BoardKind(
    name="reuniones", table="reuniones", item_cls=Reunion,
    date_field="fecha_hora", label="Reunión", noun="reunión",
    plural="reuniones",
)
TERMINOS = BoardKind(
    name="terminos", table="terminos", item_cls=Termino,
    date_field="fecha_creacion", label="Término", noun="término",
    plural="términos", feminine=False,
)
ACTIVIDADES = BoardKind(
    name="actividades", table="actividades", item_cls=Actividad,
    date_field="fecha_inicio", label="Actividad", noun="actividad",
    plural="actividades",
)

BOARD_KINDS: Dict[str, BoardKind] = {
    k.name: k for k in (AUDIENCIAS, REUNIONES, TERMINOS, ACTIVIDADES)
}


def get_kind(name: str) -> BoardKind:
    """Look up a board kind by name. Raises KeyError if unknown."""
    try:
        return BOARD_KINDS[name]
    except KeyError:
        raise KeyError(
            f"Unknown board: {name!r}. Available: {list(BOARD_KINDS)}"
        )
