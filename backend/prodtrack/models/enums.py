# Overview: Closed vocabularies for areas, unit kinds and lifecycle states.

from __future__ import annotations

import enum

from ..errors import ValidationError


class Area(str, enum.Enum):
    """Production areas, in the order a garment normally travels."""

    PATRONAJE = "patronaje"
    CORTE = "corte"
    BORDADO = "bordado"
    ENSAMBLE = "ensamble"
    PLANCHA = "plancha"
    CALIDAD = "calidad"
    ENVIOS = "envios"
    ALMACEN = "almacen"
    DISENO = "diseño"
    OPERACIONES = "operaciones"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> "Area":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown area '{value}'. Must be one of: {', '.join(a.value for a in cls)}"
            )


# Display order for dwell-time summaries
AREA_FLOW = [
    Area.PATRONAJE,
    Area.CORTE,
    Area.BORDADO,
    Area.ENSAMBLE,
    Area.PLANCHA,
    Area.CALIDAD,
    Area.ENVIOS,
]


class UnitKind(str, enum.Enum):
    ORDER = "order"
    REPOSITION = "reposition"


class OrderStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    DELETED = "deleted"


class RepositionStatus(str, enum.Enum):
    PENDIENTE = "pendiente"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"
    EN_PROCESO = "en_proceso"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"
    ELIMINADO = "eliminado"


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class HistoryAction(str, enum.Enum):
    CREATED = "created"
    TRANSFER_CREATED = "transfer_created"
    TRANSFER_ACCEPTED = "transfer_accepted"
    TRANSFER_REJECTED = "transfer_rejected"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    DELETED = "deleted"
    APPROVED = "approved"
    REJECTED = "rejected"
    STARTED = "started"
    COMPLETION_REQUESTED = "completion_requested"
    TIMER_STARTED = "timer_started"
    TIMER_STOPPED = "timer_stopped"
    MANUAL_TIME_SET = "manual_time_set"
