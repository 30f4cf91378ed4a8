"""Order and order item enums.

Defines the order code families, order kinds and the status vocabularies
for orders and order items (design lines). Values are the persisted names.
"""

from enum import Enum
from typing import Optional, TypeVar

E = TypeVar("E", bound="ParsableEnum")


class ParsableEnum(str, Enum):
    """String enum tolerant of surrounding whitespace and lower case input."""

    @classmethod
    def from_string(cls: type[E], value: str) -> E:
        """Convert string to enum member.

        Args:
            value: String representation, case-insensitive

        Returns:
            Enum member

        Raises:
            ValueError: If value is not a member of the enum
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Enum):
            value = value.value
        normalized = str(value or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            valid_values = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Invalid {cls.__name__}: {value}. Valid values are: {valid_values}"
            ) from None

    @classmethod
    def parse_or_none(cls: type[E], value: Optional[str]) -> Optional[E]:
        if value is None:
            return None
        try:
            return cls.from_string(value)
        except ValueError:
            return None


class OrderType(ParsableEnum):
    """Order code family: national (VN) or international (VI) sales."""

    VN = "VN"
    VI = "VI"

    @property
    def sequence_width(self) -> int:
        return 6 if self is OrderType.VN else 4

    @classmethod
    def normalize(cls, value: Optional[str]) -> "OrderType":
        """Anything other than an explicit VI is a national order."""
        return cls.parse_or_none(value) or cls.VN

    @classmethod
    def for_currency(cls, currency: Optional[str]) -> "OrderType":
        return cls.VI if str(currency or "COP").strip().upper() == "USD" else cls.VN


class OrderKind(ParsableEnum):
    """NUEVO orders stand alone; the other kinds derive from a source order."""

    NUEVO = "NUEVO"
    COMPLETACION = "COMPLETACION"
    REFERENTE = "REFERENTE"

    @property
    def is_derived(self) -> bool:
        return self is not OrderKind.NUEVO

    @classmethod
    def normalize(cls, value: Optional[str]) -> "OrderKind":
        return cls.parse_or_none(value) or cls.NUEVO


class OrderStatus(ParsableEnum):
    """Order-level status."""

    PENDIENTE = "PENDIENTE"
    PRODUCCION = "PRODUCCION"
    ATRASADO = "ATRASADO"
    FINALIZADO = "FINALIZADO"
    ENTREGADO = "ENTREGADO"
    CANCELADO = "CANCELADO"
    REVISION = "REVISION"


class OrderItemStatus(ParsableEnum):
    """Design line status, from intake through production to shipment.

    Terminal states are COMPLETADO and CANCELADO.
    """

    PENDIENTE = "PENDIENTE"
    REVISION_ADMIN = "REVISION_ADMIN"
    APROBACION_INICIAL = "APROBACION_INICIAL"
    PENDIENTE_PRODUCCION = "PENDIENTE_PRODUCCION"
    EN_MONTAJE = "EN_MONTAJE"
    EN_IMPRESION = "EN_IMPRESION"
    SUBLIMACION = "SUBLIMACION"
    CORTE_MANUAL = "CORTE_MANUAL"
    CORTE_LASER = "CORTE_LASER"
    PENDIENTE_CONFECCION = "PENDIENTE_CONFECCION"
    CONFECCION = "CONFECCION"
    EN_BODEGA = "EN_BODEGA"
    EMPAQUE = "EMPAQUE"
    ENVIADO = "ENVIADO"
    EN_REVISION_CAMBIO = "EN_REVISION_CAMBIO"
    APROBADO_CAMBIO = "APROBADO_CAMBIO"
    RECHAZADO_CAMBIO = "RECHAZADO_CAMBIO"
    COMPLETADO = "COMPLETADO"
    CANCELADO = "CANCELADO"

    def is_terminal(self) -> bool:
        return self in {OrderItemStatus.COMPLETADO, OrderItemStatus.CANCELADO}


class PackagingMode(ParsableEnum):
    AGRUPADO = "AGRUPADO"
    INDIVIDUAL = "INDIVIDUAL"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "PackagingMode":
        return cls.parse_or_none(value) or cls.AGRUPADO


PREFACTURA_INITIAL_STATUS = "PENDIENTE_CONTABILIDAD"
