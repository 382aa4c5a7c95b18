"""Domain events for the Orders bounded context.

Fields beyond the base event must have defaults (dataclass ordering);
every value must be JSON-friendly once normalised by the repository.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when an order is placed."""

    order_number: str = ""
    total: str = "0"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves along its lifecycle."""

    order_number: str = ""
    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled."""

    order_number: str = ""
    reason: str = ""
