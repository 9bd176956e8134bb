"""
Domain events system

Domain events represent important business events that are published after
a transaction commits and consumed by collaborators (CRM/loyalty, document
rendering). Subscriber failures are logged and never reach the publisher.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import uuid
import structlog

logger = structlog.get_logger(__name__)


class DomainEvent:
    """Base class for domain events"""

    def __init__(self, event_id: uuid.UUID = None):
        self.event_id = event_id or uuid.uuid4()
        self.occurred_at = datetime.utcnow()


class OrderCreated(DomainEvent):
    """Event fired when an order is committed with its initial line items"""

    def __init__(
        self,
        order_id: uuid.UUID,
        tenant_id: uuid.UUID,
        table_id: Optional[uuid.UUID],
        total_amount: Decimal,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.order_id = order_id
        self.tenant_id = tenant_id
        self.table_id = table_id
        self.total_amount = total_amount


class OrderPaid(DomainEvent):
    """Event fired once, when an order transitions from unpaid to paid"""

    def __init__(
        self,
        order_id: uuid.UUID,
        tenant_id: uuid.UUID,
        total_amount: Decimal,
        cash_amount: Decimal,
        upi_amount: Decimal,
        table_id: Optional[uuid.UUID] = None,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.order_id = order_id
        self.tenant_id = tenant_id
        self.total_amount = total_amount
        self.cash_amount = cash_amount
        self.upi_amount = upi_amount
        self.table_id = table_id


class InvoiceIssued(DomainEvent):
    """Event fired when a new invoice serial has been committed"""

    def __init__(
        self,
        invoice_id: uuid.UUID,
        order_id: uuid.UUID,
        tenant_id: uuid.UUID,
        invoice_number: str,
        event_id: uuid.UUID = None
    ):
        super().__init__(event_id)
        self.invoice_id = invoice_id
        self.order_id = order_id
        self.tenant_id = tenant_id
        self.invoice_number = invoice_number


class EventBus:
    """Simple in-memory event bus for publishing domain events"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, handler: Callable):
        """Subscribe to a specific event type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to event type: {event_type}")

    def unsubscribe(self, event_type: str, handler: Callable):
        """Unsubscribe from an event type"""
        if event_type in self._subscribers:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from event type: {event_type}")

    def publish(self, event: DomainEvent):
        """Publish an event to all subscribers"""
        event_type = event.__class__.__name__
        handlers = self._subscribers.get(event_type, [])

        if not handlers:
            logger.debug(f"No subscribers for event type: {event_type}")
            return

        logger.info(f"Publishing event {event_type}: {event.event_id}")

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event_type}: {e}", exc_info=True)


# Global event bus instance
event_bus = EventBus()
