"""
CRM/loyalty collaborator

Records a visit for every settled order. Runs as an OrderPaid subscriber
after the order transaction committed; the HTTP call is handed to a worker
thread so a slow CRM never holds up the payment request, and nothing here
can undo a payment.
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional

import httpx
import structlog

from pos_backoffice.core.config import get_settings
from pos_backoffice.core.events import EventBus, OrderPaid

logger = structlog.get_logger(__name__)


class HttpLoyaltyClient:
    """Posts visits to the CRM service at CRM_URL"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
        executor: Optional[Executor] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="loyalty")

    def record_visit(self, event: OrderPaid) -> None:
        payload = {
            "tenant_id": str(event.tenant_id),
            "order_id": str(event.order_id),
            "amount": str(event.total_amount),
            "visit_type": "DINE_IN" if event.table_id else "TAKEAWAY",
            "occurred_at": event.occurred_at.isoformat(),
        }
        try:
            response = self.client.post(f"{self.base_url}/visits", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("loyalty_visit_failed", order_id=str(event.order_id), error=str(e))
            return
        logger.info("loyalty_visit_recorded", order_id=str(event.order_id))

    def notify(self, event: OrderPaid) -> Future:
        """Queue the visit; returns immediately"""
        return self.executor.submit(self.record_visit, event)

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        self.client.close()


def register_loyalty_notifier(bus: EventBus) -> Optional[HttpLoyaltyClient]:
    """Subscribe the CRM client to OrderPaid when CRM_URL is configured"""
    settings = get_settings()
    if not settings.CRM_URL:
        logger.info("loyalty_notifier_disabled")
        return None
    client = HttpLoyaltyClient(settings.CRM_URL, timeout=settings.CRM_TIMEOUT_SECONDS)
    bus.subscribe(OrderPaid.__name__, client.notify)
    return client
