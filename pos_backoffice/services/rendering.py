"""
Document rendering collaborator

Renderers turn an issued invoice into a stored document and return its
reference. The dispatcher runs them off the request path; a failed render
leaves the invoice without a reference and can be retried later.
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional, Protocol
import uuid

from sqlmodel import Session
import structlog

from pos_backoffice.core.config import get_settings
from pos_backoffice.core.database import atomic, engine
from pos_backoffice.models.invoice import Invoice
from pos_backoffice.schemas.settings import TenantSettings

logger = structlog.get_logger(__name__)


class DocumentRenderer(Protocol):
    def render(self, invoice: Invoice, settings: TenantSettings) -> str:
        ...


class TextInvoiceRenderer:
    """Writes a plain-text invoice to <output_dir>/<tenant_id>/<invoice_number>.txt"""

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)

    def format(self, invoice: Invoice, settings: TenantSettings) -> str:
        lines = [
            f"TAX INVOICE {invoice.invoice_number}",
            f"Date: {invoice.created_at:%Y-%m-%d %H:%M}",
        ]
        if invoice.customer_name:
            lines.append(f"Customer: {invoice.customer_name}")
        if invoice.customer_phone:
            lines.append(f"Phone: {invoice.customer_phone}")
        if invoice.customer_gstin:
            lines.append(f"GSTIN: {invoice.customer_gstin}")
        lines.append("-" * 56)
        lines.append(f"{'Item':<24}{'Qty':>6}{'Rate':>12}{'Amount':>14}")
        for item in invoice.items:
            lines.append(
                f"{item['name'][:24]:<24}{item['quantity']:>6}{item['rate']:>12}{item['total']:>14}"
            )
        lines.append("-" * 56)
        lines.append(f"{'Subtotal':<42}{invoice.subtotal:>14}")
        if settings.gst_enabled:
            lines.append(f"{'Tax @ ' + str(settings.tax_rate) + '%':<42}{invoice.tax_amount:>14}")
        if invoice.discount_amount:
            lines.append(f"{'Discount':<42}{invoice.discount_amount:>14}")
        lines.append(f"{'Total':<42}{invoice.total:>14}")
        return "\n".join(lines) + "\n"

    def render(self, invoice: Invoice, settings: TenantSettings) -> str:
        directory = self.output_dir / str(invoice.tenant_id)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{invoice.invoice_number}.txt"
        path.write_text(self.format(invoice, settings), encoding="utf-8")
        return str(path)


class DocumentDispatcher:
    """Runs a renderer on an executor and attaches the reference to the invoice"""

    def __init__(
        self,
        renderer: DocumentRenderer,
        session_factory: Callable[[], Session],
        executor: Optional[Executor] = None
    ):
        self.renderer = renderer
        self.session_factory = session_factory
        self.executor = executor or ThreadPoolExecutor(
            max_workers=get_settings().RENDER_WORKERS,
            thread_name_prefix="invoice-render"
        )

    def render_and_attach(self, session: Session, invoice: Invoice, settings: TenantSettings) -> str:
        """Render synchronously in the caller's session; renderer errors propagate"""
        reference = self.renderer.render(invoice, settings)
        with atomic(session):
            invoice.document_url = reference
            invoice.updated_at = datetime.utcnow()
            session.add(invoice)
        return reference

    def _run(self, invoice_id: uuid.UUID, settings: TenantSettings) -> Optional[str]:
        with self.session_factory() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                logger.error("invoice_render_missing", invoice_id=str(invoice_id))
                return None
            try:
                reference = self.render_and_attach(session, invoice, settings)
            except Exception as e:
                logger.error("invoice_render_failed", invoice_id=str(invoice_id), error=str(e), exc_info=True)
                return None
        logger.info("invoice_rendered", invoice_id=str(invoice_id), document_url=reference)
        return reference

    def dispatch(self, invoice_id: uuid.UUID, settings: TenantSettings) -> Future:
        return self.executor.submit(self._run, invoice_id, settings)

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)


@lru_cache()
def get_document_dispatcher() -> DocumentDispatcher:
    """Process-wide dispatcher writing text invoices under INVOICE_DOCUMENT_DIR"""
    settings = get_settings()
    return DocumentDispatcher(
        TextInvoiceRenderer(settings.INVOICE_DOCUMENT_DIR),
        session_factory=lambda: Session(engine)
    )
