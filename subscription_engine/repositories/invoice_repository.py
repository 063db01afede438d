"""Invoice repository for data access."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.invoice import Invoice
from subscription_engine.schemas.invoice import InvoiceCreate


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def _generate_invoice_number(self, issued_at: datetime) -> str:
        """Next free number for the issue date, formatted INV-YYYYMMDD-NNNN."""
        prefix = f"INV-{issued_at.strftime('%Y%m%d')}-"

        # Get the highest invoice number for that day
        result = (
            self.db.query(Invoice.invoice_number)
            .filter(Invoice.invoice_number.like(f"{prefix}%"))
            .order_by(Invoice.invoice_number.desc())
            .first()
        )

        if result:
            try:
                new_num = int(result[0].split("-")[-1]) + 1
            except (ValueError, IndexError):
                new_num = 1
        else:
            new_num = 1

        return f"{prefix}{new_num:04d}"

    def create(self, data: InvoiceCreate) -> Invoice:
        subtotal = sum(item.amount for item in data.line_items)

        invoice = Invoice(
            invoice_number=self._generate_invoice_number(data.issued_at),
            customer_id=data.customer_id,
            subscription_id=data.subscription_id,
            payment_id=data.payment_id,
            status=data.status.value,
            billing_period_start=data.billing_period_start,
            billing_period_end=data.billing_period_end,
            subtotal=subtotal,
            total=subtotal,
            currency=data.currency,
            line_items=[item.model_dump(mode="json") for item in data.line_items],
            invoice_metadata=data.metadata,
            issued_at=data.issued_at,
            paid_at=data.paid_at,
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_by_subscription(
        self,
        subscription_id: UUID,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Invoice]:
        """Invoices for a subscription, newest first."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.subscription_id == subscription_id)
            .order_by(Invoice.issued_at.desc(), Invoice.invoice_number.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
