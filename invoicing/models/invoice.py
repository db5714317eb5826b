"""Invoice model (Rechnung)."""
import enum
from datetime import date
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, Date, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType, enum_values


class InvoiceStatus(enum.Enum):
    """Invoice status enum."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(Base):
    """
    Invoice issued to a customer.

    ``overdue`` is normally derived at read time (see ``effective_status``)
    and only persisted by the maintenance pass or when a reminder is sent.
    """

    __tablename__ = 'invoice'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_number = Column(String(64), nullable=False, unique=True)
    customer_id = Column(IdType, ForeignKey('customer.id', ondelete='RESTRICT'), nullable=False)
    status = Column(
        SQLEnum(InvoiceStatus, name='invoice_status', values_callable=enum_values),
        nullable=False,
        default=InvoiceStatus.DRAFT
    )
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    delivery_date = Column(Date, nullable=True)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    # Tax regime the totals were computed under (Kleinunternehmer, section 19 UStG)
    is_small_business = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    payment_terms = Column(Text, nullable=True)
    paid_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='invoices')
    items = relationship(
        'InvoiceItem',
        back_populates='invoice',
        cascade='all, delete-orphan',
        order_by='InvoiceItem.position'
    )
    reminders = relationship(
        'Reminder',
        back_populates='invoice',
        cascade='all, delete-orphan',
        order_by='Reminder.level'
    )

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status.value}', total={self.total})>"

    def effective_status(self, today: date = None) -> InvoiceStatus:
        """Status as shown to the user: a sent invoice past its due date is overdue."""
        if today is None:
            today = date.today()
        if self.status == InvoiceStatus.SENT and self.due_date and self.due_date < today:
            return InvoiceStatus.OVERDUE
        return self.status

    @property
    def is_overdue(self):
        """Check if invoice is overdue (calculated, not stored)."""
        return self.effective_status() == InvoiceStatus.OVERDUE

    @property
    def is_editable(self):
        return self.status == InvoiceStatus.DRAFT
