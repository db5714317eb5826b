"""Quote model for offers (Angebote)."""
import enum
from datetime import date
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, Date, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType, enum_values


class QuoteStatus(enum.Enum):
    """Quote status enum."""
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Quote(Base):
    """
    Quote (Angebot).

    A quote can be converted to an invoice once, at which point its status
    becomes ACCEPTED and converted_to_invoice_id is populated for good.
    """

    __tablename__ = 'quote'

    id = Column(IdType, primary_key=True, autoincrement=True)
    quote_number = Column(String(64), nullable=False, unique=True)
    customer_id = Column(IdType, ForeignKey('customer.id', ondelete='RESTRICT'), nullable=False)
    status = Column(
        SQLEnum(QuoteStatus, name='quote_status', values_callable=enum_values),
        nullable=False,
        default=QuoteStatus.DRAFT
    )
    issue_date = Column(Date, nullable=False)
    valid_until = Column(Date, nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    # Tax regime the totals were computed under (Kleinunternehmer, section 19 UStG)
    is_small_business = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    converted_to_invoice_id = Column(
        IdType,
        ForeignKey('invoice.id', ondelete='RESTRICT'),
        nullable=True,
        unique=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='quotes')
    items = relationship(
        'QuoteItem',
        back_populates='quote',
        cascade='all, delete-orphan',
        order_by='QuoteItem.position'
    )
    converted_invoice = relationship('Invoice', foreign_keys=[converted_to_invoice_id], uselist=False)

    def __repr__(self):
        return f"<Quote(id={self.id}, number='{self.quote_number}', status='{self.status.value}', total={self.total})>"

    def effective_status(self, today: date = None) -> QuoteStatus:
        """Status as shown to the user: a sent quote past its validity is expired."""
        if today is None:
            today = date.today()
        if self.status == QuoteStatus.SENT and self.valid_until and self.valid_until < today:
            return QuoteStatus.EXPIRED
        return self.status

    @property
    def is_expired(self):
        """Check if quote is expired (calculated, not stored)."""
        return self.effective_status() == QuoteStatus.EXPIRED

    @property
    def is_converted(self):
        return self.converted_to_invoice_id is not None

    @property
    def is_convertible(self):
        """Check if quote can be converted to an invoice."""
        return (
            self.status in (QuoteStatus.SENT, QuoteStatus.ACCEPTED) and
            self.converted_to_invoice_id is None
        )

    @property
    def is_editable(self):
        return self.status == QuoteStatus.DRAFT
