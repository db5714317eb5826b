"""InvoiceItem model for invoice line items."""
from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from invoicing.database import Base, IdType


class InvoiceItem(Base):
    """
    Invoice line item (Rechnungsposition).

    Stores a snapshot of product details at the time the item was added so
    later catalog edits do not change issued documents.
    """

    __tablename__ = 'invoice_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='SET NULL'), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit = Column(String(32), nullable=True)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)

    # Relationships
    invoice = relationship('Invoice', back_populates='items')
    product = relationship('Product', foreign_keys=[product_id])

    def __repr__(self):
        return f"<InvoiceItem(id={self.id}, invoice_id={self.invoice_id}, description='{self.description}', total={self.total})>"
