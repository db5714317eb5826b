"""QuoteItem model for quote line items."""
from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from invoicing.database import Base, IdType


class QuoteItem(Base):
    """Quote line item (Angebotsposition), same shape as an invoice item."""

    __tablename__ = 'quote_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    quote_id = Column(IdType, ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='SET NULL'), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    unit = Column(String(32), nullable=True)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)

    # Relationships
    quote = relationship('Quote', back_populates='items')
    product = relationship('Product', foreign_keys=[product_id])

    def __repr__(self):
        return f"<QuoteItem(id={self.id}, quote_id={self.quote_id}, description='{self.description}', total={self.total})>"
