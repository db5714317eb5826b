"""Product model."""
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class Product(Base):
    """
    Catalog product or service.

    Deleting a product only clears ``is_active``; documents keep their own
    copy of description, unit, price and tax rate.
    """

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(32), nullable=False, default='Stück')  # Stück, Stunde, Pauschal, ...
    price = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=19)
    category = Column(String(120), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
