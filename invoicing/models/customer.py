"""Customer model."""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class Customer(Base):
    """Customer (Kunde)."""

    __tablename__ = 'customer'

    id = Column(IdType, primary_key=True, autoincrement=True)
    company_name = Column(String(200), nullable=False)
    contact_person = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    zip_code = Column(String(20), nullable=True)
    city = Column(String(120), nullable=True)
    country = Column(String(120), nullable=True, default='Deutschland')
    tax_id = Column(String(50), nullable=True)  # USt-IdNr.
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships (deletes are restricted at FK level, never cascaded)
    invoices = relationship('Invoice', back_populates='customer', passive_deletes='all')
    quotes = relationship('Quote', back_populates='customer', passive_deletes='all')

    def __repr__(self):
        return f"<Customer(id={self.id}, company_name='{self.company_name}')>"

    @property
    def address_lines(self):
        """Postal address as display lines, skipping empty parts."""
        lines = []
        if self.address:
            lines.extend(part.strip() for part in self.address.splitlines() if part.strip())
        city_line = ' '.join(part for part in (self.zip_code, self.city) if part)
        if city_line:
            lines.append(city_line)
        if self.country:
            lines.append(self.country)
        return lines
