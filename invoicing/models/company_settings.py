"""Company settings model (singleton row)."""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class CompanySettings(Base):
    """
    Issuing company's identity, bank details and numbering state.

    Only one row exists. ``next_invoice_number`` and ``next_quote_number``
    move forward only, via ``numbering_service.reserve_document_number``.
    """

    __tablename__ = 'company_settings'

    id = Column(IdType, primary_key=True, autoincrement=True)
    company_name = Column(String(200), nullable=False, default='Meine Firma')
    owner_name = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    zip_code = Column(String(20), nullable=True)
    city = Column(String(120), nullable=True)
    country = Column(String(120), nullable=True, default='Deutschland')
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    website = Column(String(255), nullable=True)
    tax_id = Column(String(50), nullable=True)  # Steuernummer
    vat_id = Column(String(50), nullable=True)  # USt-IdNr.
    bank_name = Column(String(120), nullable=True)
    iban = Column(String(34), nullable=True)
    bic = Column(String(11), nullable=True)
    logo_url = Column(String(500), nullable=True)
    invoice_prefix = Column(String(20), nullable=False, default='RE-')
    next_invoice_number = Column(Integer, nullable=False, default=1)
    quote_prefix = Column(String(20), nullable=False, default='AN-')
    next_quote_number = Column(Integer, nullable=False, default=1)
    default_payment_terms = Column(Integer, nullable=False, default=14)  # days
    default_tax_rate = Column(Numeric(5, 2), nullable=False, default=19)
    footer_text = Column(Text, nullable=True)
    is_small_business = Column(Boolean, nullable=False, default=False)  # Kleinunternehmer
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<CompanySettings(id={self.id}, company_name='{self.company_name}', small_business={self.is_small_business})>"
