"""Reminder model for payment reminders and dunning notices (Mahnungen)."""
import enum
from sqlalchemy import Column, Integer, Numeric, Date, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from invoicing.database import Base, IdType


class ReminderLevel(enum.IntEnum):
    """Dunning level."""
    PAYMENT_REMINDER = 1  # Zahlungserinnerung
    FIRST_NOTICE = 2      # 1. Mahnung
    SECOND_NOTICE = 3     # 2. Mahnung

    @property
    def label(self):
        return {
            ReminderLevel.PAYMENT_REMINDER: 'Zahlungserinnerung',
            ReminderLevel.FIRST_NOTICE: '1. Mahnung',
            ReminderLevel.SECOND_NOTICE: '2. Mahnung',
        }[self]


class Reminder(Base):
    """A reminder sent for an unpaid invoice."""

    __tablename__ = 'reminder'

    id = Column(IdType, primary_key=True, autoincrement=True)
    invoice_id = Column(IdType, ForeignKey('invoice.id', ondelete='CASCADE'), nullable=False)
    level = Column(Integer, nullable=False, default=ReminderLevel.PAYMENT_REMINDER.value)
    sent_date = Column(Date, nullable=False)
    fee = Column(Numeric(10, 2), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    invoice = relationship('Invoice', back_populates='reminders')

    def __repr__(self):
        return f"<Reminder(id={self.id}, invoice_id={self.invoice_id}, level={self.level})>"

    @property
    def level_label(self):
        return ReminderLevel(self.level).label
