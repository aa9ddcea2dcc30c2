"""
Per-event fee configuration.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class FeePayer:
    BUYER = "buyer"
    ORGANIZER = "organizer"


class EventTicketSettings(Base, TimestampMixin):
    __tablename__ = "event_ticket_settings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, unique=True)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    payment_processing_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    payment_processing_fee_fixed = Column(Numeric(10, 2), nullable=False, default=0)
    fee_payer = Column(String(20), nullable=False, default=FeePayer.BUYER)

    event = relationship("Event", back_populates="ticket_settings")

    __table_args__ = (
        CheckConstraint("fee_payer IN ('buyer', 'organizer')", name="check_fee_payer"),
    )

    def __repr__(self) -> str:
        return f"<EventTicketSettings(event={self.event_id}, payer={self.fee_payer})>"
