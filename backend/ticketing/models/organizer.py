"""
Organizer page owning events, with its connected payment account.

Charges for an organizer's tickets are routed to `stripe_account_id`; the
account must report `stripe_charges_enabled` before checkout is allowed.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class Organizer(Base, TimestampMixin):
    __tablename__ = "organizers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    stripe_account_id = Column(String(255), nullable=True)
    stripe_charges_enabled = Column(Boolean, nullable=False, default=False)

    events = relationship("Event", back_populates="organizer", lazy="noload")

    @property
    def can_accept_payments(self) -> bool:
        return bool(self.stripe_account_id) and bool(self.stripe_charges_enabled)

    def __repr__(self) -> str:
        return f"<Organizer(id={self.id}, user={self.user_id})>"
