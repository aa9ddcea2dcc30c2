"""
Purchasable ticket category for an event, with price and capacity.

Key design decisions:
- `quantity_sold` is only ever changed by an atomic UPDATE in the inventory
  service, never assigned from application memory
- CHECK constraints keep `0 <= quantity_sold <= quantity` at the DB level,
  so an oversell that slips past the guarded increment still fails loudly
- `price` is Numeric(10, 2): money is never a float
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin

DEFAULT_MAX_PER_PURCHASE = 10


class TicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    quantity_sold = Column(Integer, nullable=False, default=0)
    min_quantity_per_purchase = Column(Integer, nullable=True)
    max_quantity_per_purchase = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sales_start_date = Column(DateTime(timezone=True), nullable=True)
    sales_end_date = Column(DateTime(timezone=True), nullable=True)

    event = relationship("Event", back_populates="ticket_types", lazy="joined")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_ticket_price_non_negative"),
        CheckConstraint("quantity >= 0", name="check_ticket_quantity_non_negative"),
        CheckConstraint("quantity_sold >= 0", name="check_quantity_sold_non_negative"),
        CheckConstraint("quantity_sold <= quantity", name="check_quantity_sold_lte_quantity"),
    )

    @property
    def available(self) -> int:
        return self.quantity - (self.quantity_sold or 0)

    @property
    def min_per_purchase(self) -> int:
        return self.min_quantity_per_purchase or 1

    @property
    def max_per_purchase(self) -> int:
        return self.max_quantity_per_purchase or DEFAULT_MAX_PER_PURCHASE

    def __repr__(self) -> str:
        return f"<TicketType(id={self.id}, event={self.event_id}, sold={self.quantity_sold}/{self.quantity})>"
