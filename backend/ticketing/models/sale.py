"""
Ticket sale: one purchase attempt and its payment lifecycle.

Key design decisions:
- Row is created `pending` before any money moves, so no attempt is lost
- Monetary fields and buyer contact are snapshotted at purchase time
- `payment_status` only changes through the conditional UPDATE in
  sale_ledger.transition_sale; a CHECK constraint pins the allowed values
- `stripe_checkout_session_id` / `stripe_payment_intent_id` correlate the row
  with processor callbacks
"""

from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REFUNDED = "refunded"


TERMINAL_STATUSES = frozenset({
    PaymentStatus.COMPLETED,
    PaymentStatus.CANCELLED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
})


class TicketSale(Base, TimestampMixin):
    __tablename__ = "ticket_sales"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)
    payment_processing_fee = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    buyer_name = Column(String(255), nullable=False)
    buyer_email = Column(String(255), nullable=False)
    buyer_phone = Column(String(50), nullable=True)

    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    stripe_checkout_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="sales", lazy="noload")
    event = relationship("Event", lazy="noload")
    ticket_type = relationship("TicketType", lazy="noload")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_sale_quantity_positive"),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'cancelled', 'failed', 'refunded')",
            name="check_sale_payment_status",
        ),
        Index("ix_ticket_sales_payment_status", "payment_status"),
    )

    @property
    def status(self) -> PaymentStatus:
        return PaymentStatus(self.payment_status)

    def __repr__(self) -> str:
        return f"<TicketSale(id={self.id}, user={self.user_id}, status={self.payment_status})>"
