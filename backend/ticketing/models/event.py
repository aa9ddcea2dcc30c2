"""
Event catalog entry. Read-only from the point of view of checkout.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("organizers.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    event_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)

    organizer = relationship("Organizer", back_populates="events", lazy="joined")
    ticket_types = relationship("TicketType", back_populates="event", lazy="noload")
    ticket_settings = relationship(
        "EventTicketSettings", back_populates="event", uselist=False, lazy="noload"
    )

    __table_args__ = (
        Index("ix_events_event_date", "event_date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title})>"
