from ticketing.models.user import User
from ticketing.models.organizer import Organizer
from ticketing.models.event import Event
from ticketing.models.ticket_type import TicketType
from ticketing.models.fee_settings import EventTicketSettings, FeePayer
from ticketing.models.sale import TicketSale, PaymentStatus, TERMINAL_STATUSES

__all__ = [
    "User", "Organizer", "Event", "TicketType",
    "EventTicketSettings", "FeePayer",
    "TicketSale", "PaymentStatus", "TERMINAL_STATUSES",
]
