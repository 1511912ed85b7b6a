from support_portal.models.counter import TicketCounter
from support_portal.models.country_manager import CountryManager
from support_portal.models.notification import PendingNotification
from support_portal.models.settings import EmailSettings
from support_portal.models.ticket import Ticket

__all__ = ["Ticket", "TicketCounter", "EmailSettings", "CountryManager", "PendingNotification"]
