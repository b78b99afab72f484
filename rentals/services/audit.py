# rentals/services/audit.py
import logging

from rentals.models import RentalActionLog
from rentals.utils import jsonable

logger = logging.getLogger(__name__)


def log_action(rental, action: str, actor=None, old_status: str = "", new_status: str = "", **details):
    """Append an entry to the rental's action log (call inside the write's transaction)."""
    entry = RentalActionLog.objects.create(
        rental=rental,
        action=action,
        actor=actor if getattr(actor, "pk", None) else None,
        old_status=old_status or "",
        new_status=new_status or "",
        details=jsonable(details),
    )
    logger.info("rental %s: %s by %s %s", rental.rental_code or rental.pk, action, actor, details or "")
    return entry
