"""Database seeding helpers."""

import logging

from sqlalchemy.orm import Session

from portal.models import OrderStatusRow
from portal.services.order_status import OrderStatus

logger = logging.getLogger(__name__)


def ensure_order_statuses(session: Session) -> int:
    """Insert missing status lookup rows and refresh their labels.

    Returns the number of rows created.
    """
    created = 0
    for status in OrderStatus:
        row = session.get(OrderStatusRow, int(status))
        if row is None:
            session.add(OrderStatusRow(status_id=int(status), status_name=status.label, status_color=status.color))
            created += 1
            continue
        row.status_name = status.label
        row.status_color = status.color
    session.commit()
    if created:
        logger.info("[BOOTSTRAP] Seeded %s order status rows", created)
    return created
