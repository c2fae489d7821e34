from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models


def list_scheduled_deliveries(
    db: Session,
    start: datetime,
    end: Optional[datetime] = None,
) -> List[models.Order]:
    """Delivery orders with a scheduled date in ``[start, end)``, earliest first."""
    query = (
        db.query(models.Order)
        .filter(
            models.Order.order_type == models.OrderType.DELIVERY,
            models.Order.scheduled_date.isnot(None),
            models.Order.scheduled_date >= start,
        )
    )
    if end is not None:
        query = query.filter(models.Order.scheduled_date < end)
    return query.order_by(models.Order.scheduled_date.asc(), models.Order.id.asc()).all()
