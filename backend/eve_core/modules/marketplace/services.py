# eve_core/modules/marketplace/services.py

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from .models import MarketplaceItem

SUBSCRIPTION_TERMS = {
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}


def compute_subscription_end_date(item: Optional[MarketplaceItem], purchased_at: datetime) -> Optional[datetime]:
    """
    End of the first billing period for a subscription item, in calendar terms
    (Jan 31 + 1 month is Feb 28/29). Non-subscription items have no end date.
    """
    if item is None or not item.is_subscription or not item.subscription_interval:
        return None
    return purchased_at + SUBSCRIPTION_TERMS[item.subscription_interval]
