# eve_core/modules/marketplace/models.py

from pydantic import Field
from typing import Optional, Dict, Any, Literal
from datetime import datetime
from decimal import Decimal

from eve_core.core.repository import TableRow

ItemType = Literal["eve", "workflow", "task", "action"]
SubscriptionInterval = Literal["monthly", "yearly"]
PurchaseStatus = Literal["active", "cancelled", "expired"]


class MarketplaceItem(TableRow):
    id: str
    type: ItemType
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    is_subscription: bool = False
    subscription_interval: Optional[SubscriptionInterval] = None
    is_public: bool = True
    creator_company_id: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MarketplacePurchase(TableRow):
    id: str
    item_id: str
    buyer_company_id: str
    purchase_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    status: PurchaseStatus = "active"
    created_at: Optional[datetime] = None


class MarketplaceReview(TableRow):
    id: str
    item_id: str
    company_id: str
    rating: int = Field(..., ge=1, le=5)
    review_text: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
