# eve_core/modules/marketplace/repository.py

from typing import List, Optional

from eve_core.core.repository import BaseRepository
from .models import ItemType, MarketplaceItem, MarketplacePurchase, MarketplaceReview


class MarketplaceItemRepository(BaseRepository[MarketplaceItem]):
    model = MarketplaceItem
    table_name = "marketplace_items"

    async def list_public(self, item_type: Optional[ItemType] = None) -> List[MarketplaceItem]:
        filters = {"is_public": True}
        if item_type:
            filters["type"] = item_type
        return await self.list_by(filters, order=[("created_at", "desc")])


class MarketplacePurchaseRepository(BaseRepository[MarketplacePurchase]):
    model = MarketplacePurchase
    table_name = "marketplace_purchases"

    async def list_for_company(self, company_id: str) -> List[MarketplacePurchase]:
        return await self.list_by({"buyer_company_id": company_id}, order=[("purchase_date", "desc")])


class MarketplaceReviewRepository(BaseRepository[MarketplaceReview]):
    model = MarketplaceReview
    table_name = "marketplace_reviews"

    async def list_for_item(self, item_id: str) -> List[MarketplaceReview]:
        return await self.list_by({"item_id": item_id}, order=[("created_at", "desc")])
