# eve_core/client/stores_marketplace.py

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from eve_core.client.base import BaseStore, StoreError
from eve_core.modules.marketplace.models import ItemType, MarketplaceItem, MarketplacePurchase, MarketplaceReview
from eve_core.modules.marketplace.repository import (
    MarketplaceItemRepository, MarketplacePurchaseRepository, MarketplaceReviewRepository,
)
from eve_core.modules.marketplace.services import compute_subscription_end_date


class MarketplaceStore(BaseStore):
    def __init__(self, session):
        super().__init__(session)
        self.items: List[MarketplaceItem] = []
        self.purchases: List[MarketplacePurchase] = []
        self.reviews: List[MarketplaceReview] = []

    @property
    def item_repo(self) -> MarketplaceItemRepository:
        return MarketplaceItemRepository(self.session.gateway)

    @property
    def purchase_repo(self) -> MarketplacePurchaseRepository:
        return MarketplacePurchaseRepository(self.session.gateway)

    @property
    def review_repo(self) -> MarketplaceReviewRepository:
        return MarketplaceReviewRepository(self.session.gateway)

    # --- Items ---
    async def fetch_items(self, item_type: Optional[ItemType] = None) -> List[MarketplaceItem]:
        async with self._operation("fetch_items"):
            self.items = await self.item_repo.list_public(item_type)
            return self.items
        return []

    async def get_item(self, item_id: str) -> Optional[MarketplaceItem]:
        async with self._operation("get_item"):
            return await self.item_repo.get_by_id(item_id)
        return None

    async def create_item(self, data: Dict[str, Any]) -> Optional[MarketplaceItem]:
        async with self._operation("create_item"):
            item = await self.item_repo.create({**data, "creator_company_id": await self.session.company_id()})
            self.items = [item, *self.items]
            return item
        return None

    async def update_item(self, item_id: str, data: Dict[str, Any]) -> Optional[MarketplaceItem]:
        async with self._operation("update_item"):
            item = await self.item_repo.update(item_id, data)
            if item:
                self.items = [item if i.id == item_id else i for i in self.items]
            return item
        return None

    async def delete_item(self, item_id: str) -> bool:
        async with self._operation("delete_item"):
            deleted = await self.item_repo.delete(item_id)
            self.items = [i for i in self.items if i.id != item_id]
            return deleted
        return False

    # --- Purchases ---
    async def fetch_purchases(self) -> List[MarketplacePurchase]:
        async with self._operation("fetch_purchases"):
            self.purchases = await self.purchase_repo.list_for_company(await self.session.company_id())
            return self.purchases
        return []

    async def purchase_item(self, item_id: str) -> Optional[MarketplacePurchase]:
        """Buys an item for the session's company; the subscription end date is fixed here, once."""
        async with self._operation("purchase_item"):
            company_id = await self.session.company_id()
            item = next((i for i in self.items if i.id == item_id), None) or await self.item_repo.get_by_id(item_id)
            if item is None:
                raise StoreError("Marketplace item not found")
            purchased_at = datetime.now(timezone.utc)
            purchase = await self.purchase_repo.create({
                "item_id": item_id,
                "buyer_company_id": company_id,
                "purchase_date": purchased_at,
                "subscription_end_date": compute_subscription_end_date(item, purchased_at),
                "status": "active",
            })
            self.purchases = [purchase, *self.purchases]
            return purchase
        return None

    async def cancel_subscription(self, purchase_id: str) -> bool:
        async with self._operation("cancel_subscription"):
            purchase = await self.purchase_repo.update(purchase_id, {"status": "cancelled"})
            if purchase:
                self.purchases = [purchase if p.id == purchase_id else p for p in self.purchases]
            return purchase is not None
        return False

    # --- Reviews ---
    async def fetch_reviews(self, item_id: str) -> List[MarketplaceReview]:
        async with self._operation("fetch_reviews"):
            self.reviews = await self.review_repo.list_for_item(item_id)
            return self.reviews
        return []

    async def add_review(self, item_id: str, rating: int, review_text: Optional[str] = None) -> Optional[MarketplaceReview]:
        async with self._operation("add_review"):
            if not 1 <= rating <= 5:
                raise StoreError("Rating must be between 1 and 5")
            review = await self.review_repo.create({
                "item_id": item_id,
                "company_id": await self.session.company_id(),
                "rating": rating,
                "review_text": review_text,
            })
            self.reviews = [review, *self.reviews]
            return review
        return None

    async def update_review(self, review_id: str, rating: int, review_text: Optional[str] = None) -> Optional[MarketplaceReview]:
        async with self._operation("update_review"):
            review = await self.review_repo.update(review_id, {"rating": rating, "review_text": review_text})
            if review:
                self.reviews = [review if r.id == review_id else r for r in self.reviews]
            return review
        return None

    async def delete_review(self, review_id: str) -> bool:
        async with self._operation("delete_review"):
            deleted = await self.review_repo.delete(review_id)
            self.reviews = [r for r in self.reviews if r.id != review_id]
            return deleted
        return False
