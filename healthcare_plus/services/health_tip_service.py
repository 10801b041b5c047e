import logging
import random
from typing import Any, Dict, List, Optional

from ..core.exceptions import Forbidden, Unauthenticated
from ..core.security import Principal
from ..core.storage import RecordStore, to_timestamp, utc_now
from ..models.health_tip import COLLECTION, DEFAULT_TIPS, FALLBACK_TIP, new_tip_fields

logger = logging.getLogger(__name__)


def _is_active(tip: Dict[str, Any]) -> bool:
    return tip.get("is_active", True) is not False


class HealthTipService:
    def __init__(self, store: RecordStore):
        self.store = store

    async def random_tip(self) -> Dict[str, Any]:
        """Pick an active tip at random and count the view."""
        tips = [t for t in await self.store.list_all(COLLECTION) if _is_active(t)]
        if not tips:
            return dict(FALLBACK_TIP)

        tip = random.choice(tips)
        updated = await self.store.update(COLLECTION, tip["id"], {
            "views": (tip.get("views") or 0) + 1,
            "last_displayed": to_timestamp(utc_now()),
        })
        return updated or tip

    async def list_tips(self, principal: Principal) -> List[Dict[str, Any]]:
        self._require_admin(principal)
        return await self.store.list_all(COLLECTION)

    async def by_category(self, category: str) -> List[Dict[str, Any]]:
        return [
            t for t in await self.store.list_all(COLLECTION)
            if t.get("category") == category and _is_active(t)
        ]

    async def create_tip(
        self,
        principal: Principal,
        content: str,
        category: str,
        tags: Optional[List[str]] = None,
        source: Optional[str] = None
    ) -> Dict[str, Any]:
        self._require_admin(principal)
        return await self.store.create(COLLECTION, new_tip_fields(content, category, tags, source))

    async def seed_defaults(self) -> int:
        """Fill an empty tips collection with the built-in tips."""
        if await self.store.list_all(COLLECTION):
            return 0
        for tip in DEFAULT_TIPS:
            await self.store.create(COLLECTION, new_tip_fields(**tip))
        logger.info(f"Seeded {len(DEFAULT_TIPS)} health tips")
        return len(DEFAULT_TIPS)

    def _require_admin(self, principal: Principal) -> None:
        if not principal.is_authenticated:
            raise Unauthenticated()
        if not principal.is_admin:
            raise Forbidden("Admin access required")
