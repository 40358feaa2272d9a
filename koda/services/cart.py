from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from koda.models.product import Product
from koda.services.catalog import get_listing, get_listings_by_ids
from koda.services.users import get_or_create_user, get_user


log = logging.getLogger(__name__)


def _dedupe(ids: Iterable[str]) -> list[str]:
    # ordered set: first position wins
    seen: set[str] = set()
    out: list[str] = []
    for i in ids:
        if i and i not in seen:
            seen.add(i)
            out.append(i)
    return out


async def _resolve(db: AsyncSession, ids: list[str]) -> list[Product]:
    # references to listings that no longer exist are dropped
    found = await get_listings_by_ids(db, ids)
    return [found[i] for i in ids if i in found]


async def load_cart(db: AsyncSession, user_id: str) -> list[Product]:
    user = await get_user(db, user_id)
    if user is None or not user.cart:
        return []
    return await _resolve(db, list(user.cart))


async def save_cart(db: AsyncSession, user_id: str, listing_ids: Iterable[str]) -> list[str]:
    """
    Replace the stored cart wholesale. Last write wins: a sync from one
    device overwrites whatever another device stored before it.
    """
    user = await get_or_create_user(db, user_id)
    ids = _dedupe(listing_ids)
    user.cart = ids
    await db.flush()
    log.debug("cart saved: user=%s items=%d", user_id, len(ids))
    return ids


async def clear_cart(db: AsyncSession, user_id: str) -> None:
    user = await get_user(db, user_id)
    if user is None or not user.cart:
        return
    user.cart = []
    await db.flush()


async def load_favorites(db: AsyncSession, user_id: str) -> list[Product]:
    user = await get_user(db, user_id)
    if user is None or not user.favorites:
        return []
    return await _resolve(db, list(user.favorites))


async def add_favorite(db: AsyncSession, user_id: str, listing_id: str) -> None:
    await get_listing(db, listing_id)
    user = await get_or_create_user(db, user_id)
    if listing_id not in (user.favorites or []):
        user.favorites = [*(user.favorites or []), listing_id]
        await db.flush()


async def remove_favorite(db: AsyncSession, user_id: str, listing_id: str) -> None:
    user = await get_user(db, user_id)
    if user is None or listing_id not in (user.favorites or []):
        return
    user.favorites = [i for i in user.favorites if i != listing_id]
    await db.flush()


async def toggle_favorite(db: AsyncSession, user_id: str, listing_id: str) -> bool:
    """Returns True when the listing is now a favorite."""
    user = await get_user(db, user_id)
    if user is not None and listing_id in (user.favorites or []):
        await remove_favorite(db, user_id, listing_id)
        return False
    await add_favorite(db, user_id, listing_id)
    return True


class LocalCart:
    """
    Client-held cart: an ordered set of listings changed immediately on
    add/remove. Durable storage only sees it on an explicit ``sync``.
    """

    def __init__(self, items: Iterable[Product] | None = None):
        self._items: dict[str, Product] = {}
        self.replace(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._items

    @property
    def items(self) -> list[Product]:
        return list(self._items.values())

    @property
    def ids(self) -> list[str]:
        return list(self._items.keys())

    def add(self, item: Product) -> bool:
        if item.id in self._items:
            return False
        self._items[item.id] = item
        return True

    def remove(self, listing_id: str) -> bool:
        return self._items.pop(listing_id, None) is not None

    def clear(self) -> None:
        self._items.clear()

    def replace(self, items: Iterable[Product]) -> None:
        self._items = {}
        for item in items:
            self.add(item)

    async def sync(self, db: AsyncSession, user_id: str) -> list[str]:
        return await save_cart(db, user_id, self.ids)

    async def load(self, db: AsyncSession, user_id: str) -> None:
        self.replace(await load_cart(db, user_id))
