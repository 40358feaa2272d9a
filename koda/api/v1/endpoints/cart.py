from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.cart import CartOut, CartUpdate, FavoriteToggleOut
from koda.schemas.product import ProductOut
from koda.services.auth import Actor, get_actor
from koda.services.cart import (
    add_favorite,
    clear_cart,
    load_cart,
    load_favorites,
    remove_favorite,
    save_cart,
    toggle_favorite,
)

router = APIRouter()


@router.get("/cart", response_model=CartOut)
async def get_cart(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> CartOut:
    items = await load_cart(db, actor.user_id)
    return CartOut(items=[ProductOut.model_validate(p) for p in items])


@router.put("/cart", response_model=CartOut)
async def put_cart(
    payload: CartUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> CartOut:
    await save_cart(db, actor.user_id, payload.product_ids)
    await db.commit()
    items = await load_cart(db, actor.user_id)
    return CartOut(items=[ProductOut.model_validate(p) for p in items])


@router.delete("/cart", status_code=204)
async def delete_cart(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> None:
    await clear_cart(db, actor.user_id)
    await db.commit()


@router.get("/favorites", response_model=list[ProductOut])
async def get_favorites(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[ProductOut]:
    return [ProductOut.model_validate(p) for p in await load_favorites(db, actor.user_id)]


@router.post("/favorites/{product_id}", response_model=FavoriteToggleOut)
async def post_favorite(
    product_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoriteToggleOut:
    await add_favorite(db, actor.user_id, product_id)
    await db.commit()
    return FavoriteToggleOut(product_id=product_id, favorited=True)


@router.post("/favorites/{product_id}/toggle", response_model=FavoriteToggleOut)
async def toggle_favorite_endpoint(
    product_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoriteToggleOut:
    favorited = await toggle_favorite(db, actor.user_id, product_id)
    await db.commit()
    return FavoriteToggleOut(product_id=product_id, favorited=favorited)


@router.delete("/favorites/{product_id}", response_model=FavoriteToggleOut)
async def delete_favorite(
    product_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> FavoriteToggleOut:
    await remove_favorite(db, actor.user_id, product_id)
    await db.commit()
    return FavoriteToggleOut(product_id=product_id, favorited=False)
