from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.core.errors import AuthorizationError, ValidationError
from koda.schemas.product import DownloadOut, ListingFilter, ListingSort, ProductOut
from koda.services.auth import Actor, get_actor
from koda.services.catalog import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    create_listing,
    get_listing,
    list_seller_listings,
    query_listings,
    update_listing,
)
from koda.services.purchases import has_user_purchased

router = APIRouter()


@router.post("/products", response_model=ProductOut, status_code=201)
async def create_product(
    payload: dict = Body(...),
    product_type: str = Query(default="Automation"),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ProductOut:
    # validated by the catalog so every violated field is reported at once
    listing = await create_listing(db, actor.user_id, payload, variant=product_type)
    await db.commit()
    return ProductOut.model_validate(listing)


@router.get("/products", response_model=list[ProductOut])
async def list_products(
    category: list[str] = Query(default=[]),
    platform: list[str] = Query(default=[]),
    tag: list[str] = Query(default=[]),
    seller_id: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    q: str | None = None,
    sort: ListingSort = "newest",
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[ProductOut]:
    try:
        flt = ListingFilter(
            categories=category,
            platforms=platform,
            tags=tag,
            seller_id=seller_id,
            min_price=min_price,
            max_price=max_price,
            query=q,
        )
    except PydanticValidationError as e:
        raise ValidationError(details=[{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in e.errors()])

    rows = await query_listings(db, flt, sort, limit=limit, offset=offset)
    return [ProductOut.model_validate(r) for r in rows]


@router.get("/products/mine", response_model=list[ProductOut])
async def my_products(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> list[ProductOut]:
    rows = await list_seller_listings(db, actor.user_id)
    return [ProductOut.model_validate(r) for r in rows]


@router.get("/products/{product_id}", response_model=ProductOut)
async def get_product(product_id: str, db: AsyncSession = Depends(get_db)) -> ProductOut:
    return ProductOut.model_validate(await get_listing(db, product_id))


@router.patch("/products/{product_id}", response_model=ProductOut)
async def patch_product(
    product_id: str,
    payload: dict = Body(...),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> ProductOut:
    listing = await update_listing(db, actor.user_id, product_id, payload)
    await db.commit()
    return ProductOut.model_validate(listing)


@router.get("/products/{product_id}/download", response_model=DownloadOut)
async def download_product(
    product_id: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
) -> DownloadOut:
    listing = await get_listing(db, product_id)
    file_url = getattr(listing, "file_url", None)
    if not file_url:
        raise AuthorizationError("No downloadable file for this product", key="noDownload")

    if listing.seller_id != actor.user_id and not await has_user_purchased(db, actor.user_id, listing.id):
        raise AuthorizationError("Purchase required to download this product", key="purchaseRequired")

    return DownloadOut(product_id=listing.id, file_url=file_url)
