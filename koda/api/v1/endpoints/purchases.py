from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.purchase import PurchaseOut, SalesSummaryOut
from koda.services.auth import Actor, get_actor
from koda.services.purchases import (
    list_purchases_for_buyer,
    list_purchases_for_seller,
    purchased_product_ids,
    seller_sales_summary,
)

router = APIRouter()


@router.get("/purchases", response_model=list[PurchaseOut])
async def my_purchases(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[PurchaseOut]:
    return [PurchaseOut.model_validate(p) for p in await list_purchases_for_buyer(db, actor.user_id)]


@router.get("/purchases/product-ids", response_model=list[str])
async def my_purchased_product_ids(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[str]:
    return await purchased_product_ids(db, actor.user_id)


@router.get("/sales", response_model=list[PurchaseOut])
async def my_sales(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> list[PurchaseOut]:
    return [PurchaseOut.model_validate(p) for p in await list_purchases_for_seller(db, actor.user_id)]


@router.get("/sales/summary", response_model=SalesSummaryOut)
async def my_sales_summary(actor: Actor = Depends(get_actor), db: AsyncSession = Depends(get_db)) -> SalesSummaryOut:
    s = await seller_sales_summary(db, actor.user_id)
    return SalesSummaryOut(count=s.count, gross=float(s.gross), net=float(s.net), fees=float(s.fees))
