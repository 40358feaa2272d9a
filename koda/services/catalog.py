from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Type

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import String, cast, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.errors import AuthorizationError, NotFoundError, ValidationError
from koda.models.product import Automation, Product
from koda.schemas.product import (
    MUTABLE_FIELDS,
    AutomationCreate,
    ListingCreate,
    ListingFilter,
    ListingPatch,
)
from koda.services.notifications import queue_event
from koda.services.users import ensure_seller_ready, get_user


log = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

# discriminator value -> (create schema, mapped class)
_VARIANT_REGISTRY: dict[str, tuple[Type[ListingCreate], Type[Product]]] = {
    "Automation": (AutomationCreate, Automation),
}


def resolve_variant(variant: str) -> tuple[Type[ListingCreate], Type[Product]]:
    if variant not in _VARIANT_REGISTRY:
        raise ValidationError(
            details=[{"loc": ["product_type"], "msg": f"unknown listing type: {variant}", "type": "variant_not_supported"}]
        )
    return _VARIANT_REGISTRY[variant]


def supported_variants() -> list[str]:
    return sorted(_VARIANT_REGISTRY)


@dataclass(frozen=True)
class ListingValidationResult:
    ok: bool
    model: ListingCreate | None
    errors: list[dict[str, Any]]


def _clean_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # keep the JSON-safe parts of pydantic's structured errors
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in errors
    ]


def check_listing_input(data: dict[str, Any], variant: str = "Automation") -> ListingValidationResult:
    """
    Validate listing input against the base fields and the variant's own.
    Every violated field is reported, not only the first.
    """
    schema, _ = resolve_variant(variant)
    try:
        model = schema.model_validate(data)
    except PydanticValidationError as e:
        return ListingValidationResult(ok=False, model=None, errors=_clean_errors(e.errors()))
    return ListingValidationResult(ok=True, model=model, errors=[])


def validate_listing_input(data: dict[str, Any], variant: str = "Automation") -> ListingCreate:
    res = check_listing_input(data, variant)
    if res.model is None:
        raise ValidationError(details=res.errors)
    return res.model


async def create_listing(
    db: AsyncSession,
    seller_id: str | None,
    data: dict[str, Any],
    *,
    variant: str = "Automation",
) -> Product:
    res = check_listing_input(data, variant)
    errors = list(res.errors)
    if not seller_id:
        errors.insert(0, {"loc": ["seller_id"], "msg": "Field required", "type": "missing"})
    if errors or res.model is None:
        raise ValidationError(details=errors)

    ensure_seller_ready(await get_user(db, seller_id))

    _, cls = resolve_variant(variant)
    values = res.model.model_dump(mode="json")
    values["price"] = res.model.price

    listing = cls(seller_id=seller_id, **values)
    db.add(listing)
    await db.flush()

    log.info("listing created: id=%s type=%s seller=%s", listing.id, listing.product_type, seller_id)
    queue_event(db, "catalog", "product.created", {"product_id": listing.id, "seller_id": seller_id})
    return listing


async def get_listing(db: AsyncSession, listing_id: str) -> Product:
    listing = (await db.execute(select(Product).where(Product.id == listing_id))).scalar_one_or_none()
    if listing is None:
        raise NotFoundError("Product not found", key="productNotFound")
    return listing


async def update_listing(
    db: AsyncSession,
    requester_id: str,
    listing_id: str,
    patch: dict[str, Any],
) -> Product:
    """
    Owner-only edit. Keys outside the mutable subset (seller, category,
    platform, file...) are ignored; only the keys present are validated.
    """
    listing = await get_listing(db, listing_id)
    if listing.seller_id != requester_id:
        raise AuthorizationError("You are not authorized to edit this product", key="notAuthorizedToEdit")

    allowed = {k: v for k, v in patch.items() if k in MUTABLE_FIELDS}
    if not allowed:
        return listing

    try:
        validated = ListingPatch.model_validate(allowed)
    except PydanticValidationError as e:
        raise ValidationError(details=_clean_errors(e.errors()))

    changes = validated.model_dump(mode="json", exclude_unset=True)
    if "price" in changes:
        changes["price"] = validated.price

    for field, value in changes.items():
        setattr(listing, field, value)

    await db.flush()
    log.info("listing updated: id=%s fields=%s", listing.id, sorted(changes))
    return listing


def _filter_conditions(flt: ListingFilter) -> list:
    conds = []
    if flt.categories:
        conds.append(Product.category.in_(flt.categories))
    if flt.platforms:
        conds.append(Automation.platform.in_(flt.platforms))
    if flt.seller_id:
        conds.append(Product.seller_id == flt.seller_id)
    if flt.min_price is not None:
        conds.append(Product.price >= flt.min_price)
    if flt.max_price is not None:
        conds.append(Product.price <= flt.max_price)
    if flt.query:
        conds.append(Product.title.ilike(f"%{flt.query}%"))
    return conds


def _any_tag(dialect: str, tags: list[str]):
    if dialect == "postgresql":
        as_jsonb = cast(Product.tags, JSONB)
        return or_(*(as_jsonb.contains([t]) for t in tags))
    # other stores keep the serialized list; match whole quoted elements
    as_text = cast(Product.tags, String)
    return or_(*(as_text.contains(json.dumps(t), autoescape=True) for t in tags))


def _order_by(sort: str) -> list:
    if sort == "price_asc":
        return [Product.price.asc(), Product.created_at.desc()]
    if sort == "price_desc":
        return [Product.price.desc(), Product.created_at.desc()]
    return [Product.created_at.desc()]


async def query_listings(
    db: AsyncSession,
    flt: ListingFilter | None = None,
    sort: str = "newest",
    *,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> list[Product]:
    flt = flt or ListingFilter()
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)

    conds = _filter_conditions(flt)
    if flt.tags:
        conds.append(_any_tag(db.get_bind().dialect.name, flt.tags))

    stmt = select(Product).where(*conds).order_by(*_order_by(sort)).limit(limit).offset(offset)
    return list((await db.execute(stmt)).scalars().all())


async def list_seller_listings(db: AsyncSession, seller_id: str) -> list[Product]:
    stmt = select(Product).where(Product.seller_id == seller_id).order_by(Product.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def get_listings_by_ids(db: AsyncSession, listing_ids: list[str]) -> dict[str, Product]:
    if not listing_ids:
        return {}
    stmt = select(Product).where(Product.id.in_(set(listing_ids)))
    return {p.id: p for p in (await db.execute(stmt)).scalars().all()}
