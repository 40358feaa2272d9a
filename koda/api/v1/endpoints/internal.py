from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.common import StatusResponse
from koda.schemas.purchase import CheckoutCompleted, CheckoutCompletedOut
from koda.schemas.user import IdentityUserSync, PaymentAccountUpdate, UserOut
from koda.services.auth import require_internal_admin
from koda.services.purchases import complete_checkout
from koda.services.users import delete_identity_user, sync_identity_user, update_payment_account

router = APIRouter(prefix="/internal", dependencies=[Depends(require_internal_admin)])


@router.post("/checkout/completed", response_model=CheckoutCompletedOut)
async def checkout_completed(payload: CheckoutCompleted, db: AsyncSession = Depends(get_db)) -> CheckoutCompletedOut:
    """
    Payment-completion hook. Safe to call repeatedly for one session: the
    repeat answers "already_recorded" with 200 so the processor stops retrying.
    """
    outcome = await complete_checkout(
        db,
        session_id=payload.session_id,
        buyer_id=payload.buyer_id,
        product_id=payload.product_id,
        amount=payload.amount,
    )
    await db.commit()
    return CheckoutCompletedOut(
        status=outcome.status,
        purchase_id=outcome.purchase.id if outcome.purchase else None,
    )


@router.post("/identity/users", response_model=UserOut)
async def identity_user_upsert(payload: IdentityUserSync, db: AsyncSession = Depends(get_db)) -> UserOut:
    user = await sync_identity_user(
        db,
        clerk_id=payload.clerk_id,
        email=str(payload.email) if payload.email else None,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        image_url=payload.image_url,
    )
    await db.commit()
    return UserOut.model_validate(user)


@router.delete("/identity/users/{clerk_id}", response_model=StatusResponse)
async def identity_user_deleted(clerk_id: str, db: AsyncSession = Depends(get_db)) -> StatusResponse:
    removed = await delete_identity_user(db, clerk_id)
    await db.commit()
    return StatusResponse(status="deleted" if removed else "not_found")


@router.put("/identity/users/{clerk_id}/payment-account", response_model=UserOut)
async def identity_payment_account(
    clerk_id: str,
    payload: PaymentAccountUpdate,
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await update_payment_account(
        db,
        clerk_id=clerk_id,
        stripe_connect_id=payload.stripe_connect_id,
        onboarding_complete=payload.onboarding_complete,
    )
    await db.commit()
    return UserOut.model_validate(user)
