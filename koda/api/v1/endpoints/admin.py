from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from koda.core.db import get_db
from koda.schemas.user import BanToggleOut, RoleUpdate, UserCountOut, UserFilters, UserOut
from koda.services.auth import Actor, require_admin
from koda.services.users import count_users, delete_user, filter_users, set_user_role, toggle_ban

router = APIRouter(prefix="/admin")


@router.get("/users", response_model=list[UserOut])
async def admin_list_users(
    filters: UserFilters = Depends(),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[UserOut]:
    return [UserOut.model_validate(u) for u in await filter_users(db, filters)]


@router.get("/users/count", response_model=UserCountOut)
async def admin_count_users(
    filters: UserFilters = Depends(),
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserCountOut:
    return UserCountOut(count=await count_users(db, filters))


@router.put("/users/{clerk_id}/role", response_model=UserOut)
async def admin_set_role(
    clerk_id: str,
    payload: RoleUpdate,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await set_user_role(db, clerk_id, payload.role)
    await db.commit()
    return UserOut.model_validate(user)


@router.post("/users/{clerk_id}/ban", response_model=BanToggleOut)
async def admin_toggle_ban(
    clerk_id: str,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BanToggleOut:
    user = await toggle_ban(db, admin_id=actor.user_id, clerk_id=clerk_id)
    await db.commit()
    return BanToggleOut(clerk_id=user.clerk_id, is_banned=user.is_banned)


@router.delete("/users/{clerk_id}")
async def admin_delete_user(
    clerk_id: str,
    actor: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    removed = await delete_user(db, clerk_id)
    await db.commit()
    return {"status": "deleted", "clerk_id": clerk_id, "listings_removed": removed}
