from fastapi import APIRouter, Depends

from koda.schemas.user import MeOut
from koda.services.auth import Actor, get_actor

router = APIRouter()

@router.get("/me", response_model=MeOut)
async def me(actor: Actor = Depends(get_actor)) -> MeOut:
    return MeOut(user_id=actor.user_id, role=actor.role, seller_ready=actor.seller_ready)
