from fastapi import APIRouter, Depends, Query

from campusrsvp.api.deps import get_store
from campusrsvp.core.security import get_current_user_id
from campusrsvp.schemas.notification import NotificationResponse
from campusrsvp.services.rsvp_store import RsvpStore

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=list[NotificationResponse])
async def list_my_notifications(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    store: RsvpStore = Depends(get_store),
):
    """Your notifications, newest first (waitlist promotions and the like)."""
    return await store.list_notifications(user_id, limit=limit)
