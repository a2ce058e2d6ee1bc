from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_active_user, get_current_user
from ..db import get_db
from ..errors import NotFound
from ..models.models import Notification, User
from ..schemas.common import Page
from ..schemas.notifications import MarkAllReadResponse, NotificationResponse, UnreadCountResponse
from ..services.pagination import PageParams, paginate


router = APIRouter(prefix="/notifications", tags=["notifications"])

NOTIFICATION_SORT_COLUMNS = {
    "id": Notification.id,
    "createdAt": Notification.created_at,
    "isRead": Notification.is_read,
}


def _feed(db: Session, user: User, is_read: Optional[bool] = None):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if is_read is not None:
        q = q.filter(Notification.is_read == is_read)
    return q


@router.get("", response_model=Page[NotificationResponse])
def list_notifications(
    params: PageParams = Depends(),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    List notifications for the current user, newest first by default.
    """
    return paginate(_feed(db, user, is_read), params, NotificationResponse, NOTIFICATION_SORT_COLUMNS, Notification.id)


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Same query as the unread listing, so the counter cannot drift from the feed.
    """
    return UnreadCountResponse(count=_feed(db, user, is_read=False).count())


@router.put("/read-all", response_model=MarkAllReadResponse)
def mark_all_as_read(db: Session = Depends(get_db), user: User = Depends(get_active_user)):
    updated = _feed(db, user, is_read=False).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return MarkAllReadResponse(updated=updated)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_active_user),
):
    notification = _feed(db, user).filter(Notification.id == notification_id).first()
    if notification is None:
        raise NotFound("Notification not found")
    # Re-marking is a no-op
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification
