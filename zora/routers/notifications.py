from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_auth
from zora.models.core import Notification
from zora.services.inventory import resolve_notification
from zora.util.paging import paginate
from zora.util.serialize import notification_out

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/")
def list_notifications(
    response: Response,
    only_open: bool = True,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Notification)
    if only_open:
        q = q.filter(Notification.resolved_at.is_(None))
    rows, total, page, size = paginate(q.order_by(Notification.created_at.desc(), Notification.id), page, size)
    response.headers["X-Total-Count"] = str(total)
    return {"items": [notification_out(n) for n in rows], "total": total, "page": page, "size": size}


@router.patch("/{notification_id}/resolve")
def resolve(notification_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    n = resolve_notification(db, notification_id)
    db.commit()
    return notification_out(n)
