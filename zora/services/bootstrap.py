from sqlalchemy.orm import Session

from zora.config import settings
from zora.models.core import User, UserRole, Warehouse
from zora.services import cash
from zora.util.logs import get_logger
from zora.util.security import hash_pw

log = get_logger("zora.bootstrap")


def seed(db: Session, open_cash: bool | None = None) -> dict:
    """Idempotent first-run data: admin user, default warehouse, open till."""
    if open_cash is None:
        open_cash = settings.AUTO_OPEN_CASH_SESSION

    u = db.query(User).filter(User.username == settings.ADMIN_USERNAME).first()
    if not u:
        u = User(
            username=settings.ADMIN_USERNAME,
            name="Administrator",
            pass_hash=hash_pw(settings.ADMIN_PASSWORD),
            role=UserRole.ADMIN,
            active=True,
        )
        db.add(u); db.flush()
        log.info("created admin user %s", u.username)

    wh = db.query(Warehouse).filter(Warehouse.name == settings.DEFAULT_WAREHOUSE).first()
    if not wh:
        wh = Warehouse(name=settings.DEFAULT_WAREHOUSE)
        db.add(wh); db.flush()
        log.info("created warehouse %s", wh.name)

    session = cash.get_open_session(db, wh.id)
    if not session and open_cash:
        session = cash.open_session(db, wh.id, 0, u.id, notes="opened automatically at startup")

    return {
        "admin_user_id": u.id,
        "username": u.username,
        "warehouse_id": wh.id,
        "cash_session_id": session.id if session else None,
    }
