from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin
from zora.models.core import User
from zora.schemas.users import UserIn, UserUpdate
from zora.util.security import hash_pw
from zora.util.serialize import user_out

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/")
def list_users(db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    return [user_out(u) for u in db.query(User).order_by(User.created_at.desc()).limit(500).all()]


@router.post("/")
def create_user(body: UserIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    if db.query(User).filter(User.username == body.username).first():
        raise HTTPException(409, detail="Username already exists")
    u = User(
        username=body.username, name=body.name, email=body.email,
        pass_hash=hash_pw(body.password), role=body.role, active=True,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return user_out(u)


@router.put("/{user_id}")
def update_user(user_id: str, body: UserUpdate, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(404, detail="user not found")
    data = body.model_dump(exclude_unset=True)
    if user_id == sub and (data.get("active") is False or data.get("role") not in (None, u.role)):
        raise HTTPException(400, detail="You cannot deactivate or demote yourself")
    if data.get("password"):
        u.pass_hash = hash_pw(data.pop("password"))
    for k, v in data.items():
        if v is not None:
            setattr(u, k, v)
    db.commit()
    db.refresh(u)
    return user_out(u)


@router.delete("/{user_id}")
def deactivate_user(user_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(404, detail="user not found")
    if u.id == sub:
        raise HTTPException(400, detail="You cannot deactivate yourself")
    u.active = False
    db.commit()
    return {"ok": True}
