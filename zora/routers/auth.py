from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from zora.schemas.common import LoginIn, Token
from zora.util.security import create_token, verify_pw
from zora.util.serialize import user_out
from zora.models.core import User
from zora.db import get_db
from zora.deps import current_user

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == body.username).first()
    if not user or not user.active or not verify_pw(user.pass_hash, body.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(
        access_token=create_token(user.id, user.username, user.role.value),
        user_id=user.id, role=user.role.value,
    )

@router.get("/me")
def me(user: User = Depends(current_user)):
    return user_out(user)
