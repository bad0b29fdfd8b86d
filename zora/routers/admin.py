from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from zora.db import get_db
from zora.config import settings
from zora.services.bootstrap import seed

router = APIRouter(prefix="/admin", tags=["admin"])

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")
    out = seed(db)
    db.commit()
    return out
