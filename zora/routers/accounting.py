from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin
from zora.models.core import PriceSegment
from zora.services import accounting as svc

router = APIRouter(prefix="/accounting", tags=["accounting"])


@router.get("/summary")
def summary(start_date: date | None = None, end_date: date | None = None,
            price_segment: PriceSegment | None = None,
            db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    return svc.summary(db, start_date, end_date, price_segment)


@router.get("/sales-by-period")
def sales_by_period(start_date: date | None = None, end_date: date | None = None,
                    group_by: Literal["day", "week", "month", "year"] = "day",
                    price_segment: PriceSegment | None = None,
                    db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    return svc.sales_by_period(db, start_date, end_date, group_by, price_segment)


@router.get("/compare-segments")
def compare_segments(start_date: date | None = None, end_date: date | None = None,
                     db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    return svc.compare_segments(db, start_date, end_date)
