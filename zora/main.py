from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from zora.config import settings
from zora.db import Base, SessionLocal, engine
from zora.middleware import RequestIdMiddleware
from zora.services.bootstrap import seed
from zora.services.errors import NotFound
from zora.util.logs import get_logger

import zora.models  # noqa: F401  (tables for create_all)
from zora.routers import (
    accounting, admin, auth, cash, expenses, inventory, loans, notifications, orders, products,
    purchases, returns, sales, users, warehouses,
)

log = get_logger("zora")

app = FastAPI(title="Zora POS API", version="1.0.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        out = seed(db)
        db.commit()
    log.info("startup complete (env=%s, warehouse=%s, cash session=%s)",
             settings.APP_ENV, out["warehouse_id"], out["cash_session_id"])

# Business-rule errors raised by services
@app.exception_handler(ValueError)
def value_error(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

@app.exception_handler(NotFound)
def not_found(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(PermissionError)
def forbidden(request: Request, exc: PermissionError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})

@app.exception_handler(IntegrityError)
def conflict(request: Request, exc: IntegrityError):
    log.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "Conflicts with existing data"})

@app.exception_handler(RequestValidationError)
def invalid_request(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": "Invalid request",
                                                  "errors": jsonable_encoder(exc.errors())})

@app.exception_handler(Exception)
def unhandled(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(warehouses.router)
app.include_router(products.router)
app.include_router(inventory.router)
app.include_router(purchases.router)
app.include_router(notifications.router)
app.include_router(sales.router)
app.include_router(orders.router)
app.include_router(returns.router)
app.include_router(cash.router)
app.include_router(expenses.router)
app.include_router(loans.router)
app.include_router(accounting.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
