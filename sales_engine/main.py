import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from sales_engine.api.responses import failure
from sales_engine.api.routes.allocations import router as allocations_router
from sales_engine.api.routes.history import router as history_router
from sales_engine.api.routes.offers import router as offers_router
from sales_engine.api.routes.payment_plans import router as payment_plans_router
from sales_engine.api.routes.properties import router as properties_router
from sales_engine.api.routes.reservations import router as reservations_router
from sales_engine.api.routes.sales import router as sales_router
from sales_engine.core.config import settings
from sales_engine.core.database import SessionLocal
from sales_engine.core.errors import EngineError
from sales_engine.core.logging import setup_logging

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)

# 1) Create the app FIRST
app = FastAPI(title="Property Sales Transaction Engine")

# 2) Add CORS Middleware BEFORE routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 3) Every failure leaves as a tagged result
@app.exception_handler(EngineError)
def engine_error_handler(request: Request, exc: EngineError):
    return JSONResponse(status_code=exc.status_code, content=failure(exc))


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "payload": {"code": "HTTPError"}},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid request",
            "payload": {"code": "ValidationFailed", "errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: RequestValidationError):
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]


# 4) Include routers AFTER app is created
app.include_router(properties_router)
app.include_router(reservations_router)
app.include_router(sales_router)
app.include_router(offers_router)
app.include_router(allocations_router)
app.include_router(payment_plans_router)
app.include_router(history_router)


# 5) Health check endpoints
@app.get("/health")
def health():
    return {"ok": True, "service": "sales-engine"}


@app.get("/db-health")
def db_health():
    db = SessionLocal()
    try:
        db.execute(text("select 1"))
        return {"ok": True, "db": "connected"}
    finally:
        db.close()
