import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Table registration for create_all
from . import (
    models,  # noqa: F401
    models_invoice,  # noqa: F401
)
from .config import CLINIC_NAME, CLINIC_TIMEZONE, FRONTEND_URL
from .database import Base, engine
from .domain.billing.router import router as invoices_router
from .domain.scheduling.router import router as appointments_router
from .routes.reminders import router as reminders_router
from .shared.errors import SchedulingError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Twilio calls go through httpx; its request lines drown out ours
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🏥 {CLINIC_NAME} scheduling API starting ({CLINIC_TIMEZONE})")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Tables ready")
    except Exception as e:
        # Several uvicorn workers may race on the first create_all
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Tables already created by another worker")
        else:
            logger.error(f"❌ Could not create tables: {e}")
    yield
    logger.info("Scheduling API stopped")


app = FastAPI(title="Clinic Scheduling API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    """Validation, not-found and authorization errors from the domain services"""
    logger.warning(f"{type(exc).__name__} for {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log malformed request bodies before answering 422"""
    errors = exc.errors()
    logger.warning(f"Invalid request body for {request.url.path}: {errors}")
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


app.include_router(appointments_router)
app.include_router(invoices_router)
app.include_router(reminders_router)


@app.get("/health")
async def health():
    return {"status": "ok", "clinic": CLINIC_NAME}
