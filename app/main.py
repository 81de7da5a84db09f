# app/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from app import models
from app.database import engine
from app.exceptions import ValidationError, NotFoundError, validation_error_handler, not_found_error_handler
from app.routers import notifications, social, realtime
from app.services import scheduler
from app.services.connection_registry import ConnectionRegistry
from app.services.notification_emitter import NotificationEmitter
from app.services.realtime import WebSocketHub
import time
import os
from dotenv import load_dotenv
import logging
import sys


load_dotenv()

# Logging Configuration
date_format_string = "%d %B %Y %H:%M:%S"
log_formatter = logging.Formatter(
    fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt=date_format_string
)
log_file_handler = logging.FileHandler(os.getenv("LOG_FILE", "app.log"))
log_file_handler.setFormatter(log_formatter)
log_stream_handler = logging.StreamHandler(sys.stdout)
log_stream_handler.setFormatter(log_formatter)
logger = logging.getLogger()
logger.setLevel(logging.INFO)
logger.addHandler(log_file_handler)
logger.addHandler(log_stream_handler)
logger.info("Application starting up...")

try:
    models.Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully.")
except Exception as e:
    logger.error(f"Error creating database tables: {e}", exc_info=True)
    raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler_enabled = os.getenv("ENABLE_SCHEDULER", "true").lower() == "true"
    if scheduler_enabled:
        scheduler.start_scheduler()
    yield
    if scheduler_enabled:
        scheduler.shutdown_scheduler()


app = FastAPI(lifespan=lifespan)

# One registry per process, shared by the socket hub and the emitter
app.state.registry = ConnectionRegistry()
app.state.hub = WebSocketHub(app.state.registry)
app.state.emitter = NotificationEmitter(app.state.hub, app.state.registry)

app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(NotFoundError, not_found_error_handler)


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    client = f"{request.client.host}:{request.client.port}" if request.client else "unknown"
    logger.info(
        f"Request: {client} - "
        f"{request.method} {request.url.path} "
        f"Status: {response.status_code} "
        f"Processing Time: {process_time:.4f}s"
    )
    return response

app.include_router(notifications.router)
app.include_router(social.router)
app.include_router(realtime.router)

@app.get("/")
def read_root():
    return {"message": "Nice try :)"}

logger.info("Application setup complete.")
