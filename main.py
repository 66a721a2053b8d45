# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retail_backend.core.config import LOG_LEVEL
from retail_backend.core.db import init_models
from retail_backend.core.exceptions import RetailError
from retail_backend.core.logging_config import configure_logging, get_logger
from retail_backend.middleware.request_logger import RequestLoggerMiddleware
from retail_backend.routers import billing, inventory, reports

configure_logging(level=LOG_LEVEL)
logger = get_logger("app")

app = FastAPI(
    title="Retail Backend API",
    description="FastAPI backend for order processing, returns and stock",
    version="0.1.0"
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # adjust for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggerMiddleware)


@app.exception_handler(RetailError)
async def retail_error_handler(request: Request, exc: RetailError):
    if exc.status_code >= 500:
        logger.error("request_failed", extra={"path": request.url.path}, exc_info=exc)
    else:
        logger.info(
            "request_rejected",
            extra={"path": request.url.path, "code": exc.code, "detail": exc.message},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}

# Register routers
app.include_router(billing.router)
app.include_router(inventory.router)
app.include_router(reports.router)


@app.on_event("startup")
async def on_startup():
    await init_models()
