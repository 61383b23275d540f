import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from sqlchat.core.config import settings
from sqlchat.core.database import get_app_db
from sqlchat.core.exceptions import DatabaseConfigNotFoundError, UnsupportedDialectError
from sqlchat.core.logging import setup_logging
from sqlchat.api.routes import ai_settings, chat, databases

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Initializing SQL Chat API...")
    # Ensure metadata tables exist
    get_app_db()
    yield


app = FastAPI(title="SQL Chat API", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation Error for %s: %s", request.url, exc.errors())
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(DatabaseConfigNotFoundError)
async def config_not_found_handler(request: Request, exc: DatabaseConfigNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(UnsupportedDialectError)
async def unsupported_dialect_handler(request: Request, exc: UnsupportedDialectError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(chat.router, prefix="/api")
app.include_router(ai_settings.router, prefix="/api")
app.include_router(databases.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
