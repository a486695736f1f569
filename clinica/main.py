from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from clinica.core.config import settings
from clinica.core.errors import GENERIC_ERROR_MESSAGE, friendly_error_message
from clinica.core.logger import logger
from clinica.core.notifications import NotificationCenter
from clinica.core.redis import redis_client
from clinica.middleware.log_middleware import LogMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.notifications = NotificationCenter()
    logger.info(f"{settings.PROJECT_NAME} iniciado")
    yield
    app.state.notifications.reset()
    await redis_client.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LogMiddleware)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Unique indexes catch races the service-level checks missed
    logger.warning(f"IntegrityError on {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content={"detail": friendly_error_message(exc)})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": GENERIC_ERROR_MESSAGE})


@app.get("/")
async def root():
    return {"message": f"Bienvenido a {settings.PROJECT_NAME} API"}


from clinica.api.api import api_router
app.include_router(api_router, prefix=settings.API_V1_STR)
