"""Module: main."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vetmed.api.v1.api import api_router
from vetmed.core.config import settings
from vetmed.core.errors import register_exception_handlers
from vetmed.core.logging_setup import configure_logging
from vetmed.core.middleware.reqlog import RequestLogMiddleware
from vetmed.db.init_db import init_db

configure_logging()
logger = logging.getLogger("vetmed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("vetmed api started (default tz=%s)", settings.default_timezone)
    yield


app = FastAPI(title="VetMed Scheduling API", version="0.1.0", lifespan=lifespan)

app.include_router(api_router, prefix="/api/v1")
register_exception_handlers(app)

app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
