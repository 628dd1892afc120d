from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devicecheck.api.v1.router import api_router
from devicecheck.core.auth import TokenValidator
from devicecheck.core.config import settings
from devicecheck.core.store import CosmosDatabase
from devicecheck.services.container import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    application.state.token_validator = TokenValidator(settings.AZURE_AD_TENANT_ID, settings.AZURE_AD_CLIENT_ID)

    database = CosmosDatabase(settings)
    application.state.database = database
    application.state.services = None
    if database.configured:
        try:
            await database.open()
            application.state.services = build_services(database, settings)
        except Exception:
            logger.exception("Failed to open Cosmos DB, continuing without document store")
    else:
        logger.warning("Cosmos DB credentials missing, data endpoints will answer 503")
    yield
    await database.close()


app = FastAPI(
    title="Device Checker API",
    description="Employee device inspections",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "Device Checker API"}
