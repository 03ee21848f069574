"""ADR Map: FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from adrmap.api.routes import map_router, router
from adrmap.pipeline import run_pipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading map sources ...")
    app.state.context = await run_pipeline()
    logger.info("ADR Map is ready.")
    yield
    logger.info("Shutting down ADR Map.")


app = FastAPI(
    title="ADR Map",
    description=(
        "Mapa de departamentos clasificados por pertenencia a la red ADR "
        "y estadisticas de clientes agricolas."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
app.include_router(map_router)


@app.get("/", tags=["Root"])
def root():
    return {
        "name": "ADR Map",
        "version": "1.0.0",
        "map": "/map",
        "docs": "/docs",
    }
