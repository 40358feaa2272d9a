from contextlib import asynccontextmanager

from fastapi import FastAPI

from koda.api.v1.router import router as v1_router
from koda.core.db import reset_engine
from koda.core.errors import install_error_handlers
from koda.core.telemetry import setup_telemetry


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await reset_engine()


app = FastAPI(title="Koda API", version="0.1.0", lifespan=lifespan)

setup_telemetry(app)
install_error_handlers(app)
app.include_router(v1_router)
