from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from app.db import TORTOISE_ORM, install_overlap_constraint
from app.errors import install_error_handlers
from app.routers.booking import router as booking_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with RegisterTortoise(app, config=TORTOISE_ORM, generate_schemas=True):
        await install_overlap_constraint()
        logger.info("reservations-ms started")
        yield
    logger.info("reservations-ms stopped")


def create_app() -> FastAPI:
    app = FastAPI(title="Reservations Service", lifespan=lifespan)
    install_error_handlers(app)
    app.include_router(booking_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "reservations-ms"}

    return app


app = create_app()
