# app/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
import uvicorn

from app.api import create_app
from app.data.database import Base, engine
from app.utils.logging import get_logger

# IMPORT WSZYSTKICH MODELI PRZED CREATE_ALL
from app.data import models  # noqa: F401

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")
    yield


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
