# checkout/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from checkout.api import create_app
from checkout.data.database import Base, engine
from checkout.data.seed import seed
from checkout.utils.logging import get_logger
import uvicorn

# import all models before create_all
import checkout.data.models  # noqa: F401

logger = get_logger(__name__)


def init_db():
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    seed()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
