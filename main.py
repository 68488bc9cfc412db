import contextlib
import logging

import uvicorn
from fastapi import FastAPI

from uploader.config import config
from uploader.db.session import init_db
from uploader.exceptions import register_exception_handlers
from uploader.routers import register_routers

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI):
    config.STAGING_PATH.mkdir(parents=True, exist_ok=True)
    config.STORAGE_PATH.mkdir(parents=True, exist_ok=True)
    await init_db()
    yield


app = FastAPI(title="Resumable Upload API", lifespan=lifespan)
register_exception_handlers(app)
register_routers(app)


if __name__ == "__main__":
    uvicorn.run(app, host=config.FASTAPI_HOST, port=config.FASTAPI_PORT)
