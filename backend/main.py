"""
Image Loader Service

Run with:
    cd backend
    uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from image_loader import router as image_loader_router
from image_loader.routes_fastapi import close_image_loader

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_image_loader()


app = FastAPI(title="Image Loader", lifespan=lifespan)
app.include_router(image_loader_router)
