import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from socdrc import __version__
from socdrc.api.routes import router
from socdrc.config import CORS_ORIGINS

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title="SoC Architecture DRC",
    version=__version__,
)

# Middleware first
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes after middleware
app.include_router(router)
