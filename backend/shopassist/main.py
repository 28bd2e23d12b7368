import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopassist.core.logging import setup_logging
from shopassist.core.services import registry_loader
from shopassist.api.routes import chat, general

setup_logging()
logger = logging.getLogger("shop.main")

app = FastAPI(title="Shop Assistant API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include Routers
app.include_router(general.router, prefix="/api", tags=["General"])
app.include_router(chat.router, prefix="/api", tags=["Chat"])


@app.on_event("startup")
async def startup_event():
    logger.info("Application starting up...")
    # A missing or broken default registry is fatal.
    registry_loader.load_default()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutting down...")
