import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from libra.config import settings
from libra.db import async_session, init_db
from libra.dependencies import ServiceContainer
from libra.routes import agent, chats, drive, health
from libra.services.posthog import shutdown_posthog

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()
    app.state.services = ServiceContainer(async_session)
    yield
    # Shutdown - release SDK and HTTP clients
    await app.state.services.aclose()
    shutdown_posthog()


app = FastAPI(
    title="Libra API",
    description="Tool-using agent over the web and your Google Drive",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agent.router, prefix="/api/agent", tags=["agent"])
app.include_router(chats.router, prefix="/api/chats", tags=["chats"])
app.include_router(drive.router, prefix="/api/drive", tags=["drive"])
app.include_router(health.router, prefix="/api/health", tags=["health"])
