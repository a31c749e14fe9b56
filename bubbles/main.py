from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import chat, conversations, health, holders, tools
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()

app = FastAPI(
    title="Bubbles API",
    description="W Chain holder analytics and conversational assistant",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(chat.router, tags=["Chat"])
app.include_router(conversations.router, tags=["Conversations"])
app.include_router(holders.router, tags=["Holders"])
app.include_router(holders.tiers_router, tags=["Holders"])
app.include_router(tools.router, tags=["Tools"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Bubbles API",
        "version": "0.1.0",
        "description": "W Chain holder analytics and conversational assistant",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bubbles.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
