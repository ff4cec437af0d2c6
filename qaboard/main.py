"""
Main FastAPI application for the live classroom question board
"""

from fastapi import FastAPI

from qaboard.logging_config import configure_logging
from qaboard.routes import questions, sse

logger = configure_logging()

app = FastAPI(
    title="Classroom Question Board",
    description="Live lecture question board for students and TAs",
    version="0.1.0",
)

# Include routers
app.include_router(questions.router, tags=["questions"])
app.include_router(sse.router, tags=["sse"])


@app.get("/")
async def root() -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "ok", "message": "Classroom Question Board API"}


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint for monitoring"""
    return {"status": "healthy"}
