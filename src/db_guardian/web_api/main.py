"""
FastAPI Application
==================
Main entry point for the DB Guardian API.

Run with:
    uvicorn db_guardian.web_api.main:app --reload
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from db_guardian import __version__
from db_guardian.web_api.config import settings
from db_guardian.web_api.routers import analysis, health

# Create application
app = FastAPI(
    title="DB Guardian API",
    description="Static detection of database anti-patterns in SQL and ORM code",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(analysis.router, prefix="/api", tags=["Analysis"])


@app.get("/")
async def root():
    """Root endpoint - API info"""
    return {
        "name": "DB Guardian API",
        "version": __version__,
        "docs": "/docs" if settings.DEBUG else "disabled",
    }


# For running directly: python -m db_guardian.web_api.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
