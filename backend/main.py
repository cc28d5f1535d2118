"""Sitesmith Backend: FastAPI application entry point."""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.routes import projects, generate, preview
from backend.middleware.rate_limit import RateLimitMiddleware

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    from backend.database import init_db
    init_db()
    from backend.projects.store import SQLiteProjectStore
    app.state.project_store = SQLiteProjectStore()
    from backend.ai.completion import CompletionRouter
    from backend.projects.preview import PreviewRegistry
    from backend.projects.pipeline import GenerationPipeline
    from builder.assemble import BundleAssembler
    app.state.previews = PreviewRegistry()
    app.state.assembler = BundleAssembler()
    app.state.pipeline = GenerationPipeline(app.state.project_store, CompletionRouter(), app.state.previews)
    yield
    # Shut the preview browser down with the app
    await app.state.previews.close()


app = FastAPI(
    title="Sitesmith API",
    description="AI website builder: streamed generation with live sandboxed preview",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow frontend origins
_frontend_url = os.getenv("FRONTEND_URL")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[_frontend_url] if _frontend_url else [],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting: 60 req/min general, 10 req/min for generation routes
app.add_middleware(RateLimitMiddleware, requests_per_minute=60, ai_requests_per_minute=10)

# Register route modules
app.include_router(projects.router, prefix="/api", tags=["Projects"])
app.include_router(generate.router, prefix="/api", tags=["Generation"])
app.include_router(preview.router, prefix="/api", tags=["Preview"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "sitesmith-backend"}
