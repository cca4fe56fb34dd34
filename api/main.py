"""
FastAPI application for the Adaptive Practice Interview Engine.
Provides API endpoints for the candidate-facing practice app.

Run with: uvicorn api.main:app --reload --port 8000
"""
from pathlib import Path
import logging
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes.interview import error_body, router as interview_router, status_for_error
from errors import InterviewEngineError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Practice Interview API",
    description="API for the candidate-facing practice interview interface",
    version="1.0.0"
)

# Configure CORS for React frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev port
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(interview_router)


@app.exception_handler(InterviewEngineError)
async def engine_error_handler(request: Request, exc: InterviewEngineError):
    status = status_for_error(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=error_body(exc))


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Practice Interview API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
