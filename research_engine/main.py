from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from research_engine.api.routes import callbacks, research
from research_engine.config import get_settings
from research_engine.core.exceptions import global_exception_handler, http_exception_handler, request_validation_exception_handler, research_exception_handler
from research_engine.core.lifespan import lifespan
from research_engine.core.middleware import RequestLoggingMiddleware
from research_engine.research.errors import ResearchError

settings = get_settings()

app = FastAPI(title="Research Engine", version="0.1.0", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization", "x-request-id"], expose_headers=["x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(ResearchError, research_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(research.router, prefix="/v1/research", tags=["research"])
app.include_router(callbacks.router, prefix="/internal", tags=["callbacks"])
