from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import auth, courses, progress, users
from app.config import get_settings
from app.core.exceptions import access_denied_exception_handler, database_exception_handler, global_exception_handler, http_exception_handler, not_found_exception_handler, request_validation_exception_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.services.access_policy import AccessDeniedError
from app.services.courses import ResourceNotFoundError

settings = get_settings()

app = FastAPI(title="Courseline", lifespan=lifespan, docs_url="/docs" if settings.debug else None, redoc_url=None, openapi_url="/openapi.json" if settings.debug else None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PATCH", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(AccessDeniedError, access_denied_exception_handler)
app.add_exception_handler(ResourceNotFoundError, not_found_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/profile", tags=["profile"])
app.include_router(courses.router, prefix="/v1/courses", tags=["courses"])
app.include_router(progress.router, prefix="/v1", tags=["progress"])
