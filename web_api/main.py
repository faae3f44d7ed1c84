"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.context import AppContext, build_context
from web_api.routers import aggregation, health, statistics
from web_api.schemas import ErrorResponse


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the API around an application context.

    The context is started and stopped with the application lifespan.
    """
    context = context or build_context()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await context.start()
        try:
            yield
        finally:
            await context.stop()

    app = FastAPI(
        title="Source Aggregation API",
        description="Aggregates items from several external sources and tracks their performance.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = context

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="Invalid request", message=str(exc.errors())).model_dump(),
        )

    # Include Routers
    app.include_router(aggregation.router)
    app.include_router(statistics.router)
    app.include_router(health.router)

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Source Aggregation API is running"}

    return app
