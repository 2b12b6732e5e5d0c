"""
FastAPI application entry point

Candidate generation and AI ranking backend
"""
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from loguru import logger

from candidate_ranker import __version__
from candidate_ranker.core.config import settings
from candidate_ranker.core.database import init_db, close_db
from candidate_ranker.core.logging_config import setup_logging
from candidate_ranker.core.response import success_response, DictResponse
from candidate_ranker.core.security import api_rate_limit, create_rate_limiters
from candidate_ranker.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from candidate_ranker.agents.llm_client import get_llm_client
from candidate_ranker.api import api_router


def custom_generate_unique_id(route: APIRoute) -> str:
    """Use the route function name as the OpenAPI operationId"""
    return route.name


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Starting {} ({} environment, debug={})", settings.app_name, settings.app_env, settings.debug)

    await init_db()
    logger.info("Database initialized")

    yield

    await close_db()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Generate candidates with AI and rank them against a position",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        generate_unique_id_function=custom_generate_unique_id,
    )
    app.state.rate_limiters = create_rate_limiters()

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix="/api/v1", dependencies=[Depends(api_rate_limit)])

    @app.get("/health", tags=["System"], response_model=DictResponse)
    async def health_check():
        return success_response(data={"status": "healthy"})

    @app.get("/", tags=["System"], response_model=DictResponse)
    async def root():
        return success_response(data={
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs" if settings.debug else None,
            "llm_configured": get_llm_client().is_configured(),
        })

    # CORS must be added last so it runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()
