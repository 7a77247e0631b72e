"""
CRM Command Interpreter API
FastAPI application: command endpoint, user administration and health.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .identity import IdentityProvider, StoreIdentityProvider
from .schemas import ErrorResponse, HealthResponse
from ..agents.dispatcher import OperationDispatcher
from ..agents.oracle import OllamaOracle
from ..agents.orchestrator import CommandOrchestrator
from ..agents.router import CommandRouter
from ..core import config
from ..core.config import VERSION, debug_enabled
from ..core.errors import CommandError
from ..core.store import DocumentStore
from util.logging import logger


def _error_response(status_code: int, error_type: str, message: str, retryable: bool = False,
                    details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body = ErrorResponse(
        error_type=error_type,
        message=message,
        retryable=retryable,
        details=details or {},
        timestamp=datetime.now(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _register_error_handlers(app: FastAPI):
    @app.exception_handler(CommandError)
    def command_error_handler(request: Request, exc: CommandError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message} {exc.details}")
        else:
            logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
        return _error_response(exc.status_code, exc.code, exc.message, exc.retryable, exc.details)

    @app.exception_handler(RequestValidationError)
    def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = [f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()]
        return _error_response(400, "INVALID_ARGUMENT", "The request is missing required information.",
                               details={"problems": problems})

    @app.exception_handler(Exception)
    def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}")
        details = {"debug": f"{type(exc).__name__}: {exc}"} if debug_enabled() else {}
        return _error_response(500, "INTERNAL", "The request could not be completed.", details=details)


def create_app(store: Optional[DocumentStore] = None, oracle=None,
               identity_provider: Optional[IdentityProvider] = None) -> FastAPI:
    """
    Build the application with explicit collaborators.

    Args:
        store: Document store (defaults to SQLite at DB_PATH)
        oracle: Object with ask(command) -> OracleReply (defaults to Ollama)
        identity_provider: Token -> Identity resolver (defaults to the users collection)
    """
    store = store if store is not None else DocumentStore()
    oracle = oracle if oracle is not None else OllamaOracle()
    identity_provider = identity_provider if identity_provider is not None else StoreIdentityProvider(store)

    app = FastAPI(
        title="CRM Command Interpreter API",
        version=VERSION,
        description="Natural-language command interpreter for a small-business CRM",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.identity_provider = identity_provider
    app.state.orchestrator = CommandOrchestrator(CommandRouter(oracle), OperationDispatcher(store), store)

    _register_error_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint():
        """Check system health."""
        health = app.state.orchestrator.health_check()
        return HealthResponse(
            status="healthy" if health["store"] else "unhealthy",
            version=VERSION,
            db_health=health["store"],
            oracle_health=health["oracle"],
            model_name=getattr(oracle, "model", "unknown"),
        )

    if config.COMMAND_API_ENABLED:
        from .commands import router as command_router
        app.include_router(command_router)

    if config.ADMIN_API_ENABLED:
        from .users import router as users_router
        app.include_router(users_router)

    for issue in config.validate_config():
        logger.warning(f"Configuration issue: {issue}")

    return app


app = create_app()


def run():
    """Serve the API with uvicorn; host and port come from config."""
    uvicorn.run("src.api.main:app", host=config.API_HOST, port=config.API_PORT, reload=debug_enabled())


if __name__ == "__main__":
    run()
