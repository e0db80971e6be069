import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from routers.health import router as health_router
from routers.submissions import router as submissions_router
from services.submissions_service import FAILURE_MESSAGE, FormSubmissionPipeline
from utils.config import AppConfig, load_config
from utils.cors import EmptyPreflightCORSMiddleware
from utils.logger import log_requests, setup_logging

setup_logging()

logger = logging.getLogger("backend")


def _add_cors(app: FastAPI, config: AppConfig) -> None:
    # Allow-listed origins are matched exactly; others get no ACAO header.
    if config.cors_allowed_origins:
        app.add_middleware(
            EmptyPreflightCORSMiddleware,
            allow_origins=list(config.cors_allowed_origins),
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
    else:
        app.add_middleware(
            EmptyPreflightCORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,  # Must be False when allow_origins=["*"]
            allow_methods=["*"],
            allow_headers=["*"],
        )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail or "Request failed")},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content={"success": False, "message": "Invalid request."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": FAILURE_MESSAGE, "error": str(exc) or type(exc).__name__},
        )


def create_app(
    config: Optional[AppConfig] = None,
    pipeline: Optional[FormSubmissionPipeline] = None,
) -> FastAPI:
    """Build the ASGI app around one configured pipeline."""
    config = config or load_config()
    app = FastAPI(title="Form Submission API")
    app.state.config = config
    app.state.pipeline = pipeline or FormSubmissionPipeline(config)

    _register_exception_handlers(app)
    _add_cors(app, config)
    # Outermost, so CORS and error responses are logged too
    app.middleware("http")(log_requests)

    app.include_router(health_router)
    app.include_router(submissions_router)

    if config.recaptcha_enabled and not config.recaptcha_secret:
        logger.warning("RECAPTCHA_ENABLED is set but RECAPTCHA_SECRET is empty; submissions will be rejected")
    if not config.sheets_configured:
        logger.warning("Google Sheets credentials are incomplete; submissions will fail")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=app.state.config.port)
