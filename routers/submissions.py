"""
Form submission endpoint
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from services.submissions_service import FormSubmissionPipeline

router = APIRouter(prefix="/api", tags=["submissions"])


def get_pipeline(request: Request) -> FormSubmissionPipeline:
    return request.app.state.pipeline


def _client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For wins over the socket peer
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else ""


@router.post("/submit-form")
async def submit_form(request: Request):
    """Append a form submission to the configured Google Sheet.

    Body: JSON object (or URL-encoded form) of field -> value, plus the
    reCAPTCHA token field when verification is enabled.
    """
    pipeline = get_pipeline(request)
    body = await request.body()
    outcome = await pipeline.submit(
        body,
        content_type=request.headers.get("content-type", ""),
        remoteip=_client_ip(request),
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_response())
