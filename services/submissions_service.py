"""
Form submission pipeline: parse, verify, filter, append.

One linear path per request. Failures exit early as a SubmissionOutcome;
nothing is retried and nothing is kept between calls.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qsl

from models.submission import SubmissionOutcome
from services.errors import InvalidInputError, SubmissionError
from services.recaptcha_service import RecaptchaVerifier
from services.sheets_service import SheetsClient, updated_rows
from utils.config import AppConfig

logger = logging.getLogger("backend.submissions")

FormPayload = Dict[str, Any]

SUCCESS_MESSAGE = "Form data successfully added to Google Sheets"
FAILURE_MESSAGE = "Failed to submit form data"
FORM_URLENCODED = "application/x-www-form-urlencoded"


def _reject_constant(name: str):
    # NaN and Infinity are not JSON
    raise ValueError(f"Invalid JSON constant {name}")


def parse_payload(body: Union[bytes, str, None], content_type: str = "") -> FormPayload:
    """Decode a request body into an ordered, non-empty field mapping.

    JSON is the default; URL-encoded bodies are accepted when the content type
    says so. Raises InvalidInputError for anything else.
    """
    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidInputError(detail="Body is not valid UTF-8")
    if not body or not body.strip():
        raise InvalidInputError()

    if FORM_URLENCODED in (content_type or "").lower():
        data: Any = dict(parse_qsl(body, keep_blank_values=True))
    else:
        try:
            data = json.loads(body, parse_constant=_reject_constant)
        except ValueError:
            raise InvalidInputError(detail="Body is not valid JSON")

    if not isinstance(data, dict) or not data:
        raise InvalidInputError()
    return data


def filter_fields(payload: FormPayload, reserved: str) -> FormPayload:
    """Drop the verification token, keeping every other field in order"""
    return {k: v for k, v in payload.items() if k != reserved}


def build_row(payload: FormPayload) -> List[Any]:
    return list(payload.values())


class FormSubmissionPipeline:
    """Validates a submission and appends it to the configured sheet.

    ``verifier`` and ``sheets`` default to clients built from ``config``;
    tests pass their own.
    """

    def __init__(
        self,
        config: AppConfig,
        verifier: Optional[RecaptchaVerifier] = None,
        sheets: Optional[SheetsClient] = None,
    ):
        self.config = config
        self.verifier = verifier or RecaptchaVerifier(
            secret=config.recaptcha_secret,
            threshold=config.recaptcha_score_threshold,
            timeout=config.http_timeout_seconds,
        )
        self.sheets = sheets or SheetsClient(
            spreadsheet_id=config.spreadsheet_id,
            sheet_range=config.sheet_range,
            client_email=config.client_email,
            private_key=config.private_key,
            timeout=config.http_timeout_seconds,
        )

    async def submit(
        self,
        body: Union[bytes, str, None],
        content_type: str = "application/json",
        remoteip: str = "",
    ) -> SubmissionOutcome:
        try:
            payload = parse_payload(body, content_type)
            return await self.submit_payload(payload, remoteip=remoteip)
        except SubmissionError as e:
            return self._failure(e)

    async def submit_payload(self, payload: FormPayload, remoteip: str = "") -> SubmissionOutcome:
        """Run verification and append for an already-decoded payload"""
        token_field = self.config.recaptcha_token_field
        score = None
        try:
            if not isinstance(payload, dict) or not payload:
                raise InvalidInputError()

            logger.info("Received form data fields=%s", [k for k in payload if k != token_field])
            logger.debug("Received form data: %s", filter_fields(payload, token_field))

            if self.config.recaptcha_enabled:
                result = await self.verifier.verify(payload.get(token_field), remoteip=remoteip)
                score = result.score

            row = build_row(filter_fields(payload, token_field))
            response = await self.sheets.append_row(row)
            logger.info("Sheets API response: %s", response)

            return SubmissionOutcome(
                accepted=True,
                status_code=200,
                message=SUCCESS_MESSAGE,
                rows_appended=updated_rows(response),
                score=score,
            )
        except SubmissionError as e:
            return self._failure(e)
        except Exception as e:
            logger.exception("Error submitting form data")
            return SubmissionOutcome(
                accepted=False,
                status_code=500,
                message=FAILURE_MESSAGE,
                error_detail=str(e) or type(e).__name__,
            )

    def _failure(self, e: SubmissionError) -> SubmissionOutcome:
        if e.status_code >= 500:
            logger.error("Error submitting form data: %s (%s)", e.message, e.detail)
            detail = e.detail or e.message
            message = FAILURE_MESSAGE
        else:
            logger.info("Form submission rejected: %s (%s)", e.message, e.detail)
            detail = None
            message = e.message
        return SubmissionOutcome(
            accepted=False,
            status_code=e.status_code,
            message=message,
            error_detail=detail,
        )
