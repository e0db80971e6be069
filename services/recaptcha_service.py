"""
Google reCAPTCHA v3 verification
Checks a client token against the siteverify endpoint and applies the score threshold
"""
import logging
import math
from typing import Optional

import httpx

from models.submission import VerificationResult
from services.errors import (
    UpstreamFailureError,
    VerificationRejectedError,
    VerificationUnavailableError,
)

logger = logging.getLogger("backend.recaptcha")

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaVerifier:
    """Verifies reCAPTCHA tokens with a shared secret.

    ``transport`` is only overridden in tests.
    """

    def __init__(
        self,
        secret: str,
        threshold: float = 0.5,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret = secret
        self.threshold = threshold
        self.timeout = timeout
        self._transport = transport

    async def verify(self, token: Optional[str], remoteip: str = "") -> VerificationResult:
        """
        Verify a token and return an accepted VerificationResult.

        Raises:
            VerificationUnavailableError: no secret configured (fail closed)
            VerificationRejectedError: missing token, success=false or low score
            UpstreamFailureError: network error, timeout or unusable response
        """
        if not self.secret:
            logger.error("reCAPTCHA enabled but RECAPTCHA_SECRET is not configured")
            raise VerificationUnavailableError(detail="RECAPTCHA_SECRET not configured")

        token = (token or "").strip() if isinstance(token, str) else ""
        if not token:
            raise VerificationRejectedError(
                "Missing reCAPTCHA token",
                result=VerificationResult(accepted=False, reason="missing-token"),
            )

        form = {"secret": self.secret, "response": token}
        if remoteip:
            form["remoteip"] = remoteip

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(RECAPTCHA_VERIFY_URL, data=form)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("reCAPTCHA verify returned %s: %s", e.response.status_code, e.response.text)
            raise UpstreamFailureError(
                detail=f"reCAPTCHA verification error: siteverify returned HTTP {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            logger.error("reCAPTCHA verify request failed: %s", e)
            raise UpstreamFailureError(detail=f"reCAPTCHA verification error: {str(e) or type(e).__name__}")
        except ValueError as e:
            logger.error("reCAPTCHA verify returned non-JSON body: %s", e)
            raise UpstreamFailureError(detail="reCAPTCHA verification error: invalid response from siteverify")

        if not isinstance(data, dict):
            raise UpstreamFailureError(detail="reCAPTCHA verification error: invalid response from siteverify")

        action = data.get("action")
        if not data.get("success"):
            codes = data.get("error-codes")
            logger.info("reCAPTCHA rejected token error_codes=%s", codes)
            raise VerificationRejectedError(
                result=VerificationResult(
                    accepted=False,
                    reason=",".join(str(c) for c in codes) if isinstance(codes, list) and codes else "verification-failed",
                    action=action,
                )
            )

        score = _coerce_score(data.get("score"))
        if score < self.threshold:
            logger.info("reCAPTCHA score too low score=%s threshold=%s action=%s", score, self.threshold, action)
            raise VerificationRejectedError(
                "reCAPTCHA score too low; request looks automated",
                result=VerificationResult(accepted=False, score=score, reason="score-below-threshold", action=action),
            )

        logger.info("reCAPTCHA ok score=%s action=%s", score, action)
        return VerificationResult(accepted=True, score=score, action=action)


def _coerce_score(raw) -> float:
    # A success response without a usable score counts as 0.0
    if isinstance(raw, bool):
        return 0.0
    try:
        score = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(score) else score
