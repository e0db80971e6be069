"""
Per-request result models for form submissions
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class VerificationResult(BaseModel):
    """Outcome of a reCAPTCHA check; computed fresh per request"""
    model_config = ConfigDict(frozen=True)

    accepted: bool
    score: Optional[float] = None
    reason: Optional[str] = None
    action: Optional[str] = None


class SubmissionOutcome(BaseModel):
    """What the pipeline hands back to the transport layer"""
    accepted: bool
    status_code: int = 200
    message: str = ""
    rows_appended: int = 0
    error_detail: Optional[str] = None
    score: Optional[float] = Field(default=None, exclude=True)

    def to_response(self) -> Dict[str, Any]:
        """JSON body returned to the caller"""
        if self.accepted:
            return {
                "success": True,
                "message": self.message,
                "updatedRows": self.rows_appended,
            }
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.error_detail:
            body["error"] = self.error_detail
        return body
