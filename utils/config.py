"""
Runtime configuration for the form submission service.

Built once at startup from environment variables (optionally seeded from a
.env file) and passed into the pipeline; nothing reads os.environ after that.
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SHEET_RANGE = "Sheet1!A:Z"
DEFAULT_TOKEN_FIELD = "recaptchaToken"


class AppConfig(BaseModel):
    """Immutable service configuration"""
    model_config = ConfigDict(frozen=True)

    spreadsheet_id: str = ""
    sheet_range: str = DEFAULT_SHEET_RANGE
    client_email: str = ""
    private_key: str = ""

    recaptcha_enabled: bool = False
    recaptcha_secret: str = ""
    recaptcha_score_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    recaptcha_token_field: str = DEFAULT_TOKEN_FIELD

    cors_allowed_origins: List[str] = Field(default_factory=list)
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    port: int = 3000

    @field_validator("private_key")
    def unescape_private_key(cls, v):
        """Keys pasted into env files usually carry literal \\n sequences"""
        return (v or "").replace("\\n", "\n")

    @field_validator("recaptcha_token_field")
    def validate_token_field(cls, v):
        v = (v or "").strip()
        return v or DEFAULT_TOKEN_FIELD

    @property
    def sheets_configured(self) -> bool:
        return bool(self.spreadsheet_id and self.client_email and self.private_key)


def _load_env_file() -> None:
    # Do not override the shell environment
    try:
        load_dotenv(override=False)
        repo_env = Path(__file__).resolve().parents[1] / ".env"
        if repo_env.exists():
            load_dotenv(dotenv_path=str(repo_env), override=False)
    except Exception:
        pass


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


def _env_bool(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def load_config(read_env_file: bool = True) -> AppConfig:
    """Build an AppConfig from the process environment.

    Raises pydantic.ValidationError on malformed numeric settings.
    """
    if read_env_file:
        _load_env_file()

    values = {
        "spreadsheet_id": os.getenv("GOOGLE_SPREADSHEET_ID", ""),
        "sheet_range": os.getenv("GOOGLE_SHEET_RANGE") or DEFAULT_SHEET_RANGE,
        "client_email": os.getenv("GOOGLE_CLIENT_EMAIL", ""),
        "private_key": os.getenv("GOOGLE_PRIVATE_KEY", ""),
        "recaptcha_enabled": _env_bool("RECAPTCHA_ENABLED"),
        "recaptcha_secret": os.getenv("RECAPTCHA_SECRET", ""),
        "recaptcha_token_field": os.getenv("RECAPTCHA_TOKEN_FIELD", DEFAULT_TOKEN_FIELD),
        "cors_allowed_origins": _split_origins(os.getenv("CORS_ALLOWED_ORIGINS")),
    }
    # Unset numeric settings fall back to model defaults
    for key, env in (
        ("recaptcha_score_threshold", "RECAPTCHA_SCORE_THRESHOLD"),
        ("http_timeout_seconds", "HTTP_TIMEOUT_SECONDS"),
        ("port", "PORT"),
    ):
        raw = (os.getenv(env) or "").strip()
        if raw:
            values[key] = raw
    return AppConfig(**values)
