"""
Google Sheets append client authenticated with a service account.

Each append mints a fresh OAuth access token from a signed JWT assertion
(service-account bearer grant) and posts a single row to
spreadsheets.values.append.
"""
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import jwt

from services.errors import UpstreamFailureError

logger = logging.getLogger("backend.google_sheets")

SHEETS_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
OAUTH_TOKEN = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
JWT_ALGORITHM = "RS256"
ASSERTION_LIFETIME_SECONDS = 3600

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
]


def build_service_account_assertion(client_email: str, private_key: str, now: Optional[int] = None) -> str:
    """Sign the JWT exchanged for an access token at the OAuth token endpoint."""
    iat = int(now if now is not None else time.time())
    payload = {
        "iss": client_email,
        "scope": " ".join(SCOPES),
        "aud": OAUTH_TOKEN,
        "iat": iat,
        "exp": iat + ASSERTION_LIFETIME_SECONDS,
    }
    return jwt.encode(payload, private_key, algorithm=JWT_ALGORITHM)


def append_url(spreadsheet_id: str, rng: str) -> str:
    return (
        f"{SHEETS_BASE}/{quote(spreadsheet_id, safe='')}/values/{quote(rng, safe='')}:append"
        "?valueInputOption=USER_ENTERED&insertDataOption=INSERT_ROWS"
    )


class SheetsClient:
    """Appends rows to one configured spreadsheet range"""

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_range: str,
        client_email: str,
        private_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self.client_email = client_email
        self.private_key = private_key
        self.timeout = timeout
        self._transport = transport

    def _check_configured(self) -> None:
        missing = [
            name
            for name, value in (
                ("GOOGLE_SPREADSHEET_ID", self.spreadsheet_id),
                ("GOOGLE_CLIENT_EMAIL", self.client_email),
                ("GOOGLE_PRIVATE_KEY", self.private_key),
            )
            if not value
        ]
        if missing:
            raise UpstreamFailureError(detail=f"Google Sheets not configured: missing {', '.join(missing)}")

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        try:
            assertion = build_service_account_assertion(self.client_email, self.private_key)
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error("Failed to sign service account assertion: %s", e)
            raise UpstreamFailureError(detail=f"Invalid service account key: {e}")

        resp = await client.post(
            OAUTH_TOKEN,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
        )
        if resp.status_code != 200:
            logger.warning("Google token exchange failed: %s", resp.text)
            raise UpstreamFailureError(detail=f"Google token exchange failed: {resp.status_code} {resp.text}")
        token = _json(resp).get("access_token")
        if not token:
            raise UpstreamFailureError(detail="Google token exchange missing access_token")
        return token

    async def append_row(self, row: List[Any]) -> Dict[str, Any]:
        """
        Append one row and return the raw API response body.

        Raises UpstreamFailureError on configuration, network or API errors.
        """
        self._check_configured()
        body = {"range": self.sheet_range, "majorDimension": "ROWS", "values": [row]}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                token = await self._access_token(client)
                r = await client.post(
                    append_url(self.spreadsheet_id, self.sheet_range),
                    headers={"Authorization": f"Bearer {token}"},
                    json=body,
                )
                if r.status_code not in (200, 201):
                    logger.warning("Append to Google Sheet failed for %s: %s", self.spreadsheet_id, r.text)
                    raise UpstreamFailureError(detail=f"Google Sheets append failed: {r.status_code} {r.text}")
                return _json(r)
        except httpx.HTTPError as e:
            logger.error("Google Sheets request failed: %s", e)
            raise UpstreamFailureError(detail=str(e) or type(e).__name__)


def _json(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamFailureError(detail=f"Invalid response from Google: {e}")
    if not isinstance(data, dict):
        raise UpstreamFailureError(detail="Invalid response from Google: expected a JSON object")
    return data


def updated_rows(response: Dict[str, Any]) -> int:
    """updates.updatedRows from an append response, 0 when not reported"""
    updates = (response or {}).get("updates") if isinstance(response, dict) else None
    if not isinstance(updates, dict):
        return 0
    try:
        return int(updates.get("updatedRows") or 0)
    except (TypeError, ValueError):
        return 0
