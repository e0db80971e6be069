import json
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from services.recaptcha_service import RecaptchaVerifier
from services.sheets_service import SheetsClient
from services.submissions_service import FormSubmissionPipeline
from utils.config import AppConfig


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
def rsa_private_key():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    return key, pem


class FakeGoogle:
    """Stands in for siteverify, the OAuth token endpoint and the Sheets API."""

    def __init__(self):
        self.requests = []
        self.verify_response = {"success": True, "score": 0.9, "action": "submit"}
        self.verify_status = 200
        self.append_response = {"updates": {"updatedRows": 1}}
        self.append_status = 200
        self.token_status = 200
        self.raise_on = None
        self.raise_exc = httpx.ConnectError

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if self.raise_on and self.raise_on == host:
            raise self.raise_exc("connection refused", request=request)
        if host == "www.google.com":
            if isinstance(self.verify_response, str):
                return httpx.Response(self.verify_status, text=self.verify_response)
            return httpx.Response(self.verify_status, json=self.verify_response)
        if host == "oauth2.googleapis.com":
            return httpx.Response(self.token_status, json={"access_token": "ya29.test", "expires_in": 3600})
        if host == "sheets.googleapis.com":
            return httpx.Response(self.append_status, json=self.append_response)
        return httpx.Response(404)

    def to(self, host):
        return [r for r in self.requests if r.url.host == host]

    @property
    def verify_calls(self):
        return self.to("www.google.com")

    @property
    def append_calls(self):
        return self.to("sheets.googleapis.com")

    def verify_form(self, index=0):
        return {k: v[0] for k, v in parse_qs(self.verify_calls[index].content.decode()).items()}

    def appended_rows(self, index=0):
        return json.loads(self.append_calls[index].content)["values"]


@pytest.fixture
def google():
    return FakeGoogle()


@pytest.fixture
def make_config(rsa_private_key):
    _, pem = rsa_private_key

    def _make(**overrides):
        values = {
            "spreadsheet_id": "sheet-123",
            "client_email": "svc@project.iam.gserviceaccount.com",
            "private_key": pem,
            "recaptcha_enabled": True,
            "recaptcha_secret": "shh",
        }
        values.update(overrides)
        return AppConfig(**values)

    return _make


@pytest.fixture
def make_pipeline(make_config, google):
    def _make(**overrides):
        config = make_config(**overrides)
        transport = httpx.MockTransport(google)
        verifier = RecaptchaVerifier(
            secret=config.recaptcha_secret,
            threshold=config.recaptcha_score_threshold,
            timeout=config.http_timeout_seconds,
            transport=transport,
        )
        sheets = SheetsClient(
            spreadsheet_id=config.spreadsheet_id,
            sheet_range=config.sheet_range,
            client_email=config.client_email,
            private_key=config.private_key,
            timeout=config.http_timeout_seconds,
            transport=transport,
        )
        return FormSubmissionPipeline(config, verifier=verifier, sheets=sheets)

    return _make
