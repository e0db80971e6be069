from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

_BODY_HEADERS = ("content-length", "content-type")


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose preflight answer is always an empty 204.

    Starlette replies "OK" or a 400 "Disallowed CORS origin" in plain text;
    here a disallowed origin just gets no Access-Control-Allow-Origin header.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        checked = super().preflight_response(request_headers)
        headers = {k: v for k, v in checked.headers.items() if k.lower() not in _BODY_HEADERS}
        return Response(status_code=204, headers=headers)
