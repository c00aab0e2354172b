from fastapi import Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers

_BODY_HEADERS = ("content-length", "content-type")


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """Starlette's CORS layer, but an accepted preflight is a bare 200 with no body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        if response.status_code != 200:
            return response
        headers = {k: v for k, v in response.headers.items() if k.lower() not in _BODY_HEADERS}
        return Response(status_code=200, headers=headers)
