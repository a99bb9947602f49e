"""CORS and Origin policy for the HTTP transport.

Two profiles:
- relaxed: every origin is accepted and responses carry ``*``
- strict: the ``Origin`` header is checked against an allow-list of
  shell-style patterns (``http://localhost:*``); allowed origins are echoed
  back, requests without an ``Origin`` (curl, server-to-server) pass

Response headers come from Starlette's ``CORSMiddleware``; the policy only
configures it and answers the origin check the transport uses to refuse
requests before dispatch.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from fnmatch import translate

from starlette.datastructures import Headers
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

DEFAULT_ALLOWED_ORIGINS: tuple[str, ...] = ("http://localhost:*", "http://127.0.0.1:*")

ALLOW_METHODS = ("GET", "POST", "OPTIONS", "DELETE")
EXPOSE_HEADERS = ("Mcp-Session-Id", "MCP-Protocol-Version")
PREFLIGHT_MAX_AGE = 600


class CorsProfile(str, Enum):
    RELAXED = "relaxed"
    STRICT = "strict"


class PreflightCORSMiddleware(CORSMiddleware):
    """``CORSMiddleware`` whose preflights always answer 200 with no body.

    A refused preflight keeps the CORS headers the middleware computed but
    carries no ``Access-Control-Allow-Origin``, so the browser still blocks
    the follow-up request.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower().startswith("access-control-") or key.lower() == "vary"
        }
        return Response(status_code=200, headers=headers)


@dataclass(frozen=True)
class CorsPolicy:
    """Decides whether an origin may talk to the gateway."""

    profile: CorsProfile = CorsProfile.RELAXED
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS

    @classmethod
    def create(
        cls,
        profile: CorsProfile | str = CorsProfile.RELAXED,
        allowed_origins: Iterable[str] | None = None,
    ) -> CorsPolicy:
        origins = tuple(o.strip() for o in allowed_origins or () if o.strip())
        return cls(
            profile=CorsProfile(profile),
            allowed_origins=origins or DEFAULT_ALLOWED_ORIGINS,
        )

    @property
    def strict(self) -> bool:
        return self.profile is CorsProfile.STRICT

    @property
    def origin_regex(self) -> str:
        """The allow-list as one regex, matched against the whole origin."""
        return "|".join(translate(pattern) for pattern in self.allowed_origins)

    def is_allowed(self, origin: str | None) -> bool:
        if not self.strict or not origin:
            return True
        return re.fullmatch(self.origin_regex, origin) is not None

    def middleware(self) -> Middleware:
        """Starlette middleware that emits the CORS headers for this policy."""
        if self.strict:
            origins: dict[str, object] = {
                "allow_origin_regex": self.origin_regex,
                "allow_credentials": True,
            }
        else:
            origins = {"allow_origins": ["*"]}
        return Middleware(
            PreflightCORSMiddleware,
            allow_methods=list(ALLOW_METHODS),
            allow_headers=["*"],
            expose_headers=list(EXPOSE_HEADERS),
            max_age=PREFLIGHT_MAX_AGE,
            **origins,
        )
