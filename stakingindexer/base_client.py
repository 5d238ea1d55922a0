"""A small JSON-over-HTTP client with uniform error reporting."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import requests

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS")

_BODY_METHODS = ("POST", "PUT")


class ErrorCode(str, Enum):
    """Category of a failed request."""

    INTERNAL_SERVICE_ERROR = "INTERNAL_SERVICE_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    BAD_REQUEST = "BAD_REQUEST"


class ClientError(Exception):
    """A request failed; carries the HTTP status and an error category."""

    def __init__(self, status_code: int, error_code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message


@dataclass
class RequestOptions:
    """Per-request settings.

    ``timeout`` is in milliseconds; zero means the client's default.
    ``template_path`` names the route for metrics and is not sent.
    """

    path: str = ""
    timeout: int = 0
    template_path: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class BaseHttpClient:
    """Where and how requests are sent; the default timeout is in milliseconds."""

    base_url: str
    default_request_timeout: int
    session: Any = field(default_factory=requests.Session)


def is_allowed_method(method: str) -> bool:
    """Return whether ``method`` is one of the supported HTTP methods."""
    return method in ALLOWED_METHODS


def _send(
    client: BaseHttpClient, method: str, options: RequestOptions, payload: Any
) -> Any:
    if not is_allowed_method(method):
        raise ClientError(
            500, ErrorCode.INTERNAL_SERVICE_ERROR, f"method {method} is not allowed"
        )
    url = f"{client.base_url}{options.path}"
    timeout_ms = options.timeout or client.default_request_timeout

    body: bytes | None = None
    if payload is not None and method in _BODY_METHODS:
        try:
            body = json.dumps(payload).encode("utf-8")
        except (TypeError, ValueError):
            raise ClientError(
                500, ErrorCode.INTERNAL_SERVICE_ERROR, "failed to marshal request body"
            ) from None

    try:
        response = client.session.request(
            method,
            url,
            data=body,
            headers=dict(options.headers),
            timeout=timeout_ms / 1000,
        )
    except requests.Timeout:
        raise ClientError(
            408,
            ErrorCode.REQUEST_TIMEOUT,
            f"request timeout after {timeout_ms} ms at {url}",
        ) from None
    except requests.RequestException:
        raise ClientError(
            500, ErrorCode.INTERNAL_SERVICE_ERROR, f"failed to send request to {url}"
        ) from None

    try:
        status = response.status_code
        if status >= 500:
            raise ClientError(
                status,
                ErrorCode.INTERNAL_SERVICE_ERROR,
                f"internal server error when calling {url}",
            )
        if status >= 400:
            raise ClientError(
                status, ErrorCode.BAD_REQUEST, f"client error when calling {url}"
            )
        try:
            return json.loads(response.content)
        except ValueError:
            raise ClientError(
                500,
                ErrorCode.INTERNAL_SERVICE_ERROR,
                f"failed to decode response from {url}",
            ) from None
    finally:
        response.close()


def send_request(
    client: BaseHttpClient,
    method: str,
    options: RequestOptions,
    payload: Any = None,
) -> Any:
    """Send a request and return the decoded JSON response.

    A JSON body is sent only for POST and PUT. Raises ClientError on failure.
    """
    try:
        return _send(client, method, options, payload)
    except ClientError as exc:
        logger.error("failed to send request: %s", exc)
        raise