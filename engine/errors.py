"""Error types raised by the orchestration layer.

Each error carries the HTTP status the API answers with, so handlers can map
any of them to a response without knowing which stage failed.
"""

from __future__ import annotations


class ChorusError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ChorusError):
    status_code = 400


class UnsupportedCapabilityError(BadRequestError):
    pass


class UnknownLinkError(BadRequestError):
    pass


class NotFoundError(ChorusError):
    status_code = 404


class ParseFailedError(ChorusError):
    status_code = 500


class UpstreamError(ChorusError):
    status_code = 502


class DecryptError(ChorusError):
    status_code = 500


class ProviderInitError(ChorusError):
    status_code = 500
