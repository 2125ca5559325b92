"""
API error taxonomy

Every failure a handler can report is one of the classes below. They are
rendered by the exception handlers in `main.py` as
`{"success": false, "error": <message or list of messages>}`.
"""

from typing import List, Union

Message = Union[str, List[str]]


class ApiError(Exception):
    """ Base class: an error with an HTTP status and a client-facing message """
    status_code = 500

    def __init__(self, message: Message = "Server error"):
        super().__init__(message)
        self.message = message


class ValidationError(ApiError):
    """ Bad input shape or a failed constraint """
    status_code = 400


class DuplicateKeyError(ApiError):
    """ A uniqueness constraint was violated """
    status_code = 400


class Unauthenticated(ApiError):
    status_code = 401

    def __init__(self, message: Message = "Not authorised for this route"):
        super().__init__(message)


class Forbidden(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class UpstreamError(ApiError):
    """ The geocoder, the mailer or the file store failed """
    status_code = 500
