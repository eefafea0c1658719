"""
Recognized failure conditions for the listing/CRUD endpoints and the table client.

Each carries a human-readable message and the HTTP status it maps to. Handlers in
create_app() render them as {"message": ...}; the table client raises them when
decoding server responses.
"""
from __future__ import annotations


class PortalError(Exception):
    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFault(PortalError):
    status_code = 422
    default_message = "The given data was invalid."


class NotFoundFault(PortalError):
    status_code = 404
    default_message = "Record not found."


class ServiceUnavailable(PortalError):
    status_code = 503
    default_message = "The service is temporarily unavailable. Please try again."


class TransportFault(PortalError):
    """Network or decoding failure seen by the client; never raised server-side."""

    status_code = 502
    default_message = "Failed to fetch data. Please try again."
