"""Errors raised by the catalog services and mapped to HTTP statuses in main.py."""


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(CatalogError):
    status_code = 400


class Conflict(CatalogError):
    # Duplicates are reported as a client error; the message tells them apart.
    status_code = 400


class Unauthenticated(CatalogError):
    status_code = 401


class Forbidden(CatalogError):
    status_code = 403


class NotFound(CatalogError):
    status_code = 404
