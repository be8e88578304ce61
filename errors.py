"""
Error taxonomy for the storefront API.

Every error carries the HTTP status it maps to; the app turns them into
``{"success": false, "error": <message>}`` bodies.
"""
from typing import List, Optional


class ShopError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(ShopError):
    status_code = 400


class NotFoundError(ShopError):
    status_code = 404


class StoreError(ShopError):
    status_code = 500


class DatabaseConnectionError(StoreError, ConnectionError):
    pass
