"""Application error base.

Every error a route is allowed to surface derives from APIError and is
rendered by a single exception handler in main.py as the standard
``{message, data}`` envelope.
"""

from typing import Optional


class APIError(Exception):
    """Base for errors rendered as an error envelope."""

    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class StationFeedError(APIError):
    """The external transit feed could not be fetched or parsed."""

    status_code = 502
    message = "Failed to fetch stations from external API"
