from typing import Optional


class NearbuyError(Exception):
    """
    Base for every failure the resolution pipeline knows how to report.
    `message` is for logs; `user_message` is what the client shows.
    """
    user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class LocationPermissionDenied(NearbuyError):
    user_message = "Location permission is required to estimate store distances."


class PositionUnavailableError(NearbuyError):
    user_message = "Your current location is unavailable."


class VisionError(NearbuyError):
    user_message = "Could not detect product. Please try again with a clearer image."


class CatalogError(NearbuyError):
    user_message = "No product information found for this barcode."


class CatalogNotFoundError(CatalogError):
    pass


class SearchError(NearbuyError):
    user_message = "No results found."


class DistanceError(NearbuyError):
    user_message = "Distance unavailable"


class UnknownError(NearbuyError):
    pass
