# intentmarket/core/errors.py
"""
Domain error taxonomy.

Services and repositories raise these; the HTTP layer (main.py) maps
them to status codes. Nothing below this module knows about HTTP.

  - InvalidArgument  : malformed or inconsistent input (400)
  - NotFound         : referenced entity does not exist (404)
  - Forbidden        : acting user lacks rights (403)
  - Conflict         : illegal state transition / stale state (409)
  - StoreUnavailable : data store unreachable, transient (503)
"""


class MarketplaceError(Exception):
    """Base class for every error the core signals to its callers."""

    status_code: int = 500
    default_detail: str = "Internal error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidArgument(MarketplaceError):
    status_code = 400
    default_detail = "Invalid argument"


class NotFound(MarketplaceError):
    status_code = 404
    default_detail = "Not found"


class Forbidden(MarketplaceError):
    status_code = 403
    default_detail = "Forbidden"


class Conflict(MarketplaceError):
    status_code = 409
    default_detail = "Conflict"


class StoreUnavailable(MarketplaceError):
    status_code = 503
    default_detail = "Data store unavailable"
