"""Error taxonomy shared by the routers, the data stores and the chat dispatcher.

Every error carries the HTTP status it maps to; ``main.py`` renders them all
as ``{"success": false, "error": message}``.
"""

from typing import Optional

from .config import ProviderKind


class GatewayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(GatewayError):
    """Missing or blank required fields."""

    status_code = 400


class NotFound(GatewayError):
    status_code = 404


class ConfigError(GatewayError):
    """No credential could be resolved for the requested model."""

    status_code = 500


class UpstreamError(GatewayError):
    """Provider HTTP failure, transport error or data store failure."""

    status_code = 500

    def __init__(self, message: str, provider: Optional[ProviderKind] = None):
        super().__init__(message)
        self.provider = provider
