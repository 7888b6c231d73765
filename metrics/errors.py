"""Exception hierarchy for the exporter"""
from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter errors"""


class ConfigError(ExporterError):
    """Invalid settings or target definitions. Fatal at startup."""


class AuthResolutionError(ConfigError):
    """A target references a bearer token variable that is not set"""


class RegistrationError(ExporterError):
    """A gauge could not be registered (schema conflict or invalid name)"""


class TransportError(ExporterError):
    """Request could not be completed (connection error, timeout, bad status)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(ExporterError):
    """Response body is neither valid JSON nor (in XML mode) valid XML"""


class QueryError(ExporterError):
    """A jq query failed to compile or to run"""
