"""Exception types shared by services and routes."""
from __future__ import annotations


class CuratorError(Exception):
    """Base class for application errors."""


class DataUnavailableError(CuratorError):
    """The storage layer failed to answer a query."""


class NotFoundError(CuratorError):
    """The record does not exist or is not owned by the requesting user."""


class ProviderFetchError(CuratorError):
    """An upstream provider listing could not be fetched or parsed."""
