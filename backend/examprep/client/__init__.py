"""Client runtime for taking a test session against the HTTP API."""

from examprep.client.api import ApiError, TestSessionClient
from examprep.client.configuration import ConfigurationBuilder
from examprep.client.context import TestSessionContext
from examprep.client.navigator import ActiveTestSession, SessionNavigator

__all__ = [
    "ActiveTestSession",
    "ApiError",
    "ConfigurationBuilder",
    "SessionNavigator",
    "TestSessionClient",
    "TestSessionContext",
]
