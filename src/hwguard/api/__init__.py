"""HTTP API for hwguard and a client for talking to it."""

from hwguard.api.app import create_app
from hwguard.api.client import GuardClient

__all__ = ["GuardClient", "create_app"]
