"""Adapters for the external service Cadence writes to."""

from cadence_cli.remote.client import HttpRemoteService, RemoteService

__all__ = [
    "HttpRemoteService",
    "RemoteService",
]
