"""Kubernetes API access."""

from .client import Clients, DeleteOptions, ResourceClient, get_api_client, is_conflict, is_not_found

__all__ = [
    "Clients",
    "DeleteOptions",
    "ResourceClient",
    "get_api_client",
    "is_conflict",
    "is_not_found",
]
