"""Kubernetes operator that deploys and reconciles an image registry."""

__version__ = "0.1.0"
