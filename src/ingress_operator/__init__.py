"""Operator that keeps the management ingress Deployment converged."""

__version__ = "0.1.0"
