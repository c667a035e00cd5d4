"""Provisioning, configuration, deployment and verification of a single-host application."""

__version__ = "0.1.0"
