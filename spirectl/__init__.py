"""Configuration, resource models, validation and reconciliation loop for a SPIRE controller manager."""

__version__ = "0.1.0"