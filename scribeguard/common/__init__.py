"""Shared exceptions used across the PHI and crypto packages."""
