# tests/integration/__init__.py
"""End-to-end resolution scenarios through ConfigurationService."""
