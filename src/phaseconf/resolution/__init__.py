# src/phaseconf/resolution/__init__.py
"""Credential discovery: SourceProbe and TokenResolver."""

from phaseconf.resolution.probe import SourceProbe, describe_origin, find_workspace_root, read_credential
from phaseconf.resolution.resolver import TokenResolver, validate_token_format

__all__ = [
    "SourceProbe",
    "TokenResolver",
    "describe_origin",
    "find_workspace_root",
    "read_credential",
    "validate_token_format",
]
