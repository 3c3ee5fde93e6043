# src/phaseconf/resolution/resolver.py
"""TokenResolver: pick the single active credential.

Resolution is deterministic and read-only. The first probe entry holding a
credential wins; lower-priority entries that also hold one show up in
diagnostics as "existed but not used".
"""

from __future__ import annotations

from pathlib import Path

import structlog

from phaseconf.contracts import SourceCheck, TokenNotFound, TokenSource
from phaseconf.resolution.probe import SourceProbe

logger = structlog.get_logger(__name__)

MIN_TOKEN_LENGTH = 10


def validate_token_format(credential: str | None) -> bool:
    """Basic shape check: at least 10 characters and no whitespace.

    Informational only (reported as ActiveToken.is_valid). A credential that
    fails this check is still used for resolution.
    """
    if not credential or len(credential) < MIN_TOKEN_LENGTH:
        return False
    return not any(ch.isspace() for ch in credential)


class TokenResolver:
    """Resolves the active TokenSource from a SourceProbe."""

    def __init__(self, probe: SourceProbe) -> None:
        self._probe = probe

    @property
    def probe(self) -> SourceProbe:
        return self._probe

    def resolve_with_checks(
        self, workspace_root: Path | None = None
    ) -> tuple[TokenSource | TokenNotFound, tuple[SourceCheck, ...]]:
        """Resolve and return the probe list from the same pass."""
        source, checks = self._probe.first_source(workspace_root)
        ordered = tuple(checks)
        if source is None:
            logger.info("no service credential found", checked=len(ordered))
            return TokenNotFound(checks=ordered), ordered

        shadowed = [str(c.origin) for c in ordered if c.has_credential and c.origin != source.origin]
        logger.info(
            "service credential resolved",
            token_origin=str(source.origin),
            path=str(source.path) if source.path is not None else None,
            credential_length=source.credential_length,
            unused_sources=shadowed,
        )
        return source, ordered

    def resolve(self, workspace_root: Path | None = None) -> TokenSource | TokenNotFound:
        """Return the first credential-bearing source, else TokenNotFound."""
        outcome, _ = self.resolve_with_checks(workspace_root)
        return outcome
