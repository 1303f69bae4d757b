"""Credential collaborators."""

from __future__ import annotations

from typing import Protocol

from .errors import CredentialError


class TokenProvider(Protocol):
    """Supplies a fresh auth credential on demand."""

    async def get_token(self, force_refresh: bool = False) -> str: ...


class StaticTokenProvider:
    """Token provider backed by a configured credential."""

    def __init__(self, token: str | None) -> None:
        self._token = (token or "").strip()

    async def get_token(self, force_refresh: bool = False) -> str:
        if not self._token:
            raise CredentialError("no credential configured")
        return self._token
