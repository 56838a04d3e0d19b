# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Attestation registry adapters.

Each attestation kind (age, nationality, company email domain) is backed
by an external registry that answers, for one identity, whether the
attribute is verified, its value and when it was verified.

Two layers:

* **Registries** implement :class:`AttestationRegistry` and talk to one
  backend. :class:`HttpAttestationRegistry` queries a JSON endpoint and
  retries transient failures with exponential backoff. Registries raise
  :class:`RegistryQueryError` when they cannot produce an answer.

* :class:`AttestationClient` routes a query to the registry configured
  for the kind and converts whatever comes back into an
  :class:`AttestationResult`. It never raises: a failing registry yields
  ``verified=False`` with ``error="registry query failed"`` so that
  authorization fails closed. Nationality values are normalized to ISO
  alpha-3 and company domains are lower-cased without ``@`` before they
  leave this module.

Results are produced fresh on every call; nothing is cached here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol, Union
from urllib.parse import quote

import httpx

from badgegate.config import (
    REGISTRY_NOT_CONFIGURED,
    REGISTRY_QUERY_FAILED,
    REGISTRY_RETRY_BACKOFF_BASE,
    REGISTRY_RETRY_MAX_ATTEMPTS,
    REGISTRY_TIMEOUT_SECONDS,
    registry_endpoints,
)
from badgegate.http_client import registry_client
from badgegate.badges.country_codes import normalize_nationality_code
from badgegate.badges.exceptions import RegistryQueryError
from badgegate.badges.models import AttestationKind, AttestationResult, normalize_company_domain

logger = logging.getLogger(__name__)

__all__ = [
    "RegistryRecord",
    "AttestationRegistry",
    "HttpAttestationRegistry",
    "AttestationClient",
    "build_attestation_client",
    "parse_verified_at",
]

# Epoch values above this are taken to be milliseconds (year 5138 in seconds).
_EPOCH_MS_THRESHOLD = 100_000_000_000


# ======================================================================
# Registry contract
# ======================================================================


@dataclass(frozen=True)
class RegistryRecord:
    """Raw registry answer for one identity.

    Attributes
    ----------
    verified : bool
        Whether the registry attests the attribute.
    value : str or None
        Attested value as stored by the registry (unnormalized).
    verified_at : datetime or None
        Verification time, if the registry reports one.
    """

    verified: bool
    value: Optional[str] = None
    verified_at: Optional[datetime] = None


class AttestationRegistry(Protocol):
    """Read-only registry for one attestation kind."""

    async def query(self, identity: str) -> RegistryRecord:
        ...


# ======================================================================
# Parsing helpers
# ======================================================================


def parse_verified_at(raw: Union[int, float, str, None]) -> Optional[datetime]:
    """Convert a registry timestamp to an aware UTC datetime.

    Accepts epoch seconds, epoch milliseconds, numeric strings and
    ISO-8601 strings. Returns ``None`` for anything else, since the
    timestamp never affects authorization.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if "T" in text or "-" in text:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                logger.debug("Unparseable verifiedAt %r", raw)
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
        try:
            raw = float(text)
        except ValueError:
            logger.debug("Unparseable verifiedAt %r", raw)
            return None

    if isinstance(raw, (int, float)):
        seconds = raw / 1000 if raw > _EPOCH_MS_THRESHOLD else raw
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug("Out-of-range verifiedAt %r", raw)
            return None

    return None


def _parse_registry_body(kind: AttestationKind, body: Any) -> RegistryRecord:
    """Read a registry JSON body into a :class:`RegistryRecord`.

    Field names follow the registries in use: ``verified`` or
    ``isVerified``; ``value`` or the kind-specific ``nationality`` /
    ``domain``; ``verifiedAt``.
    """
    if not isinstance(body, dict):
        raise ValueError(f"expected JSON object, got {type(body).__name__}")

    verified = body.get("verified", body.get("isVerified"))
    if not isinstance(verified, bool):
        raise ValueError("missing boolean 'verified' field")

    value = body.get("value")
    if value is None:
        value = body.get("nationality" if kind is AttestationKind.NATIONALITY else "domain")
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'value' must be a string, got {type(value).__name__}")

    return RegistryRecord(
        verified=verified,
        value=value,
        verified_at=parse_verified_at(body.get("verifiedAt")),
    )


# ======================================================================
# HTTP registry
# ======================================================================


class HttpAttestationRegistry:
    """Registry backed by ``GET {endpoint}/{identity}`` returning JSON.

    HTTP 404 means the identity has no attestation. Timeouts, connection
    errors and 5xx responses are retried with exponential backoff; 4xx
    responses and malformed bodies are not.
    """

    def __init__(
        self,
        kind: AttestationKind,
        endpoint: str,
        timeout: float = REGISTRY_TIMEOUT_SECONDS,
        max_attempts: int = REGISTRY_RETRY_MAX_ATTEMPTS,
        backoff_base: float = REGISTRY_RETRY_BACKOFF_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.kind = kind
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base
        self._client = client

    def _url(self, identity: str) -> str:
        # Identity is exactly one path segment below the endpoint.
        segment = quote(identity, safe="")
        if not segment.strip("."):
            raise RegistryQueryError(self.kind.value, f"invalid identity {identity!r}")
        return f"{self._endpoint}/{segment}"

    async def query(self, identity: str) -> RegistryRecord:
        client = self._client or registry_client()
        url = self._url(identity)
        last_error = "no attempts made"

        for attempt in range(self._max_attempts):
            try:
                response = await client.get(url, timeout=self._timeout)
            except httpx.TimeoutException:
                last_error = "Timeout"
            except httpx.TransportError as e:
                last_error = type(e).__name__
            else:
                if response.status_code == 404:
                    return RegistryRecord(verified=False)
                if 200 <= response.status_code < 300:
                    try:
                        return _parse_registry_body(self.kind, response.json())
                    except ValueError as e:
                        raise RegistryQueryError(self.kind.value, f"malformed response: {e}") from e
                if response.status_code < 500:
                    raise RegistryQueryError(self.kind.value, f"HTTP {response.status_code}")
                last_error = f"HTTP {response.status_code}"

            if attempt < self._max_attempts - 1:
                backoff = self._backoff_base * (2 ** attempt)
                logger.warning(
                    f"{self.kind.value} registry {url} failed ({last_error}), "
                    f"retry {attempt + 1}/{self._max_attempts} in {backoff:.1f}s"
                )
                await asyncio.sleep(backoff)

        raise RegistryQueryError(
            self.kind.value, f"{last_error} (after {self._max_attempts} attempts)"
        )


# ======================================================================
# Attestation client
# ======================================================================


class AttestationClient:
    """Queries attestation state for an identity, one registry per kind.

    Parameters
    ----------
    registries : Mapping[AttestationKind, AttestationRegistry]
        Registry per kind. Kinds without a registry fail closed with
        ``error="registry not configured"``.
    """

    def __init__(self, registries: Mapping[AttestationKind, AttestationRegistry]):
        self._registries: Dict[AttestationKind, AttestationRegistry] = dict(registries)

    async def query(self, identity: str, kind: AttestationKind) -> AttestationResult:
        """Return the attestation state of *identity* for *kind*.

        Never raises; registry failures become unverified results.
        """
        registry = self._registries.get(kind)
        if registry is None:
            logger.warning("No %s registry configured; treating %s as unverified", kind.value, identity)
            return AttestationResult.unverified(kind, error=REGISTRY_NOT_CONFIGURED)

        try:
            record = await registry.query(identity)
        except Exception as exc:
            logger.warning(
                "%s registry query failed for %s: %s",
                kind.value,
                identity,
                exc,
                extra={"kind": kind.value, "identity": identity},
            )
            return AttestationResult.unverified(kind, error=REGISTRY_QUERY_FAILED)

        if not record.verified:
            return AttestationResult.unverified(kind)

        if kind is AttestationKind.AGE:
            return AttestationResult(
                kind=kind, verified=True, value=record.value, verified_at=record.verified_at
            )

        value = _normalize_attested_value(kind, record.value)
        if not value:
            logger.warning("%s registry verified %s without a value", kind.value, identity)
            return AttestationResult.unverified(kind)

        return AttestationResult(kind=kind, verified=True, value=value, verified_at=record.verified_at)


def _normalize_attested_value(kind: AttestationKind, value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    if kind is AttestationKind.NATIONALITY:
        return normalize_nationality_code(value)
    return normalize_company_domain(value)


def build_attestation_client(
    endpoints: Optional[Mapping[str, str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AttestationClient:
    """Build an :class:`AttestationClient` over HTTP registries.

    Parameters
    ----------
    endpoints : Mapping[str, str] or None
        ``{kind value -> registry base URL}``. Defaults to the
        ``BADGEGATE_*_REGISTRY_URL`` settings.
    client : httpx.AsyncClient or None
        Client to use instead of the shared registry client.
    """
    endpoints = registry_endpoints() if endpoints is None else endpoints
    registries: Dict[AttestationKind, AttestationRegistry] = {}
    for kind_value, url in endpoints.items():
        kind = AttestationKind(kind_value)
        registries[kind] = HttpAttestationRegistry(kind, url, client=client)
    return AttestationClient(registries)
