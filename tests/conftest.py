# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the badge gate test suite.

Provides in-memory attestation registries, an attestation client wired
to them, and a signature verifier that accepts a fixed signature, so
tests exercise the real engine and flows without any network I/O.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from badgegate.http_client import reset_registry_client
from badgegate.badges.attestation import AttestationClient, RegistryRecord
from badgegate.badges.authorization import AuthorizationEngine
from badgegate.badges.exceptions import RegistryQueryError
from badgegate.badges.models import AttestationKind

VALID_SIGNATURE = "0xsigned"


# =========================================================================
# In-memory registries
# =========================================================================

class FakeRegistry:
    """Attestation registry backed by a dict of identity -> record.

    Identities listed in ``failing`` raise :class:`RegistryQueryError`;
    ``delay`` makes every query sleep first. Every call is recorded in
    ``calls``.
    """

    def __init__(
        self,
        kind: AttestationKind,
        records: Optional[Dict[str, RegistryRecord]] = None,
        failing: Optional[set] = None,
        delay: float = 0.0,
    ):
        self.kind = kind
        self.records: Dict[str, RegistryRecord] = dict(records or {})
        self.failing = set(failing or ())
        self.delay = delay
        self.calls: List[str] = []

    def attest(self, identity: str, value: Optional[str] = None) -> None:
        self.records[identity] = RegistryRecord(verified=True, value=value)

    async def query(self, identity: str) -> RegistryRecord:
        self.calls.append(identity)
        if self.delay:
            await asyncio.sleep(self.delay)
        if identity in self.failing:
            raise RegistryQueryError(self.kind.value, "Timeout (after 3 attempts)")
        return self.records.get(identity, RegistryRecord(verified=False))


@pytest.fixture
def registries() -> Dict[AttestationKind, FakeRegistry]:
    """One empty in-memory registry per attestation kind."""
    return {kind: FakeRegistry(kind) for kind in AttestationKind}


@pytest.fixture
def attestation_client(registries) -> AttestationClient:
    return AttestationClient(registries)


@pytest.fixture
def engine(attestation_client) -> AuthorizationEngine:
    return AuthorizationEngine(attestation_client)


# =========================================================================
# Signature verification
# =========================================================================

class FixedSignatureVerifier:
    """Accepts exactly one signature string, for any identity and message."""

    def __init__(self, accepted: str = VALID_SIGNATURE):
        self.accepted = accepted
        self.messages: List[str] = []

    def verify(self, identity: str, message: str, signature: str) -> bool:
        self.messages.append(message)
        return signature == self.accepted


@pytest.fixture
def verifier() -> FixedSignatureVerifier:
    return FixedSignatureVerifier()


@pytest.fixture
def fixed_clock() -> Callable[[], float]:
    """Clock pinned to 2024-01-01T00:00:00Z."""
    return lambda: 1_704_067_200.0


@pytest.fixture(autouse=True)
def _reset_registry_client():
    """Drop the shared registry client between tests."""
    reset_registry_client()
    yield
    reset_registry_client()
