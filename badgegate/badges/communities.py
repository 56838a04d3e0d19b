# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Community creation and join flows.

These are the callers of the badge gate core. Creation runs, in order:

1. policy construction (raises :class:`InvalidPolicyError`);
2. request freshness, ``timestamp`` within ``REQUEST_MAX_AGE_SECONDS``;
3. the creator's signature over the request;
4. duplicate detection against every active community's policy;
5. authorization of the creator against their own policy;
6. persisting the policy in the :class:`PolicyStore`.

Joining re-runs authorization against the stored policy. Posting is
gated by membership records kept by the host and does not consult the
policy.

Every rejection is an ordinary :class:`CreationOutcome` /
:class:`JoinOutcome` carrying a :class:`GateErrorCode` and a message
suitable for the user.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from badgegate.config import REQUEST_MAX_AGE_SECONDS
from badgegate.badges.authorization import AuthorizationEngine
from badgegate.badges.duplicates import check_duplicate
from badgegate.badges.exceptions import DuplicatePolicyError
from badgegate.badges.models import (
    AttestationKind,
    AuthorizationDecision,
    BadgePolicy,
    CombinationMode,
)
from badgegate.badges.policy import CreateCommunityRequest, parse_create_request, policy_from_request

logger = logging.getLogger(__name__)

__all__ = [
    "GateErrorCode",
    "StoredPolicy",
    "PolicyStore",
    "InMemoryPolicyStore",
    "SignatureVerifier",
    "CreationOutcome",
    "JoinOutcome",
    "CommunityGate",
    "explain_decision",
    "signing_message",
]


# ======================================================================
# Collaborators
# ======================================================================


class GateErrorCode(str, Enum):
    REQUEST_EXPIRED = "REQUEST_EXPIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    DUPLICATE_POLICY = "DUPLICATE_POLICY"
    UNAUTHORIZED = "UNAUTHORIZED"
    COMMUNITY_NOT_FOUND = "COMMUNITY_NOT_FOUND"


@dataclass(frozen=True)
class StoredPolicy:
    """An active community and its badge policy."""

    community_id: str
    name: str
    policy: BadgePolicy
    creator: str = ""


class PolicyStore(Protocol):
    """Holds the policies of active communities."""

    def list_active_policies(self) -> List[StoredPolicy]:
        ...

    def get(self, community_id: str) -> Optional[StoredPolicy]:
        ...

    def add(self, stored: StoredPolicy) -> None:
        ...


class InMemoryPolicyStore:
    """Process-local :class:`PolicyStore`, in insertion order."""

    def __init__(self, policies: Optional[List[StoredPolicy]] = None):
        self._lock = threading.Lock()
        self._policies: Dict[str, StoredPolicy] = {}
        for stored in policies or []:
            self.add(stored)

    def list_active_policies(self) -> List[StoredPolicy]:
        with self._lock:
            return list(self._policies.values())

    def get(self, community_id: str) -> Optional[StoredPolicy]:
        with self._lock:
            return self._policies.get(community_id)

    def add(self, stored: StoredPolicy) -> None:
        with self._lock:
            self._policies[stored.community_id] = stored


class SignatureVerifier(Protocol):
    """Checks an identity's signature over a message."""

    def verify(self, identity: str, message: str, signature: str) -> bool:
        ...


# ======================================================================
# Outcomes
# ======================================================================


@dataclass
class CreationOutcome:
    """Result of a community creation attempt.

    Attributes
    ----------
    success : bool
        Whether the community was created.
    community_id : str or None
        Id of the new community, or of the conflicting community when
        ``error_code`` is ``DUPLICATE_POLICY``.
    error_code : GateErrorCode or None
        Why creation was rejected.
    message : str
        User-facing explanation.
    decision : AuthorizationDecision or None
        The creator's authorization decision, when one was computed.
    """

    success: bool
    community_id: Optional[str] = None
    error_code: Optional[GateErrorCode] = None
    message: str = ""
    decision: Optional[AuthorizationDecision] = None


@dataclass
class JoinOutcome:
    """Result of a join attempt."""

    success: bool
    community_id: str
    error_code: Optional[GateErrorCode] = None
    message: str = ""
    decision: Optional[AuthorizationDecision] = None


# ======================================================================
# Presentation helpers
# ======================================================================


def _owned_label(decision: AuthorizationDecision) -> str:
    return ", ".join(c.describe() for c in decision.owned) or "none"


def explain_decision(decision: AuthorizationDecision, policy: BadgePolicy) -> str:
    """Render a denied decision as one user-facing sentence."""
    if decision.allowed:
        return "All badge requirements satisfied"
    if decision.combination is CombinationMode.ALL:
        missing = ", ".join(m.clause.describe() for m in decision.missing)
        return f"You don't own all required badges. Missing: {missing}. You own: {_owned_label(decision)}."
    required = ", ".join(c.describe() for c in policy.clauses)
    details = "; ".join(decision.reasons)
    return f"You don't own any of the required badges. Required: {required}. ({details})"


def signing_message(request: CreateCommunityRequest) -> str:
    """The message a creator signs: every request field except the signature.

    Keys are sorted and unset fields omitted so client and server derive
    the same bytes.
    """
    data = request.model_dump(exclude={"signature"}, exclude_none=True)
    return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def make_community_id(policy: BadgePolicy, timestamp: int) -> str:
    """Derive a readable community id, e.g. ``nationality-DEU-FRA-1700000000000``."""
    primary = policy.primary_clause
    if primary.kind is AttestationKind.NATIONALITY:
        suffix = "-".join(primary.values[:3])
    else:
        suffix = primary.values[0]
    return f"{primary.kind.value}-{suffix}-{timestamp}"


# ======================================================================
# Flows
# ======================================================================


class CommunityGate:
    """Runs badge-gated community creation and joining.

    Parameters
    ----------
    engine : AuthorizationEngine
        Evaluates identities against policies.
    store : PolicyStore
        Active community policies.
    verifier : SignatureVerifier
        Verifies creators' request signatures.
    max_request_age : int
        Allowed clock difference for request timestamps, in seconds.
    clock : callable
        Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        engine: AuthorizationEngine,
        store: PolicyStore,
        verifier: SignatureVerifier,
        max_request_age: int = REQUEST_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._engine = engine
        self._store = store
        self._verifier = verifier
        self._max_request_age = max_request_age
        self._clock = clock

    def _signature_valid(self, request: CreateCommunityRequest) -> bool:
        try:
            return bool(
                self._verifier.verify(request.walletAddress, signing_message(request), request.signature)
            )
        except Exception as exc:
            logger.error("Signature verification error for %s: %s", request.walletAddress, exc)
            return False

    def ensure_unique(self, policy: BadgePolicy) -> None:
        """Check *policy* against every active community.

        Raises
        ------
        DuplicatePolicyError
            If an active community already uses the same requirements.
        """
        existing = self._store.list_active_policies()
        index = check_duplicate(policy, [s.policy for s in existing])
        if index is not None:
            conflict = existing[index]
            raise DuplicatePolicyError(conflict.community_id, conflict.name)

    async def create_community(
        self,
        request: Union[CreateCommunityRequest, Mapping[str, Any]],
    ) -> CreationOutcome:
        """Create a community if the request passes every gate.

        Raises
        ------
        InvalidPolicyError
            If the request or its badge policy is invalid.
        """
        if not isinstance(request, CreateCommunityRequest):
            request = parse_create_request(request)
        policy = policy_from_request(request)
        identity = request.walletAddress

        now_ms = int(self._clock() * 1000)
        if abs(now_ms - request.timestamp) > self._max_request_age * 1000:
            logger.info("Rejected stale creation request from %s", identity)
            return CreationOutcome(
                success=False,
                error_code=GateErrorCode.REQUEST_EXPIRED,
                message="Request expired. Please try again.",
            )

        if not self._signature_valid(request):
            return CreationOutcome(
                success=False,
                error_code=GateErrorCode.INVALID_SIGNATURE,
                message="Invalid signature",
            )

        try:
            self.ensure_unique(policy)
        except DuplicatePolicyError as e:
            logger.info("Rejected duplicate policy from %s: %s", identity, e.community_id)
            return CreationOutcome(
                success=False,
                community_id=e.community_id,
                error_code=GateErrorCode.DUPLICATE_POLICY,
                message=f"{e}. Please join that community or create one with different requirements.",
            )

        decision = await self._engine.evaluate(identity, policy)
        if not decision.allowed:
            return CreationOutcome(
                success=False,
                error_code=GateErrorCode.UNAUTHORIZED,
                message=explain_decision(decision, policy),
                decision=decision,
            )

        community_id = make_community_id(policy, request.timestamp)
        self._store.add(
            StoredPolicy(community_id=community_id, name=request.name, policy=policy, creator=identity)
        )
        logger.info("Created community %s for %s", community_id, identity)
        return CreationOutcome(success=True, community_id=community_id, decision=decision)

    async def join_community(self, identity: str, community_id: str) -> JoinOutcome:
        """Check whether *identity* may join *community_id*."""
        stored = self._store.get(community_id)
        if stored is None:
            return JoinOutcome(
                success=False,
                community_id=community_id,
                error_code=GateErrorCode.COMMUNITY_NOT_FOUND,
                message="Community not found",
            )

        decision = await self._engine.evaluate(identity, stored.policy)
        if not decision.allowed:
            return JoinOutcome(
                success=False,
                community_id=community_id,
                error_code=GateErrorCode.UNAUTHORIZED,
                message=explain_decision(decision, stored.policy),
                decision=decision,
            )
        return JoinOutcome(success=True, community_id=community_id, decision=decision)
