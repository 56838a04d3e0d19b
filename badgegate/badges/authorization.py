# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Badge-gated authorization.

Evaluates one identity against one :class:`BadgePolicy`:

* **Per clause** the matching attestation is queried and compared:

  - *Age* is satisfied by any verified age attestation.
  - *Nationality* is satisfied when the normalized attested code is one
    of the clause's codes.
  - *Company* is satisfied when the attested domain equals the clause's
    domain exactly (case-insensitive; no suffix or substring match).

  Unverified attestations, failed registry queries and value mismatches
  all land in ``missing`` with a readable reason.

* **Combination**: ALL requires an empty ``missing`` list, ANY requires a
  non-empty ``owned`` list. Single-clause policies evaluate as ANY.

Clause queries run concurrently. A registry that raises or stalls only
affects its own clause; the verification timestamp is informational and
never changes the decision.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from badgegate.config import PARALLEL_CLAUSE_QUERIES, REGISTRY_QUERY_FAILED
from badgegate.badges.attestation import AttestationClient
from badgegate.badges.country_codes import country_name, normalize_nationality_code
from badgegate.badges.models import (
    AttestationKind,
    AttestationResult,
    AuthorizationDecision,
    BadgeClause,
    BadgePolicy,
    CombinationMode,
    MissingClause,
    normalize_company_domain,
)

logger = logging.getLogger("badgegate.authorization")

__all__ = [
    "AuthorizationEngine",
    "evaluate_clause",
]


# ======================================================================
# Clause evaluation
# ======================================================================


def _describe_nationalities(codes) -> str:
    return ", ".join(f"{code} ({country_name(code)})" for code in codes)


def evaluate_clause(clause: BadgeClause, attestation: AttestationResult) -> Optional[str]:
    """Check one clause against one attestation.

    Parameters
    ----------
    clause : BadgeClause
        The requirement.
    attestation : AttestationResult
        Attestation of the clause's kind for the identity.

    Returns
    -------
    str or None
        ``None`` when the clause is satisfied, otherwise the reason it
        is not.
    """
    if not attestation.verified:
        required = clause.describe()
        if attestation.error:
            return f"{clause.kind.label} {attestation.error}; cannot confirm {required}"
        return f"Identity has not verified {clause.kind.label}; required: {required}"

    if clause.kind is AttestationKind.AGE:
        return None

    if clause.kind is AttestationKind.NATIONALITY:
        attested = normalize_nationality_code(attestation.value or "")
        if attested in clause.values:
            return None
        return (
            f"Nationality {attested} ({country_name(attested)}) "
            f"not in required list: {_describe_nationalities(clause.values)}"
        )

    attested = normalize_company_domain(attestation.value or "")
    required_domain = clause.domain or ""
    if attested == normalize_company_domain(required_domain):
        return None
    return f"Company domain {attested} does not match required {required_domain}"


# ======================================================================
# Engine
# ======================================================================


class AuthorizationEngine:
    """Evaluates identities against badge policies.

    Parameters
    ----------
    client : AttestationClient
        Source of attestation state.
    parallel : bool
        Query a policy's clauses concurrently (default from
        ``BADGEGATE_PARALLEL_CLAUSE_QUERIES``).
    """

    def __init__(self, client: AttestationClient, parallel: bool = PARALLEL_CLAUSE_QUERIES):
        self._client = client
        self._parallel = parallel

    async def _attest(self, identity: str, clause: BadgeClause) -> AttestationResult:
        try:
            return await self._client.query(identity, clause.kind)
        except Exception as exc:
            # AttestationClient does not raise; substitutes might.
            logger.error("Attestation query raised for %s/%s: %s", identity, clause.kind.value, exc)
            return AttestationResult.unverified(clause.kind, error=REGISTRY_QUERY_FAILED)

    async def _attest_all(self, identity: str, policy: BadgePolicy) -> List[AttestationResult]:
        if self._parallel and len(policy.clauses) > 1:
            return list(await asyncio.gather(*(self._attest(identity, c) for c in policy.clauses)))
        return [await self._attest(identity, c) for c in policy.clauses]

    async def evaluate(self, identity: str, policy: BadgePolicy) -> AuthorizationDecision:
        """Evaluate *identity* against *policy*.

        Never raises for registry problems; they show up as ``missing``
        entries.

        Returns
        -------
        AuthorizationDecision
            Decision with ``owned`` and ``missing`` in clause order.
        """
        attestations = await self._attest_all(identity, policy)

        owned: List[BadgeClause] = []
        missing: List[MissingClause] = []
        for clause, attestation in zip(policy.clauses, attestations):
            reason = evaluate_clause(clause, attestation)
            if reason is None:
                owned.append(clause)
            else:
                missing.append(MissingClause(clause=clause, error=reason))

        combination = policy.effective_combination
        allowed, rule = _resolve(combination, owned, missing)

        logger.info(
            "Authorization for %s: allowed=%s (%s, owned=%d, missing=%d)",
            identity,
            allowed,
            rule,
            len(owned),
            len(missing),
        )
        return AuthorizationDecision(
            allowed=allowed,
            combination=combination,
            owned=owned,
            missing=missing,
        )


def _resolve(
    combination: CombinationMode,
    owned: List[BadgeClause],
    missing: List[MissingClause],
) -> Tuple[bool, str]:
    if combination is CombinationMode.ALL:
        return not missing, "all"
    return bool(owned), "any"
