# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Badge policy request boundary.

Community creation requests arrive in one of two shapes:

* the multi-badge shape, ``badgeRequirements`` plus ``combinationLogic``::

      {"badgeRequirements": [{"type": "age"},
                             {"type": "nationality", "values": ["DEU", "FRA"]},
                             {"type": "company", "value": "@acme.com"}],
       "combinationLogic": "all"}

* the legacy single-badge shape, ``attestationType`` plus
  ``attestationValues`` (a list for nationality, a domain string for
  company, ignored for age).

Both are translated into one :class:`BadgePolicy` here so nothing
downstream branches on format age. Nationality requirements may also
name country ``groups`` that expand into their member codes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from badgegate.badges.country_groups import countries_for_group
from badgegate.badges.exceptions import InvalidPolicyError
from badgegate.badges.models import AttestationKind, BadgeClause, BadgePolicy


# =============================================================================
# Request DTOs
# =============================================================================


class BadgeRequirementPayload(BaseModel):
    """One badge requirement as submitted by a client."""

    type: str = Field(..., description="age | nationality | company")
    value: Optional[str] = Field(None, description="Company domain, or 'verified' for age")
    values: Optional[List[str]] = Field(None, description="Nationality codes")
    groups: Optional[List[str]] = Field(None, description="Country group keys, nationality only")

    @field_validator("values", "groups", mode="before")
    @classmethod
    def scalar_to_list(cls, v):
        """Accept both scalar string and list."""
        if isinstance(v, str):
            return [v]
        return v


class PolicyPayload(BaseModel):
    """Policy fields of a creation request, in either format."""

    badgeRequirements: Optional[List[BadgeRequirementPayload]] = None
    combinationLogic: Optional[str] = None
    # Legacy single-badge format
    attestationType: Optional[str] = None
    attestationValues: Optional[Union[List[str], str]] = None


class CreateCommunityRequest(PolicyPayload):
    """Signed request to create a badge-gated community."""

    name: str = Field(..., min_length=3, max_length=100, description="Community name")
    description: str = Field(..., min_length=10, max_length=500, description="Community description")
    walletAddress: str = Field(..., description="Identity of the creator")
    signature: str = Field(..., description="Creator's signature over the request")
    timestamp: int = Field(..., description="Request time, epoch milliseconds")


# =============================================================================
# Translation
# =============================================================================


def _validation_reason(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'invalid')}" if loc else first.get("msg", "invalid")


def _as_dict(data: Any) -> Dict[str, Any]:
    if not isinstance(data, Mapping):
        raise InvalidPolicyError.malformed(f"expected a JSON object, got {type(data).__name__}")
    return dict(data)


def _clause_from_requirement(req: BadgeRequirementPayload) -> BadgeClause:
    kind = req.type.strip().lower()

    if kind == AttestationKind.NATIONALITY.value:
        codes: List[str] = list(req.values or [])
        if req.value:
            codes.append(req.value)
        for group in req.groups or []:
            codes.extend(countries_for_group(group))
        return BadgeClause(AttestationKind.NATIONALITY, tuple(codes))

    if kind == AttestationKind.COMPANY.value:
        domains = [req.value] if req.value else list(req.values or [])
        return BadgeClause(AttestationKind.COMPANY, tuple(domains))

    if kind == AttestationKind.AGE.value:
        return BadgeClause(AttestationKind.AGE, (req.value,) if req.value else ())

    raise InvalidPolicyError.unknown_kind(req.type)


def _legacy_clause(attestation_type: str, values: Union[List[str], str, None]) -> BadgeClause:
    kind = attestation_type.strip().lower()

    if kind == AttestationKind.NATIONALITY.value:
        codes = [values] if isinstance(values, str) else list(values or [])
        return BadgeClause(AttestationKind.NATIONALITY, tuple(codes))

    if kind == AttestationKind.COMPANY.value:
        domains = [values] if isinstance(values, str) else list(values or [])
        return BadgeClause(AttestationKind.COMPANY, tuple(domains))

    if kind == AttestationKind.AGE.value:
        return BadgeClause.age()

    raise InvalidPolicyError.unknown_kind(attestation_type)


def policy_from_request(payload: PolicyPayload) -> BadgePolicy:
    """Translate a validated payload into a :class:`BadgePolicy`.

    The multi-badge format wins when ``badgeRequirements`` is non-empty;
    otherwise the legacy fields are used.

    Raises:
        InvalidPolicyError: If the requirements violate a policy rule
    """
    if payload.badgeRequirements:
        clauses = [_clause_from_requirement(r) for r in payload.badgeRequirements]
        return BadgePolicy(clauses=tuple(clauses), combination=payload.combinationLogic)

    if payload.attestationType:
        clause = _legacy_clause(payload.attestationType, payload.attestationValues)
        return BadgePolicy(clauses=(clause,))

    raise InvalidPolicyError.no_clauses()


def policy_from_payload(data: Mapping[str, Any]) -> BadgePolicy:
    """Parse a raw request mapping into a :class:`BadgePolicy`.

    Raises:
        InvalidPolicyError: If the mapping is malformed or describes an
            invalid policy
    """
    try:
        payload = PolicyPayload.model_validate(_as_dict(data))
    except ValidationError as e:
        raise InvalidPolicyError.malformed(_validation_reason(e)) from e
    return policy_from_request(payload)


def parse_create_request(data: Mapping[str, Any]) -> CreateCommunityRequest:
    """Validate a raw creation request mapping.

    Raises:
        InvalidPolicyError: If required request fields are missing or
            mistyped
    """
    try:
        return CreateCommunityRequest.model_validate(_as_dict(data))
    except ValidationError as e:
        raise InvalidPolicyError.malformed(_validation_reason(e)) from e


def policy_to_payload(policy: BadgePolicy) -> Dict[str, Any]:
    """Render a policy in the multi-badge request format."""
    requirements: List[Dict[str, Any]] = []
    for clause in policy.clauses:
        if clause.kind is AttestationKind.NATIONALITY:
            requirements.append({"type": clause.kind.value, "values": list(clause.values)})
        else:
            requirements.append({"type": clause.kind.value, "value": clause.values[0]})
    return {
        "badgeRequirements": requirements,
        "combinationLogic": policy.combination.value if policy.combination else None,
    }
