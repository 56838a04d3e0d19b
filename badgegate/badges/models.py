# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Badge policy value types.

``BadgeClause`` and ``BadgePolicy`` validate themselves on construction
and raise :class:`InvalidPolicyError`, so an invalid policy never
reaches canonicalization or authorization. Clause values are normalized
at construction: nationality codes through the nationality normalizer,
company domains lower-cased without the ``@`` prefix, and age clauses
reduced to the ``"verified"`` sentinel.

``AttestationResult`` and ``AuthorizationDecision`` are per-request
values and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union

from badgegate.config import AGE_SENTINEL, MAX_CLAUSES_PER_POLICY, MAX_NATIONALITIES_PER_CLAUSE
from badgegate.badges.country_codes import normalize_nationality_code
from badgegate.badges.exceptions import InvalidPolicyError


# =============================================================================
# Enumerations
# =============================================================================

class AttestationKind(str, Enum):
    AGE = "age"
    NATIONALITY = "nationality"
    COMPANY = "company"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    AttestationKind.AGE: "age",
    AttestationKind.NATIONALITY: "nationality",
    AttestationKind.COMPANY: "company email",
}


class CombinationMode(str, Enum):
    ANY = "any"
    ALL = "all"


def _coerce_kind(kind: Union[AttestationKind, str]) -> AttestationKind:
    try:
        return AttestationKind(kind.lower() if isinstance(kind, str) else kind)
    except ValueError:
        raise InvalidPolicyError.unknown_kind(kind) from None


def _coerce_combination(mode: Union[CombinationMode, str, None]) -> Optional[CombinationMode]:
    if mode is None or mode == "":
        return None
    try:
        return CombinationMode(mode.lower() if isinstance(mode, str) else mode)
    except ValueError:
        raise InvalidPolicyError.unknown_combination(mode) from None


def normalize_company_domain(value: str) -> str:
    """Normalize an employer domain: trim, lower-case, drop any ``@`` prefix.

    A full address is reduced to its domain part, so ``"@Acme.com"``,
    ``"acme.com "`` and ``"jane@acme.com"`` all become ``"acme.com"``.
    """
    domain = value.strip().lower()
    if "@" in domain:
        domain = domain.rsplit("@", 1)[1]
    return domain.strip()


# =============================================================================
# Badge clauses and policies
# =============================================================================

@dataclass(frozen=True)
class BadgeClause:
    """One gating condition of a community policy.

    Attributes:
        kind: The attestation kind this clause requires
        values: Sorted, de-duplicated normalized values. ``("verified",)``
            for age, one or more alpha-3 codes for nationality, exactly
            one domain for company.
    """

    kind: AttestationKind
    values: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        kind = _coerce_kind(self.kind)
        raw = (self.values,) if isinstance(self.values, str) else tuple(self.values or ())
        raw = tuple(str(v) for v in raw if v is not None and str(v).strip())

        if kind is AttestationKind.AGE:
            if any(v.strip().lower() != AGE_SENTINEL for v in raw):
                raise InvalidPolicyError.invalid_age_value(raw)
            values: Tuple[str, ...] = (AGE_SENTINEL,)
        elif kind is AttestationKind.NATIONALITY:
            values = tuple(sorted({normalize_nationality_code(v) for v in raw}))
            if not values:
                raise InvalidPolicyError.empty_nationalities()
            if len(values) > MAX_NATIONALITIES_PER_CLAUSE:
                raise InvalidPolicyError.too_many_nationalities(len(values), MAX_NATIONALITIES_PER_CLAUSE)
        else:
            values = tuple(sorted({d for d in (normalize_company_domain(v) for v in raw) if d}))
            if len(values) != 1:
                raise InvalidPolicyError.company_domain_count(len(values))

        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "values", values)

    @classmethod
    def age(cls) -> "BadgeClause":
        return cls(AttestationKind.AGE)

    @classmethod
    def nationality(cls, *codes: str) -> "BadgeClause":
        return cls(AttestationKind.NATIONALITY, codes)

    @classmethod
    def company(cls, domain: str) -> "BadgeClause":
        return cls(AttestationKind.COMPANY, (domain,))

    @property
    def domain(self) -> Optional[str]:
        """The required domain of a company clause, else None."""
        return self.values[0] if self.kind is AttestationKind.COMPANY else None

    def describe(self) -> str:
        """Short requirement label, e.g. ``Nationality (DEU, FRA)``."""
        if self.kind is AttestationKind.AGE:
            return "Age (18+)"
        if self.kind is AttestationKind.NATIONALITY:
            return f"Nationality ({', '.join(self.values)})"
        return f"Email (@{self.values[0]})"


@dataclass(frozen=True)
class BadgePolicy:
    """A community's badge requirements.

    Attributes:
        clauses: One or more clauses, in the order the creator gave them
        combination: ANY or ALL. Mandatory when there is more than one
            clause; a single-clause policy may omit it.
    """

    clauses: Tuple[BadgeClause, ...]
    combination: Optional[CombinationMode] = None

    def __post_init__(self) -> None:
        clauses = tuple(self.clauses or ())
        if not clauses:
            raise InvalidPolicyError.no_clauses()
        if len(clauses) > MAX_CLAUSES_PER_POLICY:
            raise InvalidPolicyError.too_many_clauses(len(clauses), MAX_CLAUSES_PER_POLICY)
        for clause in clauses:
            if not isinstance(clause, BadgeClause):
                raise InvalidPolicyError.malformed(f"clause must be a BadgeClause, got {type(clause).__name__}")

        combination = _coerce_combination(self.combination)
        if len(clauses) > 1 and combination is None:
            raise InvalidPolicyError.missing_combination()

        object.__setattr__(self, "clauses", clauses)
        object.__setattr__(self, "combination", combination)

    @classmethod
    def of(cls, *clauses: BadgeClause, combination: Union[CombinationMode, str, None] = None) -> "BadgePolicy":
        return cls(clauses=clauses, combination=combination)

    @property
    def effective_combination(self) -> CombinationMode:
        """Combination used for evaluation; single-clause policies use ANY."""
        if len(self.clauses) == 1:
            return CombinationMode.ANY
        return self.combination  # type: ignore[return-value]

    @property
    def primary_clause(self) -> BadgeClause:
        """First clause as given by the creator; names the community."""
        return self.clauses[0]


# =============================================================================
# Attestation results and authorization decisions
# =============================================================================

@dataclass(frozen=True)
class AttestationResult:
    """Uniform result of one attestation registry query.

    Attributes:
        kind: Attestation kind that was queried
        verified: Whether the registry attests the attribute
        value: Normalized attested value; always None when unverified
        verified_at: Verification time, informational only
        error: Reason the query failed, if it did
    """

    kind: AttestationKind
    verified: bool
    value: Optional[str] = None
    verified_at: Optional[datetime] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.verified and self.value is not None:
            raise ValueError("Unverified attestation result cannot carry a value")

    @classmethod
    def unverified(cls, kind: AttestationKind, error: Optional[str] = None) -> "AttestationResult":
        return cls(kind=kind, verified=False, error=error)


@dataclass(frozen=True)
class MissingClause:
    """A clause the identity does not satisfy, with a readable reason."""

    clause: BadgeClause
    error: str


@dataclass
class AuthorizationDecision:
    """Outcome of evaluating one identity against one policy.

    ``owned`` and ``missing`` follow the policy's clause order.
    """

    allowed: bool
    combination: CombinationMode
    owned: List[BadgeClause] = field(default_factory=list)
    missing: List[MissingClause] = field(default_factory=list)

    @property
    def reasons(self) -> List[str]:
        return [m.error for m in self.missing]
