# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Badge gate exceptions.

Only ``InvalidPolicyError`` is raised out of the core. Registry failures
are folded into unverified attestation results and duplicate policies
are ordinary return values of the duplicate guard. Hosts that prefer
an exception get ``DuplicatePolicyError`` from
``CommunityGate.ensure_unique``.
"""


class BadgeGateError(Exception):
    """Base exception for badge gate errors."""
    pass


class InvalidPolicyError(BadgeGateError):
    """Badge policy failed construction-time validation."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @classmethod
    def no_clauses(cls) -> "InvalidPolicyError":
        return cls(code="POLICY_EMPTY", message="At least one badge requirement must be specified")

    @classmethod
    def too_many_clauses(cls, count: int, limit: int) -> "InvalidPolicyError":
        return cls(
            code="POLICY_TOO_LARGE",
            message=f"Policy has {count} badge requirements, maximum is {limit}",
        )

    @classmethod
    def missing_combination(cls) -> "InvalidPolicyError":
        return cls(
            code="COMBINATION_REQUIRED",
            message="Combination logic (any/all) is required when multiple badges are specified",
        )

    @classmethod
    def empty_nationalities(cls) -> "InvalidPolicyError":
        return cls(
            code="NATIONALITY_VALUES_EMPTY",
            message="Nationality badge must include at least one nationality",
        )

    @classmethod
    def too_many_nationalities(cls, count: int, limit: int) -> "InvalidPolicyError":
        return cls(
            code="NATIONALITY_VALUES_TOO_MANY",
            message=f"Nationality badge lists {count} nationalities, maximum is {limit}",
        )

    @classmethod
    def company_domain_count(cls, count: int) -> "InvalidPolicyError":
        return cls(
            code="COMPANY_DOMAIN_INVALID",
            message=f"Company badge must include exactly one domain, got {count}",
        )

    @classmethod
    def invalid_age_value(cls, values: object) -> "InvalidPolicyError":
        return cls(
            code="AGE_VALUE_INVALID",
            message=f"Age badge takes no value, got {values!r}",
        )

    @classmethod
    def unknown_kind(cls, kind: object) -> "InvalidPolicyError":
        return cls(code="BADGE_TYPE_INVALID", message=f"Invalid badge type: {kind}")

    @classmethod
    def unknown_combination(cls, mode: object) -> "InvalidPolicyError":
        return cls(code="COMBINATION_INVALID", message=f"Invalid combination logic: {mode}")

    @classmethod
    def unknown_country_group(cls, key: str) -> "InvalidPolicyError":
        return cls(code="COUNTRY_GROUP_UNKNOWN", message=f"Unknown country group: {key}")

    @classmethod
    def malformed(cls, reason: str) -> "InvalidPolicyError":
        return cls(code="POLICY_MALFORMED", message=f"Badge policy is malformed: {reason}")


class RegistryQueryError(BadgeGateError):
    """An attestation registry call failed after retries.

    Raised by registry adapters and caught by ``AttestationClient``; it
    never reaches authorization callers.
    """

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"{kind} registry query failed: {reason}")


class DuplicatePolicyError(BadgeGateError):
    """A new policy matches an active community's policy."""

    def __init__(self, community_id: str, community_name: str = ""):
        self.community_id = community_id
        self.community_name = community_name
        label = f'"{community_name}"' if community_name else community_id
        super().__init__(
            f"A community with these exact badge requirements already exists: {label}"
        )
