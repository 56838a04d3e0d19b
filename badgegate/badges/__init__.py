"""Badge policy evaluation.

This package implements badge-gated access to communities:
- Badge policies are one or more clauses (age, nationality, company
  domain) combined with ANY or ALL
- Attestations are queried per clause from external registries and
  normalized before comparison
- Policies have an order-independent canonical key used to reject
  duplicate communities
- Creation and join flows wire policy parsing, signature checks,
  duplicate detection and authorization together

Registry failures never raise out of authorization; they surface as
unsatisfied clauses with a readable reason.
"""

from badgegate.badges.attestation import (
    AttestationClient,
    AttestationRegistry,
    HttpAttestationRegistry,
    RegistryRecord,
    build_attestation_client,
)
from badgegate.badges.authorization import AuthorizationEngine, evaluate_clause
from badgegate.badges.canonical import canonical_clause, canonicalize_policy
from badgegate.badges.communities import (
    CommunityGate,
    CreationOutcome,
    GateErrorCode,
    InMemoryPolicyStore,
    JoinOutcome,
    PolicyStore,
    SignatureVerifier,
    StoredPolicy,
    explain_decision,
    signing_message,
)
from badgegate.badges.country_codes import (
    ISO3166_ALPHA3_CODES,
    country_name,
    is_known_nationality_code,
    is_mrz_code,
    normalize_nationality_code,
)
from badgegate.badges.country_groups import COUNTRY_GROUPS, countries_for_group
from badgegate.badges.duplicates import check_duplicate
from badgegate.badges.exceptions import (
    BadgeGateError,
    DuplicatePolicyError,
    InvalidPolicyError,
    RegistryQueryError,
)
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
from badgegate.badges.policy import (
    CreateCommunityRequest,
    parse_create_request,
    policy_from_payload,
    policy_to_payload,
)

__all__ = [
    # Models
    "AttestationKind",
    "AttestationResult",
    "AuthorizationDecision",
    "BadgeClause",
    "BadgePolicy",
    "CombinationMode",
    "MissingClause",
    # Errors
    "BadgeGateError",
    "DuplicatePolicyError",
    "InvalidPolicyError",
    "RegistryQueryError",
    # Attestation
    "AttestationClient",
    "AttestationRegistry",
    "HttpAttestationRegistry",
    "RegistryRecord",
    "build_attestation_client",
    # Authorization
    "AuthorizationEngine",
    "evaluate_clause",
    # Canonicalization and duplicates
    "canonical_clause",
    "canonicalize_policy",
    "check_duplicate",
    # Request parsing
    "CreateCommunityRequest",
    "parse_create_request",
    "policy_from_payload",
    "policy_to_payload",
    # Community flows
    "CommunityGate",
    "CreationOutcome",
    "GateErrorCode",
    "InMemoryPolicyStore",
    "JoinOutcome",
    "PolicyStore",
    "SignatureVerifier",
    "StoredPolicy",
    "explain_decision",
    "signing_message",
    # Country code utilities
    "COUNTRY_GROUPS",
    "ISO3166_ALPHA3_CODES",
    "countries_for_group",
    "country_name",
    "is_known_nationality_code",
    "is_mrz_code",
    "normalize_company_domain",
    "normalize_nationality_code",
]
