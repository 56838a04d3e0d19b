# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Badge gate configuration.

Normative constants are fixed by the badge policy format. Configurable
defaults may be overridden via environment variables.
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

AGE_SENTINEL: str = "verified"
REGISTRY_QUERY_FAILED: str = "registry query failed"
REGISTRY_NOT_CONFIGURED: str = "registry not configured"

# =============================================================================
# POLICY LIMITS
# =============================================================================

MAX_NATIONALITIES_PER_CLAUSE: int = int(os.getenv("BADGEGATE_MAX_NATIONALITIES_PER_CLAUSE", "50"))
MAX_CLAUSES_PER_POLICY: int = int(os.getenv("BADGEGATE_MAX_CLAUSES", "10"))
REQUEST_MAX_AGE_SECONDS: int = int(os.getenv("BADGEGATE_REQUEST_MAX_AGE_SECONDS", "300"))

# =============================================================================
# ATTESTATION REGISTRIES
# =============================================================================

AGE_REGISTRY_URL: str = os.getenv("BADGEGATE_AGE_REGISTRY_URL", "")
NATIONALITY_REGISTRY_URL: str = os.getenv("BADGEGATE_NATIONALITY_REGISTRY_URL", "")
COMPANY_REGISTRY_URL: str = os.getenv("BADGEGATE_COMPANY_REGISTRY_URL", "")

REGISTRY_TIMEOUT_SECONDS: float = float(os.getenv("BADGEGATE_REGISTRY_TIMEOUT", "10.0"))
REGISTRY_RETRY_MAX_ATTEMPTS: int = int(os.getenv("BADGEGATE_REGISTRY_RETRY_MAX_ATTEMPTS", "3"))
REGISTRY_RETRY_BACKOFF_BASE: float = float(os.getenv("BADGEGATE_REGISTRY_RETRY_BACKOFF_BASE", "1.0"))
PARALLEL_CLAUSE_QUERIES: bool = os.getenv("BADGEGATE_PARALLEL_CLAUSE_QUERIES", "true").lower() == "true"


def registry_endpoints() -> dict[str, str]:
    """Map of attestation kind value to registry base URL.

    Kinds without a configured URL are omitted so that queries for them
    fail closed instead of hitting an empty host.
    """
    endpoints = {
        "age": AGE_REGISTRY_URL,
        "nationality": NATIONALITY_REGISTRY_URL,
        "company": COMPANY_REGISTRY_URL,
    }
    return {kind: url.rstrip("/") for kind, url in endpoints.items() if url.strip()}


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("BADGEGATE_LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("BADGEGATE_LOG_FORMAT", "json")
