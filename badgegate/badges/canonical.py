# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Canonical serialization of badge policies.

Two policies that describe the same requirement set must serialize to
the same key, whatever order the creator listed clauses or nationality
codes in and whatever spelling (case, MRZ filler, alpha-2, full-width)
they used. The key is compact JSON with no whitespace:

1. each clause's values are normalized, sorted and de-duplicated
   (nationality through the nationality normalizer, company domain
   lower-cased without ``@``, age reduced to the sentinel);
2. clauses are sorted by ``(kind, serialized values)``;
3. the combination mode is included only when there is more than one
   clause, since a single clause means the same thing under ANY and ALL.

Keys are used for equality tests only and are never parsed back.
"""

from __future__ import annotations

import json
from typing import Dict, List, Tuple

from badgegate.config import AGE_SENTINEL
from badgegate.badges.country_codes import normalize_nationality_code
from badgegate.badges.models import AttestationKind, BadgeClause, BadgePolicy, normalize_company_domain

__all__ = [
    "canonical_clause",
    "canonicalize_policy",
]


def _compact(data: object) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, sort_keys=True)


def _canonical_values(clause: BadgeClause) -> List[str]:
    if clause.kind is AttestationKind.AGE:
        return [AGE_SENTINEL]
    if clause.kind is AttestationKind.NATIONALITY:
        return sorted({normalize_nationality_code(v) for v in clause.values})
    return sorted({normalize_company_domain(v) for v in clause.values})


def canonical_clause(clause: BadgeClause) -> Dict[str, object]:
    """Return the canonical dict form of one clause."""
    return {"kind": clause.kind.value, "values": _canonical_values(clause)}


def _sort_key(entry: Dict[str, object]) -> Tuple[str, str]:
    return str(entry["kind"]), _compact(entry["values"])


def canonicalize_policy(policy: BadgePolicy) -> str:
    """Serialize *policy* to its order-independent canonical key.

    Returns
    -------
    str
        Compact JSON, e.g.
        ``{"clauses":[{"kind":"nationality","values":["DEU","FRA"]}]}``.
    """
    clauses = sorted((canonical_clause(c) for c in policy.clauses), key=_sort_key)
    data: Dict[str, object] = {"clauses": clauses}
    if len(clauses) > 1:
        data["combination"] = policy.effective_combination.value
    return _compact(data)
