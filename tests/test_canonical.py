# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for canonical policy keys and duplicate detection."""

import itertools
import json

from badgegate.badges.canonical import canonical_clause, canonicalize_policy
from badgegate.badges.duplicates import check_duplicate
from badgegate.badges.models import BadgeClause, BadgePolicy


# =============================================================================
# canonicalize_policy
# =============================================================================

class TestCanonicalizePolicy:

    def test_compact_format(self):
        policy = BadgePolicy.of(BadgeClause.nationality("FRA", "DEU"))
        assert canonicalize_policy(policy) == '{"clauses":[{"kind":"nationality","values":["DEU","FRA"]}]}'

    def test_value_order_independent(self):
        a = BadgePolicy.of(BadgeClause.nationality("DEU", "FRA"))
        b = BadgePolicy.of(BadgeClause.nationality("FRA", "DEU"))
        assert canonicalize_policy(a) == canonicalize_policy(b)

    def test_value_spelling_independent(self):
        a = BadgePolicy.of(BadgeClause.nationality("DEU", "GBR"))
        b = BadgePolicy.of(BadgeClause.nationality("gbd", "D<<", "ＤＥＵ"))
        assert canonicalize_policy(a) == canonicalize_policy(b)

    def test_clause_order_independent(self):
        clauses = [
            BadgeClause.age(),
            BadgeClause.nationality("DEU", "FRA"),
            BadgeClause.company("acme.com"),
            BadgeClause.company("other.org"),
        ]
        keys = {
            canonicalize_policy(BadgePolicy(clauses=perm, combination="all"))
            for perm in itertools.permutations(clauses)
        }
        assert len(keys) == 1

    def test_combination_included_for_multi_clause(self):
        clauses = (BadgeClause.age(), BadgeClause.company("acme.com"))
        any_key = canonicalize_policy(BadgePolicy(clauses=clauses, combination="any"))
        all_key = canonicalize_policy(BadgePolicy(clauses=clauses, combination="all"))
        assert any_key != all_key
        assert json.loads(all_key)["combination"] == "all"

    def test_combination_omitted_for_single_clause(self):
        clause = BadgeClause.company("acme.com")
        assert canonicalize_policy(BadgePolicy.of(clause, combination="all")) == canonicalize_policy(
            BadgePolicy.of(clause, combination="any")
        )
        assert "combination" not in json.loads(canonicalize_policy(BadgePolicy.of(clause)))

    def test_different_values_differ(self):
        a = BadgePolicy.of(BadgeClause.nationality("DEU"))
        b = BadgePolicy.of(BadgeClause.nationality("DEU", "FRA"))
        assert canonicalize_policy(a) != canonicalize_policy(b)

    def test_company_case_and_prefix(self):
        a = BadgePolicy.of(BadgeClause.company("@Acme.COM"))
        b = BadgePolicy.of(BadgeClause.company("acme.com"))
        assert canonicalize_policy(a) == canonicalize_policy(b)

    def test_canonical_clause(self):
        assert canonical_clause(BadgeClause.age()) == {"kind": "age", "values": ["verified"]}


# =============================================================================
# check_duplicate
# =============================================================================

class TestCheckDuplicate:

    def test_reordered_nationalities_flagged(self):
        existing = [BadgePolicy.of(BadgeClause.nationality("DEU", "FRA"))]
        new = BadgePolicy.of(BadgeClause.nationality("FRA", "DEU"))
        assert check_duplicate(new, existing) == 0

    def test_returns_first_match(self):
        age = BadgePolicy.of(BadgeClause.age())
        existing = [
            BadgePolicy.of(BadgeClause.company("acme.com")),
            age,
            BadgePolicy.of(BadgeClause.age()),
        ]
        assert check_duplicate(BadgePolicy.of(BadgeClause.age()), existing) == 1

    def test_unique_policy(self):
        existing = [BadgePolicy.of(BadgeClause.nationality("DEU", "FRA"))]
        new = BadgePolicy.of(BadgeClause.nationality("DEU", "ITA"))
        assert check_duplicate(new, existing) is None

    def test_empty_store(self):
        assert check_duplicate(BadgePolicy.of(BadgeClause.age()), []) is None

    def test_same_clauses_different_combination_not_duplicate(self):
        clauses = (BadgeClause.age(), BadgeClause.company("acme.com"))
        existing = [BadgePolicy(clauses=clauses, combination="any")]
        assert check_duplicate(BadgePolicy(clauses=clauses, combination="all"), existing) is None
