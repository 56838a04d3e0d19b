# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for badge-gated authorization decisions."""

import asyncio
import time
from datetime import datetime, timezone

import pytest

from badgegate.badges.attestation import AttestationClient, RegistryRecord
from badgegate.badges.authorization import AuthorizationEngine, evaluate_clause
from badgegate.badges.exceptions import InvalidPolicyError
from badgegate.badges.models import (
    AttestationKind,
    AttestationResult,
    BadgeClause,
    BadgePolicy,
    CombinationMode,
)

ALICE = "0xA11CE00000000000000000000000000000000001"


def _verified(kind, value=None):
    return AttestationResult(kind=kind, verified=True, value=value)


# =============================================================================
# evaluate_clause
# =============================================================================

class TestEvaluateClause:

    def test_age_satisfied_by_any_verification(self):
        assert evaluate_clause(BadgeClause.age(), _verified(AttestationKind.AGE)) is None

    def test_unverified_names_kind_and_requirement(self):
        reason = evaluate_clause(
            BadgeClause.nationality("DEU", "FRA"),
            AttestationResult.unverified(AttestationKind.NATIONALITY),
        )
        assert reason == "Identity has not verified nationality; required: Nationality (DEU, FRA)"

    def test_registry_error_in_reason(self):
        reason = evaluate_clause(
            BadgeClause.company("acme.com"),
            AttestationResult.unverified(AttestationKind.COMPANY, error="registry query failed"),
        )
        assert "registry query failed" in reason
        assert "Email (@acme.com)" in reason

    def test_nationality_mismatch_names_both_values(self):
        reason = evaluate_clause(
            BadgeClause.nationality("DEU", "FRA"),
            _verified(AttestationKind.NATIONALITY, "ITA"),
        )
        assert reason == "Nationality ITA (Italy) not in required list: DEU (Germany), FRA (France)"

    def test_nationality_attested_value_renormalized(self):
        clause = BadgeClause.nationality("DEU")
        assert evaluate_clause(clause, _verified(AttestationKind.NATIONALITY, "D<<")) is None

    def test_company_exact_match_only(self):
        clause = BadgeClause.company("acme.com")
        assert evaluate_clause(clause, _verified(AttestationKind.COMPANY, "acme.com")) is None
        for attested in ("sub.acme.com", "notacme.com", "acme.co", "acme.com.evil.io"):
            reason = evaluate_clause(clause, _verified(AttestationKind.COMPANY, attested))
            assert reason == f"Company domain {attested} does not match required acme.com"


# =============================================================================
# AuthorizationEngine
# =============================================================================

class TestAuthorizationEngine:

    @pytest.fixture
    def age_and_company(self):
        return BadgeClause.age(), BadgeClause.company("x.com")

    @pytest.mark.asyncio
    async def test_all_requires_every_clause(self, engine, registries, age_and_company):
        registries[AttestationKind.AGE].attest(ALICE)
        age, company = age_and_company
        policy = BadgePolicy.of(age, company, combination=CombinationMode.ALL)

        decision = await engine.evaluate(ALICE, policy)

        assert decision.allowed is False
        assert decision.combination is CombinationMode.ALL
        assert decision.owned == [age]
        assert len(decision.missing) == 1
        assert decision.missing[0].clause == company

    @pytest.mark.asyncio
    async def test_any_requires_one_clause(self, engine, registries, age_and_company):
        registries[AttestationKind.AGE].attest(ALICE)
        age, company = age_and_company
        policy = BadgePolicy.of(age, company, combination=CombinationMode.ANY)

        decision = await engine.evaluate(ALICE, policy)

        assert decision.allowed is True
        assert decision.owned == [age]
        assert [m.clause for m in decision.missing] == [company]

    @pytest.mark.asyncio
    async def test_all_satisfied(self, engine, registries, age_and_company):
        registries[AttestationKind.AGE].attest(ALICE)
        registries[AttestationKind.COMPANY].attest(ALICE, "x.com")
        policy = BadgePolicy.of(*age_and_company, combination="all")

        decision = await engine.evaluate(ALICE, policy)

        assert decision.allowed
        assert decision.missing == []

    @pytest.mark.asyncio
    async def test_any_with_nothing_owned(self, engine, age_and_company):
        policy = BadgePolicy.of(*age_and_company, combination="any")
        decision = await engine.evaluate(ALICE, policy)
        assert not decision.allowed
        assert len(decision.reasons) == 2

    @pytest.mark.asyncio
    async def test_single_clause_evaluates_as_any(self, engine, registries):
        registries[AttestationKind.AGE].attest(ALICE)
        decision = await engine.evaluate(ALICE, BadgePolicy.of(BadgeClause.age()))
        assert decision.allowed
        assert decision.combination is CombinationMode.ANY

    @pytest.mark.asyncio
    async def test_fail_closed_on_registry_error(self, engine, registries):
        registries[AttestationKind.AGE].attest(ALICE)
        registries[AttestationKind.NATIONALITY].failing.add(ALICE)
        nationality = BadgeClause.nationality("DEU")
        policy = BadgePolicy.of(BadgeClause.age(), nationality, combination="all")

        decision = await engine.evaluate(ALICE, policy)

        assert not decision.allowed
        assert [m.clause for m in decision.missing] == [nationality]
        assert "registry query failed" in decision.missing[0].error

    @pytest.mark.asyncio
    async def test_client_exception_does_not_escape(self, registries):
        class ExplodingClient(AttestationClient):
            async def query(self, identity, kind):
                if kind is AttestationKind.COMPANY:
                    raise RuntimeError("adapter bug")
                return await super().query(identity, kind)

        registries[AttestationKind.AGE].attest(ALICE)
        engine = AuthorizationEngine(ExplodingClient(registries))
        policy = BadgePolicy.of(BadgeClause.age(), BadgeClause.company("x.com"), combination="any")

        decision = await engine.evaluate(ALICE, policy)

        assert decision.allowed
        assert "registry query failed" in decision.missing[0].error

    @pytest.mark.asyncio
    async def test_missing_follows_clause_order(self, engine):
        clauses = (
            BadgeClause.company("x.com"),
            BadgeClause.nationality("FRA"),
            BadgeClause.age(),
        )
        decision = await engine.evaluate(ALICE, BadgePolicy(clauses=clauses, combination="all"))
        assert [m.clause for m in decision.missing] == list(clauses)

    @pytest.mark.asyncio
    async def test_clause_order_does_not_change_decision(self, engine, registries):
        registries[AttestationKind.NATIONALITY].attest(ALICE, "FRA")
        a = BadgeClause.nationality("FRA")
        b = BadgeClause.company("x.com")

        first = await engine.evaluate(ALICE, BadgePolicy.of(a, b, combination="any"))
        second = await engine.evaluate(ALICE, BadgePolicy.of(b, a, combination="any"))

        assert first.allowed == second.allowed is True

    @pytest.mark.asyncio
    async def test_clauses_queried_concurrently(self, registries):
        for registry in registries.values():
            registry.delay = 0.2
        engine = AuthorizationEngine(AttestationClient(registries), parallel=True)
        policy = BadgePolicy.of(
            BadgeClause.age(),
            BadgeClause.nationality("DEU"),
            BadgeClause.company("x.com"),
            combination="any",
        )

        start = time.monotonic()
        await engine.evaluate(ALICE, policy)
        elapsed = time.monotonic() - start

        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_slow_registry_does_not_poison_others(self, registries):
        registries[AttestationKind.AGE].attest(ALICE)
        registries[AttestationKind.COMPANY].delay = 0.05
        registries[AttestationKind.COMPANY].failing.add(ALICE)
        engine = AuthorizationEngine(AttestationClient(registries), parallel=True)
        policy = BadgePolicy.of(BadgeClause.age(), BadgeClause.company("x.com"), combination="any")

        decision = await engine.evaluate(ALICE, policy)

        assert decision.owned == [BadgeClause.age()]
        assert len(decision.missing) == 1

    @pytest.mark.asyncio
    async def test_sequential_mode(self, registries):
        registries[AttestationKind.AGE].attest(ALICE)
        engine = AuthorizationEngine(AttestationClient(registries), parallel=False)
        policy = BadgePolicy.of(BadgeClause.age(), BadgeClause.company("x.com"), combination="all")

        decision = await engine.evaluate(ALICE, policy)

        assert not decision.allowed
        assert registries[AttestationKind.AGE].calls == [ALICE]
        assert registries[AttestationKind.COMPANY].calls == [ALICE]

    @pytest.mark.asyncio
    async def test_independent_evaluations_run_concurrently(self, engine, registries):
        bob = "0xB0B0000000000000000000000000000000000002"
        registries[AttestationKind.AGE].attest(ALICE)
        policy = BadgePolicy.of(BadgeClause.age())

        alice, other = await asyncio.gather(engine.evaluate(ALICE, policy), engine.evaluate(bob, policy))

        assert alice.allowed
        assert not other.allowed


# =============================================================================
# Scenarios
# =============================================================================

class TestScenarios:

    @pytest.mark.asyncio
    async def test_mrz_nationality_matches_iso_requirement(self, engine, registries):
        registries[AttestationKind.NATIONALITY].attest(ALICE, "D<<")
        decision = await engine.evaluate(ALICE, BadgePolicy.of(BadgeClause.nationality("DEU")))
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_company_domain_case_and_whitespace(self, engine, registries):
        registries[AttestationKind.COMPANY].attest(ALICE, "Example.COM ")
        decision = await engine.evaluate(ALICE, BadgePolicy.of(BadgeClause.company("example.com")))
        assert decision.allowed

    def test_zero_clause_policy_never_constructed(self):
        with pytest.raises(InvalidPolicyError):
            BadgePolicy(clauses=[])

    @pytest.mark.asyncio
    async def test_verified_at_does_not_affect_decision(self, engine, registries):
        registries[AttestationKind.AGE].records[ALICE] = RegistryRecord(
            verified=True, verified_at=datetime(1990, 1, 1, tzinfo=timezone.utc)
        )
        decision = await engine.evaluate(ALICE, BadgePolicy.of(BadgeClause.age()))
        assert decision.allowed
