"""Tests for the address reputation heuristic."""

import logging

import pytest

from tx_shield.risk_engine.reputation import (
    DEFAULT_REPUTATION,
    check_address,
    reputation_factors,
    safe_check_address,
)
from tx_shield.risk_engine.types import AddressReputation
from tx_shield.utils.address import ZERO_ADDRESS

from builders import SCAM, UNISWAP_V2, USDC


class TestCheckAddress:
    """Ordered rules, first match wins."""

    @pytest.mark.parametrize("addr", ["", None, ZERO_ADDRESS, "0x0"])
    def test_empty_or_zero(self, addr):
        rep = check_address(addr)
        assert not rep.is_scam
        assert rep.confidence == 0
        assert rep.risk_level == 0

    def test_known_scam(self):
        rep = check_address(SCAM)
        assert rep.is_scam
        assert rep.confidence == 0.9
        assert rep.risk_level == 9

    def test_known_scam_any_case(self):
        assert check_address(SCAM.upper().replace("0X", "0x")).is_scam

    def test_suspicious_list(self):
        rep = check_address("0xfff9976782d46cc05630d1f6ebab18b2324d6b14")
        assert not rep.is_scam
        assert rep.risk_level == 6

    def test_utility_beats_patterns(self):
        # the 1inch router has seven repeated 1s but is allow-listed first
        rep = check_address("0x1111111254fb6c44bac0bed2854e76f90643097d")
        assert rep.risk_level == 1

    def test_repeated_characters(self):
        rep = check_address("0x" + "7" * 6 + "12ab34cd56ef" + "0123456789" * 2 + "98")
        assert rep.risk_level == 5
        assert rep.confidence == 0.5

    def test_leet_pattern(self):
        rep = check_address("0x12dead4567890123456789012a4c6e8a0c2e4a67")
        assert rep.risk_level == 4
        assert "leet" in rep.reason

    def test_default(self):
        rep = check_address(USDC)
        assert rep == DEFAULT_REPUTATION
        assert rep.reason.startswith("No known issues detected")


class _BrokenOracle:
    def check(self, address):
        raise ConnectionError("reputation service down")


def test_failing_oracle_falls_back_to_default(caplog):
    with caplog.at_level(logging.WARNING):
        rep = safe_check_address(_BrokenOracle(), SCAM)
    assert rep == DEFAULT_REPUTATION
    assert "reputation check failed" in caplog.text


def test_default_oracle_is_static_lists():
    assert safe_check_address(None, SCAM).is_scam
    assert safe_check_address(None, UNISWAP_V2).risk_level == 1


class TestReputationFactors:
    """Escalation of reputations into scorer inputs."""

    def test_scam_destination(self):
        assert reputation_factors(check_address(SCAM)) == {"is_known_scammer": True}

    def test_suspicious_destination(self):
        rep = AddressReputation(is_scam=False, confidence=0.6, reason="x", risk_level=6)
        assert reputation_factors(rep) == {"scam_similarity": 0.6}

    def test_scam_counterparty(self):
        factors = reputation_factors(DEFAULT_REPUTATION, check_address(SCAM))
        assert factors == {"interacts_with_blacklisted": True}

    def test_default_adds_nothing(self):
        assert reputation_factors(DEFAULT_REPUTATION, DEFAULT_REPUTATION) == {}
