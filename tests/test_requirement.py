"""Tests for 402 payment requirement parsing."""

import json

import pytest

from x402_requests.exceptions import RequirementParseError
from x402_requests.requirement import (
    PaymentRequirement,
    find_payment_requirements,
    parse_requirement,
    parse_requirements,
    select_requirement,
)

PAY_TO = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

REQUIREMENT = {
    "scheme": "exact",
    "network": "base-sepolia",
    "maxAmountRequired": "10000",
    "resource": "https://api.example.com/weather",
    "description": "Weather data",
    "mimeType": "application/json",
    "payTo": PAY_TO,
    "maxTimeoutSeconds": 60,
    "asset": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    "extra": {"name": "USDC", "version": "2"},
}


class TestParseRequirement:
    def test_full_requirement(self):
        req = parse_requirement(REQUIREMENT)
        assert req.scheme == "exact"
        assert req.network == "base-sepolia"
        assert req.max_amount_required == "10000"
        assert req.amount == 10000
        assert req.pay_to == PAY_TO
        assert req.max_timeout_seconds == 60
        assert req.mime_type == "application/json"
        assert req.extra == {"name": "USDC", "version": "2"}

    def test_defaults_for_minimal_requirement(self):
        req = parse_requirement({"maxAmountRequired": "1000000", "payTo": PAY_TO})
        assert req.scheme == "exact"
        assert req.network == "base"
        assert req.asset == BASE_USDC
        assert req.max_timeout_seconds == 120
        assert req.resource == ""

    def test_integer_amount_accepted(self):
        req = parse_requirement({"maxAmountRequired": 500, "payTo": PAY_TO})
        assert req.max_amount_required == "500"

    def test_amount_larger_than_float_precision(self):
        big = str(2**64 + 1)
        req = parse_requirement({"maxAmountRequired": big, "payTo": PAY_TO})
        assert req.amount == 2**64 + 1

    def test_missing_pay_to(self):
        with pytest.raises(RequirementParseError, match="payTo"):
            parse_requirement({"maxAmountRequired": "1"})

    def test_missing_amount(self):
        with pytest.raises(RequirementParseError, match="maxAmountRequired"):
            parse_requirement({"payTo": PAY_TO})

    @pytest.mark.parametrize("amount", ["-5", "1.5", "abc", "", True])
    def test_invalid_amount(self, amount):
        with pytest.raises(RequirementParseError):
            parse_requirement({"maxAmountRequired": amount, "payTo": PAY_TO})

    def test_unknown_network_without_asset(self):
        with pytest.raises(RequirementParseError, match="asset"):
            parse_requirement(
                {"maxAmountRequired": "1", "payTo": PAY_TO, "network": "solana"}
            )

    def test_unknown_network_with_explicit_asset(self):
        req = parse_requirement(
            {"maxAmountRequired": "1", "payTo": PAY_TO, "network": "eip155:999", "asset": "0xabc"}
        )
        assert req.asset == "0xabc"

    def test_non_positive_timeout(self):
        with pytest.raises(RequirementParseError, match="maxTimeoutSeconds"):
            parse_requirement({**REQUIREMENT, "maxTimeoutSeconds": 0})

    @pytest.mark.parametrize("timeout", [float("inf"), float("nan"), 1.5, True, "soon"])
    def test_invalid_timeout(self, timeout):
        with pytest.raises(RequirementParseError, match="maxTimeoutSeconds"):
            parse_requirement({**REQUIREMENT, "maxTimeoutSeconds": timeout})

    def test_integral_float_timeout_accepted(self):
        assert parse_requirement({**REQUIREMENT, "maxTimeoutSeconds": 60.0}).max_timeout_seconds == 60

    def test_timeout_too_large(self):
        with pytest.raises(RequirementParseError, match="too large"):
            parse_requirement({**REQUIREMENT, "maxTimeoutSeconds": 10**80})

    def test_amount_too_long_for_int(self):
        with pytest.raises(RequirementParseError, match="maxAmountRequired"):
            parse_requirement({**REQUIREMENT, "maxAmountRequired": "9" * 5000})

    def test_amount_beyond_uint256(self):
        with pytest.raises(RequirementParseError, match="uint256"):
            parse_requirement({**REQUIREMENT, "maxAmountRequired": str(2**256)})

    def test_negative_integer_amount(self):
        with pytest.raises(RequirementParseError):
            parse_requirement({**REQUIREMENT, "maxAmountRequired": -5})

    def test_not_an_object(self):
        with pytest.raises(RequirementParseError):
            parse_requirement(["nope"])

    def test_to_dict_uses_wire_names(self):
        data = parse_requirement(REQUIREMENT).to_dict()
        assert data == REQUIREMENT


class TestParseRequirements:
    def test_accepts_envelope(self):
        reqs = parse_requirements({"x402Version": 1, "accepts": [REQUIREMENT]})
        assert len(reqs) == 1

    def test_list_skips_bad_entries(self):
        reqs = parse_requirements([{"junk": True}, REQUIREMENT])
        assert [r.amount for r in reqs] == [10000]

    def test_list_without_usable_entries(self):
        with pytest.raises(RequirementParseError):
            parse_requirements([{"junk": True}])


class TestSelectRequirement:
    def _req(self, scheme: str) -> PaymentRequirement:
        return parse_requirement({**REQUIREMENT, "scheme": scheme})

    def test_first_wins_without_filter(self):
        reqs = [self._req("upto"), self._req("exact")]
        assert select_requirement(reqs).scheme == "upto"

    def test_filter_by_scheme(self):
        reqs = [self._req("upto"), self._req("exact")]
        assert select_requirement(reqs, ["exact"]).scheme == "exact"

    def test_no_allowed_scheme(self):
        assert select_requirement([self._req("upto")], ["exact"]) is None


class TestFindPaymentRequirements:
    def test_payment_required_header_object(self):
        headers = {"X-PAYMENT-REQUIRED": json.dumps(REQUIREMENT)}
        reqs = find_payment_requirements(headers, b"")
        assert reqs[0].pay_to == PAY_TO

    def test_header_lookup_case_insensitive(self):
        headers = {"x-payment-required": json.dumps([REQUIREMENT])}
        assert len(find_payment_requirements(headers)) == 1

    def test_legacy_header_array(self):
        headers = {"X-Payment-Requirements": json.dumps([REQUIREMENT])}
        reqs = find_payment_requirements(headers, None)
        assert reqs[0].amount == 10000

    def test_bad_header_falls_back_to_body(self):
        headers = {"X-PAYMENT-REQUIRED": "not json"}
        body = json.dumps({"accepts": [REQUIREMENT]}).encode()
        reqs = find_payment_requirements(headers, body)
        assert reqs[0].amount == 10000

    def test_body_object(self):
        body = json.dumps({"maxAmountRequired": "1000000", "payTo": PAY_TO})
        reqs = find_payment_requirements({}, body)
        assert reqs[0].amount == 1_000_000

    def test_body_without_requirement(self):
        with pytest.raises(RequirementParseError):
            find_payment_requirements({}, json.dumps({"error": "Payment Required"}).encode())

    def test_body_not_json(self):
        with pytest.raises(RequirementParseError, match="not JSON"):
            find_payment_requirements({}, b"<html>pay me</html>")

    def test_infinite_timeout_in_body(self):
        body = b'{"maxAmountRequired": "1", "payTo": "%s", "maxTimeoutSeconds": 1e999}' % PAY_TO.encode()
        with pytest.raises(RequirementParseError, match="maxTimeoutSeconds"):
            find_payment_requirements({}, body)

    def test_oversized_amount_string_in_body(self):
        body = json.dumps({"maxAmountRequired": "1" * 5000, "payTo": PAY_TO}).encode()
        with pytest.raises(RequirementParseError):
            find_payment_requirements({}, body)

    def test_oversized_integer_literal_in_body(self):
        body = b'{"maxAmountRequired": ' + b"1" * 5000 + b', "payTo": "0xabc"}'
        with pytest.raises(RequirementParseError):
            find_payment_requirements({}, body)

    def test_oversized_header_falls_back_to_body(self):
        headers = {"X-PAYMENT-REQUIRED": '{"maxAmountRequired": ' + "1" * 5000 + "}"}
        body = json.dumps(REQUIREMENT).encode()
        assert find_payment_requirements(headers, body)[0].amount == 10000

    def test_nothing_present(self):
        with pytest.raises(RequirementParseError):
            find_payment_requirements({}, b"")
