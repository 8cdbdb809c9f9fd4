"""
Tests for callback verification

Covers:
- Callback field order
- Callback parsing and malformed input
- Approval rule (responseCode "00" OR hash match) and strict mode
- Round trip from a signed request to an approved callback
"""
import pytest

from amwalpay.exceptions import ConfigurationError, MalformedCallbackError
from amwalpay.models import CallbackParams
from amwalpay.services.callback import (
    CALLBACK_SIGNING_FIELDS,
    CallbackVerifier,
    hashes_equal,
    order_id_from_reference,
    parse_callback,
)
from amwalpay.services.signing import CURRENCY_OMR, RequestSigner

from conftest import MERCHANT_ID, SECRET_KEY, TERMINAL_ID, gateway_hash, signed_callback


def verify(params, verifier=None, **overrides):
    credentials = dict(merchant_id=MERCHANT_ID, terminal_id=TERMINAL_ID, secret_key=SECRET_KEY)
    credentials.update(overrides)
    return (verifier or CallbackVerifier()).verify(params, **credentials)


# ============== Parsing Tests ==============

class TestParseCallback:
    """Test callback query parsing"""

    def test_callback_field_order(self):
        assert CALLBACK_SIGNING_FIELDS == (
            "amount",
            "currencyId",
            "customerId",
            "customerTokenId",
            "merchantId",
            "merchantReference",
            "responseCode",
            "terminalId",
            "transactionId",
            "transactionTime",
        )

    def test_parse_valid(self):
        params = parse_callback(signed_callback(customerId="C-1", customerTokenId="T-1"))

        assert isinstance(params, CallbackParams)
        assert params.merchant_reference == "1001_250101"
        assert params.amount == "10.500"
        assert params.currency_id == "512"
        assert params.response_code == "00"
        assert params.transaction_id == "TRX-7781"
        assert params.customer_id == "C-1"
        assert params.customer_token_id == "T-1"

    def test_parse_multi_value_query(self):
        """parse_qs style lists use their first value"""
        query = {k: [v] for k, v in signed_callback().items()}
        assert parse_callback(query).transaction_id == "TRX-7781"

    def test_optional_markers_become_empty(self):
        params = parse_callback(signed_callback(customerId="null", customerTokenId="undefined"))
        assert params.customer_id == ""
        assert params.customer_token_id == ""

    @pytest.mark.parametrize("field", [
        "merchantReference",
        "amount",
        "currencyId",
        "responseCode",
        "transactionId",
        "transactionTime",
        "secureHashValue",
    ])
    def test_missing_required_field(self, field):
        params = signed_callback()
        del params[field]
        with pytest.raises(MalformedCallbackError) as exc_info:
            parse_callback(params)
        assert exc_info.value.field == field

    @pytest.mark.parametrize("field,value", [
        ("amount", "ten"),
        ("amount", "-1"),
        ("amount", "NaN"),
        ("currencyId", "OMR"),
        ("merchantReference", "1001"),
        ("responseCode", "null"),
    ])
    def test_bad_field_values(self, field, value):
        with pytest.raises(MalformedCallbackError):
            parse_callback(signed_callback(**{field: value}))

    @pytest.mark.parametrize("params", [None, {}, ["amount"]])
    def test_no_parameters(self, params):
        with pytest.raises(MalformedCallbackError):
            parse_callback(params)


class TestOrderIdFromReference:
    """Test order id recovery"""

    @pytest.mark.parametrize("reference,expected", [
        ("1001_25010145", "1001"),
        ("1001_250101", "1001"),
        ("ORD_42_25010145", "ORD_42"),
    ])
    def test_valid(self, reference, expected):
        assert order_id_from_reference(reference) == expected

    @pytest.mark.parametrize("reference", ["", "1001", "_25010145", "1001_", None])
    def test_invalid(self, reference):
        with pytest.raises(MalformedCallbackError):
            order_id_from_reference(reference)


class TestHashesEqual:
    def test_equal(self):
        assert hashes_equal("ABC", "ABC") is True

    def test_not_equal(self):
        assert hashes_equal("ABC", "ABD") is False

    def test_case_sensitive(self):
        assert hashes_equal("ABC", "abc") is False

    def test_non_ascii_supplied(self):
        """Non-ASCII input compares as unequal instead of raising"""
        assert hashes_equal("ABC", "ÄBC") is False


# ============== Verification Tests ==============

class TestCallbackVerifier:
    """Test approval decisions"""

    def test_authentic_approved_callback(self):
        decision = verify(signed_callback())

        assert decision.approved is True
        assert decision.reason == "hash_match"
        assert decision.computed_hash == decision.supplied_hash
        assert decision.order_id == "1001"
        assert decision.transaction_id == "TRX-7781"
        assert decision.response_code == "00"

    def test_recomputed_hash_matches_gateway(self):
        """Hash is recomputed over the callback fields plus local credentials"""
        params = signed_callback()
        message = (
            "amount=10.500&currencyId=512&customerId=&customerTokenId="
            "&merchantId=100045&merchantReference=1001_250101&responseCode=00"
            "&terminalId=10045001&transactionId=TRX-7781"
            "&transactionTime=2025-01-01 12:00:05"
        )
        assert verify(params).computed_hash == gateway_hash(message)

    def test_tampered_amount_declined(self):
        """Tampered fields with a failing response code are declined"""
        params = signed_callback(responseCode="05")
        params["amount"] = "0.100"

        decision = verify(params)

        assert decision.approved is False
        assert decision.reason == "hash_mismatch"
        assert decision.computed_hash != decision.supplied_hash

    def test_wrong_hash_with_success_code_is_approved(self, mock_log):
        """Deployed OR rule: responseCode "00" approves even with a wrong hash"""
        params = signed_callback()
        params["secureHashValue"] = "0" * 64

        decision = verify(params, verifier=CallbackVerifier(log=mock_log))

        assert decision.approved is True
        assert decision.reason == "response_code_only"
        mock_log.warning.assert_called_once()
        assert mock_log.warning.call_args.args[0] == "callback_hash_mismatch_accepted"

    def test_authentic_failure_code_is_approved(self, mock_log):
        """Deployed OR rule: a valid hash approves whatever the response code"""
        decision = verify(signed_callback(responseCode="05"), verifier=CallbackVerifier(log=mock_log))

        assert decision.approved is True
        assert decision.reason == "hash_only"
        assert mock_log.warning.call_args.args[0] == "callback_response_code_ignored"

    def test_strict_wrong_hash_declined(self):
        params = signed_callback()
        params["secureHashValue"] = "0" * 64

        decision = verify(params, verifier=CallbackVerifier(strict=True))

        assert decision.approved is False
        assert decision.reason == "hash_mismatch"

    def test_strict_failure_code_declined(self):
        decision = verify(signed_callback(responseCode="05"), verifier=CallbackVerifier(strict=True))

        assert decision.approved is False
        assert decision.reason == "declined_by_gateway"

    def test_strict_authentic_approved(self):
        assert verify(signed_callback(), verifier=CallbackVerifier(strict=True)).approved is True

    def test_hash_signed_with_other_secret(self):
        params = signed_callback(secret_key="ffee", responseCode="14")
        assert verify(params).approved is False

    def test_lowercase_supplied_hash_does_not_match(self):
        params = signed_callback(responseCode="05")
        params["secureHashValue"] = params["secureHashValue"].lower()
        assert verify(params).approved is False

    def test_other_merchant_does_not_match(self):
        """Merchant and terminal come from local settings, not the callback"""
        decision = verify(signed_callback(responseCode="05"), merchant_id="999999")
        assert decision.approved is False

    def test_accepts_parsed_params(self):
        params = parse_callback(signed_callback())
        assert verify(params).approved is True

    @pytest.mark.parametrize("mutate", [
        lambda p: p.pop("secureHashValue"),
        lambda p: p.pop("amount"),
        lambda p: p.update(amount="abc"),
        lambda p: p.update(currencyId="five"),
        lambda p: p.update(merchantReference="nounderscore"),
    ])
    def test_malformed_callback_not_approved(self, mutate, mock_log):
        """Malformed callbacks are declined even with responseCode "00" """
        params = signed_callback()
        mutate(params)

        decision = verify(params, verifier=CallbackVerifier(log=mock_log))

        assert decision.approved is False
        assert decision.computed_hash is None
        mock_log.warning.assert_called_once()
        assert mock_log.warning.call_args.args[0] == "callback_malformed"

    @pytest.mark.parametrize("params", [None, {}, "responseCode=00"])
    def test_garbage_not_approved(self, params):
        assert verify(params).approved is False

    @pytest.mark.parametrize("field", ["secret_key", "merchant_id", "terminal_id"])
    def test_empty_credentials_raise(self, field):
        with pytest.raises(ConfigurationError):
            verify(signed_callback(), **{field: ""})

    def test_logs_both_hashes(self, mock_log):
        verify(signed_callback(), verifier=CallbackVerifier(log=mock_log))

        mock_log.debug.assert_called_once()
        fields = mock_log.debug.call_args.kwargs
        assert fields["supplied_hash"] == fields["computed_hash"]
        assert SECRET_KEY not in fields.values()


# ============== Round Trip Tests ==============

class TestRoundTrip:
    """Signed request fields echoed back verify as approved"""

    def test_sign_then_verify(self):
        secure_hash, payload = RequestSigner().build_signed_request(
            amount="10.500",
            currency_id=CURRENCY_OMR,
            merchant_id="M",
            merchant_reference="R_250101",
            terminal_id="T",
            secret_key="0a0b",
            timestamp="20250101120000",
        )
        assert secure_hash

        callback = signed_callback(
            secret_key="0a0b",
            merchant_id="M",
            terminal_id="T",
            merchantReference=payload["MerchantReference"],
            amount=payload["AmountTrxn"],
            currencyId=str(payload["CurrencyId"]),
            responseCode="00",
        )
        decision = CallbackVerifier(strict=True).verify(
            callback,
            merchant_id="M",
            terminal_id="T",
            secret_key="0a0b",
        )
        assert decision.approved is True
        assert decision.order_id == "R"
