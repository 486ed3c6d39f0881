"""Paddle-Signature 검증 테스트"""
import pytest

from services.webhook_signature import compute_signature, parse_signature_header, verify_signature

SECRET = "pdl_ntfset_secret"
BODY = b'{"event_type":"subscription.created","data":{"id":"sub_1"}}'


def _header(ts: str = "1700000000", body: bytes = BODY, secret: str = SECRET) -> str:
    return f"ts={ts};h1={compute_signature(body, ts, secret)}"


def test_valid_signature_accepted():
    check = verify_signature(BODY, _header(), SECRET)

    assert check
    assert check.reason is None


def test_signature_over_exact_bytes():
    """공백만 달라도 다른 본문으로 취급한다"""
    reserialized = b'{"event_type": "subscription.created", "data": {"id": "sub_1"}}'

    check = verify_signature(reserialized, _header(), SECRET)

    assert not check
    assert check.reason == "signature_mismatch"


def test_mutated_digest_rejected():
    header = _header()
    digest = header.split("h1=")[1]
    flipped = ("0" if digest[0] != "0" else "1") + digest[1:]

    check = verify_signature(BODY, f"ts=1700000000;h1={flipped}", SECRET)

    assert not check
    assert check.reason == "signature_mismatch"


def test_changed_timestamp_rejected():
    """h1 은 그대로 두고 ts 한 글자만 바꿔도 거부한다"""
    digest = _header(ts="1700000000").split("h1=")[1]

    check = verify_signature(BODY, f"ts=1700000001;h1={digest}", SECRET)

    assert not check
    assert check.reason == "signature_mismatch"


def test_uppercased_digest_rejected():
    header = _header()
    digest = header.split("h1=")[1]

    check = verify_signature(BODY, f"ts=1700000000;h1={digest.upper()}", SECRET)

    assert not check


def test_wrong_secret_rejected():
    check = verify_signature(BODY, _header(secret="other"), SECRET)

    assert check.reason == "signature_mismatch"


@pytest.mark.parametrize("secret", [None, "", "   "])
def test_missing_secret_fails_closed(secret):
    check = verify_signature(BODY, _header(), secret)

    assert not check
    assert check.reason == "missing_secret"


@pytest.mark.parametrize("header", [None, "", "  "])
def test_missing_header_rejected(header):
    check = verify_signature(BODY, header, SECRET)

    assert check.reason == "missing_header"


@pytest.mark.parametrize(
    "header",
    [
        "h1=abc",
        "ts=1700000000",
        "garbage",
        "ts=;h1=",
        ";;;",
    ],
)
def test_malformed_header_rejected(header):
    check = verify_signature(BODY, header, SECRET)

    assert not check
    assert check.reason == "malformed_header"


def test_header_parsing_tolerates_spacing_and_extra_keys():
    parts = parse_signature_header(" ts = 1 ; h1=abc ; v=2 ;")

    assert parts == {"ts": "1", "h1": "abc", "v": "2"}


def test_skew_check_disabled_by_default():
    check = verify_signature(BODY, _header(ts="1"), SECRET)

    assert check


def test_skew_check_rejects_stale_timestamp():
    check = verify_signature(BODY, _header(ts="1700000000"), SECRET, max_skew_seconds=300, now=1700000301)

    assert not check
    assert check.reason == "timestamp_out_of_tolerance"


def test_skew_check_accepts_fresh_timestamp():
    check = verify_signature(BODY, _header(ts="1700000000"), SECRET, max_skew_seconds=300, now=1700000299)

    assert check


def test_skew_check_rejects_non_numeric_timestamp():
    check = verify_signature(BODY, _header(ts="yesterday"), SECRET, max_skew_seconds=300)

    assert check.reason == "malformed_header"
