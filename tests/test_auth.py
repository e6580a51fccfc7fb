"""
Tests for token authentication
"""

import pytest

from tcup.auth import authenticate, require_token
from tcup.config import RelayConfig
from tcup.errors import AuthenticationFailure


@pytest.mark.parametrize("constant_time", [True, False])
class TestAuthenticate:
    def test_exact_match(self, constant_time):
        assert authenticate(b"secret", b"secret", constant_time)

    def test_mismatch(self, constant_time):
        assert not authenticate(b"secrets", b"secret", constant_time)

    def test_no_case_folding(self, constant_time):
        assert not authenticate(b"Secret", b"secret", constant_time)

    def test_no_trimming(self, constant_time):
        assert not authenticate(b" secret", b"secret", constant_time)

    def test_empty_configured_accepts_only_empty(self, constant_time):
        assert authenticate(b"", b"", constant_time)
        assert not authenticate(b"x", b"", constant_time)


@pytest.mark.parametrize("constant_time", [True, False])
class TestRequireToken:
    def test_missing_header_is_empty(self, constant_time):
        require_token(None, RelayConfig(token="", token_constant_time=constant_time))
        with pytest.raises(AuthenticationFailure):
            require_token(None, RelayConfig(token="secret", token_constant_time=constant_time))

    def test_utf8_wire_bytes_match_configured_token(self, constant_time):
        # Starlette hands header values over latin-1 decoded
        wire_value = "café".encode("utf-8").decode("latin-1")
        require_token(wire_value, RelayConfig(token="café", token_constant_time=constant_time))

    def test_latin1_value_does_not_match_utf8_token(self, constant_time):
        with pytest.raises(AuthenticationFailure):
            require_token("café", RelayConfig(token="café", token_constant_time=constant_time))


def test_require_token_error_detail():
    with pytest.raises(AuthenticationFailure) as exc_info:
        require_token("nope", RelayConfig(token="secret"))
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid token"
