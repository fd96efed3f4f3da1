"""Tests for the crypto module."""

import base64

import pytest
from cryptography.fernet import InvalidToken

from libra.utils import decrypt_token, encrypt_token, is_encrypted


class TestEncryptToken:
    """Tests for token encryption."""

    def test_encrypt_empty_string(self):
        assert encrypt_token("") == ""

    def test_encrypt_returns_different_value(self):
        token = "ya29.test-access-token"
        result = encrypt_token(token)
        assert result != token
        assert len(result) > len(token)

    def test_encrypt_uses_random_iv(self):
        assert encrypt_token("test-token") != encrypt_token("test-token")

    def test_encrypt_produces_base64_output(self):
        base64.urlsafe_b64decode(encrypt_token("test-token").encode())


class TestDecryptToken:
    """Tests for token decryption."""

    def test_decrypt_empty_string(self):
        assert decrypt_token("") == ""

    def test_round_trip(self):
        token = "1//0refresh-token-value"
        assert decrypt_token(encrypt_token(token)) == token

    def test_tampered_value_raises(self):
        encrypted = base64.urlsafe_b64decode(encrypt_token("secret").encode())
        tampered = encrypted[:-1] + bytes([encrypted[-1] ^ 1])
        with pytest.raises(InvalidToken):
            decrypt_token(base64.urlsafe_b64encode(tampered).decode())


class TestIsEncrypted:
    def test_encrypted_value(self):
        assert is_encrypted(encrypt_token("ya29.token")) is True

    @pytest.mark.parametrize("value", ["", "ya29.plain-access-token", "not base64 !!!"])
    def test_plain_values(self, value):
        assert is_encrypted(value) is False
