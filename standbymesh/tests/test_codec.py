"""
Unit Tests: Crypto Codec

Tests:
    - Round trip and block alignment
    - Deterministic output under the shared key
    - Malformed input, bad padding, bad UTF-8
    - Key material validation and the default-key warning
"""

import logging

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from standbymesh.core import constants as C
from standbymesh.core.config import CryptoConfig
from standbymesh.core.errors import CodecError, ErrorCode
from standbymesh.security.codec import CryptoCodec


@pytest.fixture
def codec() -> CryptoCodec:
    return CryptoCodec(C.DEFAULT_CRYPTO_KEY, C.DEFAULT_CRYPTO_IV)


class TestEncryptDecrypt:
    """Tests for the happy path."""

    def test_text_round_trip(self, codec):
        ciphertext = codec.encrypt("Hello from C1 → C2")
        assert codec.decrypt_text(ciphertext) == "Hello from C1 → C2"

    def test_bytes_round_trip(self, codec):
        payload = bytes(range(256))
        assert codec.decrypt(codec.encrypt(payload)) == payload

    def test_output_is_block_aligned(self, codec):
        assert len(codec.encrypt(b"")) == 16
        assert len(codec.encrypt(b"x" * 15)) == 16
        # A full block of plaintext gains a whole padding block
        assert len(codec.encrypt(b"x" * 16)) == 32

    def test_fixed_key_and_iv_are_deterministic(self, codec):
        other = CryptoCodec(C.DEFAULT_CRYPTO_KEY, C.DEFAULT_CRYPTO_IV)
        assert codec.encrypt("ping") == other.encrypt("ping")

    def test_different_key_produces_different_ciphertext(self, codec):
        other = CryptoCodec(b"k" * 32, C.DEFAULT_CRYPTO_IV)
        assert codec.encrypt("ping") != other.encrypt("ping")


class TestDecryptErrors:
    """Tests for malformed ciphertext handling."""

    def test_empty_input(self, codec):
        with pytest.raises(CodecError) as exc_info:
            codec.decrypt(b"")
        assert exc_info.value.code is ErrorCode.CODEC_MALFORMED_INPUT

    @pytest.mark.parametrize("ciphertext", ["x" * 16, None, 1234])
    def test_non_bytes_input(self, codec, ciphertext):
        with pytest.raises(CodecError) as exc_info:
            codec.decrypt(ciphertext)
        assert exc_info.value.code is ErrorCode.CODEC_MALFORMED_INPUT

    def test_truncated_input(self, codec):
        ciphertext = codec.encrypt("truncate me please")
        with pytest.raises(CodecError) as exc_info:
            codec.decrypt(ciphertext[:-1])
        assert exc_info.value.code is ErrorCode.CODEC_MALFORMED_INPUT

    def test_bad_padding(self, codec):
        # Raw-encrypt a zero block: it decrypts to a final byte of 0, never valid PKCS7
        encryptor = Cipher(
            algorithms.AES(C.DEFAULT_CRYPTO_KEY), modes.CBC(C.DEFAULT_CRYPTO_IV),
        ).encryptor()
        unpadded = encryptor.update(bytes(16)) + encryptor.finalize()

        with pytest.raises(CodecError) as exc_info:
            codec.decrypt(unpadded)
        assert exc_info.value.code is ErrorCode.CODEC_PADDING_MISMATCH

    def test_invalid_utf8(self, codec):
        ciphertext = codec.encrypt(b"\xff\xfe\xfd")
        assert codec.decrypt(ciphertext) == b"\xff\xfe\xfd"
        with pytest.raises(CodecError) as exc_info:
            codec.decrypt_text(ciphertext)
        assert exc_info.value.code is ErrorCode.CODEC_INVALID_ENCODING


class TestKeyMaterial:
    """Tests for construction."""

    def test_short_key_rejected(self):
        with pytest.raises(CodecError) as exc_info:
            CryptoCodec(b"short", C.DEFAULT_CRYPTO_IV)
        assert exc_info.value.code is ErrorCode.CODEC_INVALID_KEY_MATERIAL
        assert exc_info.value.context["actual"] == 5

    def test_short_iv_rejected(self):
        with pytest.raises(CodecError):
            CryptoCodec(C.DEFAULT_CRYPTO_KEY, b"iv")

    def test_default_key_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="standbymesh.security.codec"):
            CryptoCodec.from_config(CryptoConfig())
        assert "built-in shared key" in caplog.text

    def test_custom_key_is_silent(self, caplog):
        with caplog.at_level(logging.WARNING, logger="standbymesh.security.codec"):
            CryptoCodec.from_config(CryptoConfig(key=b"k" * 32, iv=b"i" * 16))
        assert "built-in shared key" not in caplog.text
