"""
Crypto Codec: Symmetric Payload Encryption Between Peers

AES-256-CBC with PKCS7 padding over a fixed key and IV.

Interoperability:
    Every peer must use the same key, IV, mode and padding; there is no
    key exchange. The built-in defaults reproduce the legacy fixed key
    material so that existing clients keep decrypting each other's
    payloads. Supplying a key through configuration is supported and
    recommended; the coordinator logs a warning while the default key
    is in use.

Message format:
    [ciphertext (n * 16 bytes)]  -- no IV prefix, no authentication tag

Stateless and safe to share between tasks.
"""

from __future__ import annotations

import logging
from typing import Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from standbymesh.core import constants as C
from standbymesh.core.config import CryptoConfig
from standbymesh.core.errors import CodecError

logger = logging.getLogger(__name__)

BLOCK_BITS = C.AES_BLOCK_BYTES * 8


class CryptoCodec:
    """
    Stateless AES-256-CBC/PKCS7 codec.

    Usage:
        codec = CryptoCodec.from_config(config.crypto)
        ciphertext = codec.encrypt("hello C2")
        codec.decrypt_text(ciphertext)  # "hello C2"

    Raises:
        CodecError: wrong key/IV size at construction; malformed,
            truncated or badly padded ciphertext on decrypt.
    """

    __slots__ = ("_key", "_iv")

    def __init__(self, key: bytes, iv: bytes) -> None:
        if len(key) != C.AES_KEY_BYTES:
            raise CodecError.invalid_key_material("key", C.AES_KEY_BYTES, len(key))
        if len(iv) != C.AES_IV_BYTES:
            raise CodecError.invalid_key_material("iv", C.AES_IV_BYTES, len(iv))
        self._key = bytes(key)
        self._iv = bytes(iv)

    @classmethod
    def from_config(cls, config: CryptoConfig) -> CryptoCodec:
        if config.uses_default_key:
            logger.warning(
                "Crypto codec is using the built-in shared key; "
                "set STANDBYMESH_CRYPTO_KEY and STANDBYMESH_CRYPTO_IV to override"
            )
        return cls(config.key, config.iv)

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, plaintext: Union[str, bytes]) -> bytes:
        """Encrypt text (UTF-8 encoded) or raw bytes."""
        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else bytes(plaintext)

        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(data) + padder.finalize()

        encryptor = self._cipher().encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt to raw bytes."""
        if not isinstance(ciphertext, (bytes, bytearray, memoryview)):
            raise CodecError.malformed_input(
                0, f"expected bytes, got {type(ciphertext).__name__}",
            )
        length = len(ciphertext)
        if length == 0:
            raise CodecError.malformed_input(0, "empty ciphertext")
        if length % C.AES_BLOCK_BYTES != 0:
            raise CodecError.malformed_input(
                length, f"length is not a multiple of {C.AES_BLOCK_BYTES}",
            )

        decryptor = self._cipher().decryptor()
        padded = decryptor.update(bytes(ciphertext)) + decryptor.finalize()

        unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CodecError.padding_mismatch(cause=e) from e

    def decrypt_text(self, ciphertext: bytes) -> str:
        """Decrypt and decode as UTF-8."""
        data = self.decrypt(ciphertext)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError.invalid_encoding(cause=e) from e
