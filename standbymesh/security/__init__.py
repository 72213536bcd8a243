"""
Security module: symmetric payload codec shared by all peers.
"""

from standbymesh.security.codec import CryptoCodec

__all__ = [
    "CryptoCodec",
]
