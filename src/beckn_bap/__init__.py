"""Beckn/ONDC buyer-side participant (BAP).

This package implements the protocol core of a BAP:

- Ed25519 request signing and Authorization header verification
- X25519/AES challenge decryption for the registry subscription handshake
- An in-memory, concurrency-safe transaction correlation store
- An outbound dispatcher and inbound callback handler
- A FastAPI application wiring it all together

Example:
    >>> from beckn_bap.config import BAPConfig
    >>> from beckn_bap.transport.server import create_app
    >>> app = create_app(BAPConfig.from_env())
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
