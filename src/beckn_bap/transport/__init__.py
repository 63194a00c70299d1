"""BAP HTTP transport layer.

- dispatcher: signed outbound calls over httpx
- callbacks: inbound callback authentication and correlation
- server: FastAPI application factory

Public exports:
    BecknDispatcher: Outbound protocol client
    DispatchResult: Outcome of one outbound call
    CallbackHandler: Inbound callback processing
    CallbackResult: HTTP status and body for a callback
    create_app: FastAPI application factory
"""

from beckn_bap.transport.callbacks import CallbackHandler, CallbackResult
from beckn_bap.transport.dispatcher import BecknDispatcher, DispatchResult
from beckn_bap.transport.server import create_app

__all__ = [
    "BecknDispatcher",
    "DispatchResult",
    "CallbackHandler",
    "CallbackResult",
    "create_app",
]
