"""FastAPI application for the BAP.

Three groups of routes:

- Network callbacks: POST /on_search, /on_select, /on_init, /on_confirm,
  /on_status, /on_cancel, /on_update, /on_error and /on_subscribe
- Client API: POST /api/search, /api/select, /api/init, /api/confirm,
  /api/status, /api/cancel; GET /api/transactions/{id}, /api/results/{id}
- Operations: GET /health, GET /metrics (Prometheus text)

Example:
    >>> from beckn_bap.transport.server import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn --factory beckn_bap.transport.server:create_default_app
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from beckn_bap import __version__
from beckn_bap.config import BAPConfig
from beckn_bap.errors import (
    BAPConnectionError,
    BAPError,
    BAPTimeoutError,
    TransactionNotFoundError,
)
from beckn_bap.models.api import (
    CancelRequest,
    ConfirmRequest,
    InitRequest,
    SearchRequest,
    SelectRequest,
    StatusRequest,
)
from beckn_bap.models.enums import Action
from beckn_bap.observability import get_logger, get_metrics
from beckn_bap.protocol.results import search_results
from beckn_bap.state.correlation import TransactionStore
from beckn_bap.transport.callbacks import CallbackHandler
from beckn_bap.transport.dispatcher import BecknDispatcher, DispatchResult

logger = get_logger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _error_response(status_code: int, error: BAPError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error.to_dict()})


async def _handle_timeout(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, BAPTimeoutError)
    return _error_response(504, exc)


async def _handle_connection_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, BAPConnectionError)
    return _error_response(502, exc)


async def _handle_not_found(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TransactionNotFoundError)
    return _error_response(404, exc)


async def _handle_invalid_request(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "bap:request/invalid",
                "message": "Invalid request body",
                "details": {"errors": [str(err.get("msg")) for err in exc.errors()]},
            }
        },
    )


def _dispatch_response(result: DispatchResult, status: str) -> dict[str, Any]:
    return {
        "success": True,
        "transaction_id": result.transaction_id,
        "message_id": result.message_id,
        "status": status,
        "acknowledged": result.acknowledged,
        "response": result.response,
    }


def create_app(
    config: BAPConfig | None = None,
    store: TransactionStore | None = None,
    dispatcher: BecknDispatcher | None = None,
    handler: CallbackHandler | None = None,
) -> FastAPI:
    """Create the BAP application.

    Args:
        config: BAP settings; read from the environment when omitted
        store: Correlation store shared by dispatcher and callback handler
        dispatcher: Outbound dispatcher; one owning its own HTTP client is
            created (and closed on shutdown) when omitted
        handler: Callback handler; built from config and store when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or BAPConfig.from_env()
    store = store or TransactionStore()
    owns_dispatcher = dispatcher is None
    dispatcher = dispatcher or BecknDispatcher(config, store)
    handler = handler or CallbackHandler(config, store)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_dispatcher:
            await dispatcher.aclose()

    app = FastAPI(
        title="Beckn BAP",
        description=f"Beckn buyer app for {config.subscriber_id}",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.callback_handler = handler

    app.add_exception_handler(BAPTimeoutError, _handle_timeout)
    app.add_exception_handler(BAPConnectionError, _handle_connection_error)
    app.add_exception_handler(TransactionNotFoundError, _handle_not_found)
    app.add_exception_handler(RequestValidationError, _handle_invalid_request)

    logger.info(
        "bap.server.created",
        subscriber_id=config.subscriber_id,
        gateway_url=config.gateway_url,
        verify_auth=config.verify_signatures,
        strict_context=config.strict_context,
        ephemeral_keys=config.ephemeral_keys,
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness probe with identity and store size."""
        return JSONResponse(
            status_code=200,
            content={
                "status": "ok",
                "subscriber_id": config.subscriber_id,
                "domain": config.domain,
                "core_version": config.core_version,
                "transactions": store.count(),
            },
        )

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Prometheus text exposition of the process metrics."""
        return PlainTextResponse(
            content=get_metrics().export_prometheus(),
            media_type=PROMETHEUS_CONTENT_TYPE,
        )

    def _callback_endpoint(action: Action) -> Callable[[Request], Awaitable[JSONResponse]]:
        async def receive(request: Request) -> JSONResponse:
            raw_body = await request.body()
            result = handler.handle(action, raw_body, request.headers.get("Authorization"))
            return JSONResponse(status_code=result.status_code, content=result.body)

        return receive

    for action in Action.callbacks():
        app.add_api_route(
            f"/{action.value}",
            _callback_endpoint(action),
            methods=["POST"],
            name=action.value,
        )

    @app.post("/on_subscribe")
    async def on_subscribe(request: Request) -> JSONResponse:
        """Registry subscription challenge: ``{challenge}`` -> ``{answer}``."""
        result = handler.handle_subscribe(await request.body())
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.post("/api/search")
    async def api_search(body: SearchRequest) -> dict[str, Any]:
        result = await dispatcher.search(
            pickup=body.pickup, drop=body.drop, transaction_id=body.transaction_id
        )
        return _dispatch_response(result, "searching")

    @app.post("/api/select")
    async def api_select(body: SelectRequest) -> dict[str, Any]:
        result = await dispatcher.select(
            body.transaction_id,
            body.provider_id,
            body.item_id,
            fulfillment_id=body.fulfillment_id,
            bpp_id=body.bpp_id,
            bpp_uri=body.bpp_uri,
        )
        return _dispatch_response(result, "selecting")

    @app.post("/api/init")
    async def api_init(body: InitRequest) -> dict[str, Any]:
        result = await dispatcher.init(
            body.transaction_id,
            body.provider_id,
            body.item_id,
            fulfillment_id=body.fulfillment_id,
            bpp_id=body.bpp_id,
            bpp_uri=body.bpp_uri,
            billing=body.billing,
        )
        return _dispatch_response(result, "initializing")

    @app.post("/api/confirm")
    async def api_confirm(body: ConfirmRequest) -> dict[str, Any]:
        result = await dispatcher.confirm(
            body.transaction_id,
            body.provider_id,
            body.item_id,
            fulfillment_id=body.fulfillment_id,
            bpp_id=body.bpp_id,
            bpp_uri=body.bpp_uri,
            billing=body.billing,
            payment=body.payment,
        )
        return _dispatch_response(result, "confirming")

    @app.post("/api/status")
    async def api_status(body: StatusRequest) -> dict[str, Any]:
        result = await dispatcher.status(
            body.transaction_id,
            order_id=body.order_id,
            bpp_id=body.bpp_id,
            bpp_uri=body.bpp_uri,
        )
        return _dispatch_response(result, "tracking")

    @app.post("/api/cancel")
    async def api_cancel(body: CancelRequest) -> dict[str, Any]:
        result = await dispatcher.cancel(
            body.transaction_id,
            body.cancellation_reason_id,
            order_id=body.order_id,
            bpp_id=body.bpp_id,
            bpp_uri=body.bpp_uri,
        )
        return _dispatch_response(result, "cancelling")

    @app.get("/api/transactions/{transaction_id}")
    async def api_transaction(transaction_id: str) -> dict[str, Any]:
        transaction = store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction.model_dump(mode="json")

    @app.get("/api/results/{transaction_id}")
    async def api_results(transaction_id: str) -> dict[str, Any]:
        transaction = store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return search_results(transaction)

    return app


def create_default_app() -> FastAPI:
    """Factory for ``uvicorn --factory beckn_bap.transport.server:create_default_app``."""
    return create_app()
