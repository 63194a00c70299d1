"""Outbound dispatcher for Beckn protocol calls.

Every call is built, serialized once, signed over exactly those bytes and
POSTed; the synchronous answer is only an ACK or NACK. The substantive
answer arrives later on the matching on_* callback and is joined to the
same transaction by the correlation store.

Example:
    >>> async with BecknDispatcher(config, store) as dispatcher:
    ...     result = await dispatcher.search(pickup={"gps": "28.61,77.20"}, drop={})
    ...     result.transaction_id
"""

from __future__ import annotations

import json
import time
from typing import Any, Mapping

import httpx

from beckn_bap.config import BAPConfig
from beckn_bap.crypto.authorization import create_authorization_header
from beckn_bap.errors import BAPConnectionError, BAPTimeoutError, TransactionNotFoundError
from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.context import ProtocolContext, build_context
from beckn_bap.models.enums import AckStatus, Action, ErrorType
from beckn_bap.models.ids import generate_id
from beckn_bap.models.payloads import ErrorPayload
from beckn_bap.models.transaction import Transaction
from beckn_bap.observability import get_logger, get_metrics
from beckn_bap.protocol.messages import (
    DEFAULT_CONTACTS,
    build_cancel_message,
    build_order,
    build_search_intent,
    build_status_message,
    default_billing,
    default_payment,
)
from beckn_bap.state.correlation import TransactionStore

logger = get_logger(__name__)


class DispatchResult(BAPBaseModel):
    """Outcome of one outbound call.

    Attributes:
        transaction_id: Transaction the call belongs to
        message_id: message_id of this call (echoed by its callback)
        action: The request verb sent
        url: Where it was sent
        response: The synchronous ACK/NACK body
    """

    transaction_id: str
    message_id: str
    action: Action
    url: str
    response: dict[str, Any]

    @property
    def acknowledged(self) -> bool:
        ack = (self.response.get("message") or {}).get("ack") or {}
        return ack.get("status") == AckStatus.ACK.value


def _record_dispatch(action: Action, status: str, start_time: float) -> None:
    metrics = get_metrics()
    metrics.increment_counter("bap_dispatch_total", {"action": action.value, "status": status})
    metrics.observe_histogram(
        "bap_dispatch_duration_seconds",
        time.perf_counter() - start_time,
        {"action": action.value},
    )


class BecknDispatcher:
    """Sends signed protocol calls to the gateway or a BPP.

    Args:
        config: Identity, keys and network settings
        store: Correlation store; search creates the transaction, the other
            verbs require one to exist
        http_client: Optional shared client. When omitted the dispatcher
            owns one and closes it in aclose().
        transport: Optional httpx transport for the owned client
            (e.g. httpx.MockTransport in tests)
    """

    def __init__(
        self,
        config: BAPConfig,
        store: TransactionStore,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self._client = http_client
        self._owns_client = http_client is None
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BecknDispatcher":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()

    def target_url(self, action: Action, bpp_uri: str | None = None) -> str:
        """``<gateway>/search``; ``<bpp_uri>/<action>`` otherwise, gateway without a bpp_uri."""
        if action is Action.SEARCH or not bpp_uri:
            base = self.config.gateway_url
        else:
            base = bpp_uri.rstrip("/")
        return f"{base}/{action.value}"

    def _build_context(
        self,
        action: Action,
        transaction_id: str,
        bpp_id: str | None,
        bpp_uri: str | None,
    ) -> ProtocolContext:
        return build_context(
            action=action,
            transaction_id=transaction_id,
            bap_id=self.config.subscriber_id,
            bap_uri=self.config.subscriber_url,
            bpp_id=bpp_id,
            bpp_uri=bpp_uri,
            domain=self.config.domain,
            country=self.config.country,
            city=self.config.city,
            core_version=self.config.core_version,
        )

    def _require(self, transaction_id: str) -> Transaction:
        transaction = self.store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    async def send(
        self,
        action: Action | str,
        message: Mapping[str, Any],
        transaction_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
    ) -> DispatchResult:
        """Sign and send one protocol call.

        A search creates its transaction (generating an id if none is given)
        before anything goes on the wire, so a fast on_search always finds
        it. Any other verb needs an existing transaction.

        Raises:
            ValueError: If ``action`` is a callback, or a non-search call has no transaction_id
            TransactionNotFoundError: If a non-search call names an unknown transaction
            BAPTimeoutError: If the call exceeds the configured timeout
            BAPConnectionError: On any other transport failure or an HTTP error status
        """
        action = Action(action)
        if action.is_callback():
            raise ValueError(f"Cannot dispatch callback action {action.value}")
        if action is not Action.SEARCH:
            if not transaction_id:
                raise ValueError(f"{action.value} requires a transaction_id")
            self._require(transaction_id)

        context = self._build_context(action, transaction_id or generate_id(), bpp_id, bpp_uri)
        payload = {"context": context.to_wire(), "message": dict(message)}
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        url = self.target_url(action, bpp_uri)

        if action is Action.SEARCH:
            self.store.create_transaction(context.transaction_id, context.message_id, payload)

        try:
            response = await self._post(action, url, body, context)
        except (BAPConnectionError, BAPTimeoutError) as e:
            self.store.add_error_data(
                context.transaction_id,
                ErrorPayload(
                    context=context,
                    error={
                        "type": ErrorType.INTERNAL_ERROR.value,
                        "code": e.code,
                        "message": e.message,
                    },
                ),
            )
            raise

        return DispatchResult(
            transaction_id=context.transaction_id,
            message_id=context.message_id,
            action=action,
            url=url,
            response=response,
        )

    async def _post(
        self, action: Action, url: str, body: bytes, context: ProtocolContext
    ) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": create_authorization_header(
                body,
                self.config.signing_private_key,
                self.config.subscriber_id,
                self.config.unique_key_id,
                ttl_seconds=self.config.signature_ttl,
            ),
        }
        log = logger.bind(
            action=action.value,
            url=url,
            transaction_id=context.transaction_id,
            message_id=context.message_id,
        )
        log.info("bap.dispatch.sending")
        start_time = time.perf_counter()

        try:
            response = await self._get_client().post(url, content=body, headers=headers)
        except httpx.TimeoutException as e:
            _record_dispatch(action, "timeout", start_time)
            log.warning("bap.dispatch.timeout", timeout=self.config.request_timeout)
            raise BAPTimeoutError(
                f"/{action.value} to {url} timed out after {self.config.request_timeout}s",
                url=url,
                timeout=self.config.request_timeout,
            ) from e
        except httpx.HTTPError as e:
            _record_dispatch(action, "error", start_time)
            log.warning("bap.dispatch.failed", error=str(e), error_type=type(e).__name__)
            raise BAPConnectionError(
                f"/{action.value} to {url} failed: {e}", url=url, cause=e
            ) from e

        if response.status_code >= 400:
            _record_dispatch(action, "error", start_time)
            log.warning("bap.dispatch.http_error", status_code=response.status_code)
            raise BAPConnectionError(
                f"/{action.value} to {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            _record_dispatch(action, "error", start_time)
            log.warning("bap.dispatch.invalid_response", error=str(e))
            raise BAPConnectionError(
                f"/{action.value} to {url} returned a non-JSON body",
                url=url,
                cause=e,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            data = {"response": data}

        ack = ((data.get("message") or {}).get("ack") or {}).get("status")
        status = "ack" if ack == AckStatus.ACK.value else "nack"
        _record_dispatch(action, status, start_time)
        if status == "ack":
            log.info("bap.dispatch.acked")
        else:
            log.warning("bap.dispatch.nacked", error=data.get("error"))
        return data

    async def search(
        self,
        pickup: Mapping[str, Any] | None = None,
        drop: Mapping[str, Any] | None = None,
        intent: Mapping[str, Any] | None = None,
        transaction_id: str | None = None,
    ) -> DispatchResult:
        """Start a transaction with /search.

        Pass either a ready ``intent`` or ``pickup``/``drop`` places for the
        logistics delivery intent.
        """
        if intent is not None:
            message = {"intent": dict(intent)}
        else:
            message = build_search_intent(pickup, drop)
        return await self.send(Action.SEARCH, message, transaction_id=transaction_id)

    async def select(
        self,
        transaction_id: str,
        provider_id: str,
        item_id: str,
        fulfillment_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
    ) -> DispatchResult:
        message = build_order(provider_id, item_id, fulfillment_id)
        return await self.send(Action.SELECT, message, transaction_id, bpp_id, bpp_uri)

    async def init(
        self,
        transaction_id: str,
        provider_id: str,
        item_id: str,
        fulfillment_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
        billing: Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        message = build_order(
            provider_id,
            item_id,
            fulfillment_id,
            billing=billing or default_billing(),
            payment=default_payment(),
            contacts=DEFAULT_CONTACTS,
        )
        return await self.send(Action.INIT, message, transaction_id, bpp_id, bpp_uri)

    async def confirm(
        self,
        transaction_id: str,
        provider_id: str,
        item_id: str,
        fulfillment_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
        billing: Mapping[str, Any] | None = None,
        payment: Mapping[str, Any] | None = None,
    ) -> DispatchResult:
        message = build_order(
            provider_id,
            item_id,
            fulfillment_id,
            billing=billing or default_billing(),
            payment=payment or default_payment(),
            contacts=DEFAULT_CONTACTS,
        )
        order = message["order"]
        order["id"] = self._order_id(self._require(transaction_id))
        return await self.send(Action.CONFIRM, message, transaction_id, bpp_id, bpp_uri)

    async def status(
        self,
        transaction_id: str,
        order_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
    ) -> DispatchResult:
        order_id = order_id or self._order_id(self._require(transaction_id))
        return await self.send(
            Action.STATUS, build_status_message(order_id), transaction_id, bpp_id, bpp_uri
        )

    async def cancel(
        self,
        transaction_id: str,
        cancellation_reason_id: str,
        order_id: str | None = None,
        bpp_id: str | None = None,
        bpp_uri: str | None = None,
    ) -> DispatchResult:
        order_id = order_id or self._order_id(self._require(transaction_id))
        message = build_cancel_message(order_id, cancellation_reason_id)
        return await self.send(Action.CANCEL, message, transaction_id, bpp_id, bpp_uri)

    @staticmethod
    def _order_id(transaction: Transaction) -> str:
        """Order id from the latest on_confirm/on_init, else the transaction id."""
        for payload in (*reversed(transaction.confirmations), *reversed(transaction.init_results)):
            order_id = (payload.message.get("order") or {}).get("id")
            if order_id:
                return str(order_id)
        return transaction.id
