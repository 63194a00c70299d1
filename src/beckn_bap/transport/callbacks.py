"""Inbound callback handling.

The network answers every outbound call asynchronously by POSTing an
on_* callback. Each callback is checked in a fixed order:

1. Authorization header verifies over the raw body (else NACK 401)
2. body is JSON with a ``context`` object (else HTTP 400 PROTOCOL-ERROR)
3. context is valid for this BAP's domain and version (else NACK 400,
   only when strict context checking is on)
4. context carries a transaction_id (else NACK 400)
5. the transaction exists in the store (else NACK 404)

and otherwise recorded and ACKed. Protocol-level rejections are NACKs in
an HTTP 200, as the network expects; nothing here raises to the caller.

The registry subscription callback (``on_subscribe``) is handled here too.
"""

from __future__ import annotations

import json
import time
from typing import Any

from pydantic import ValidationError

from beckn_bap.config import BAPConfig
from beckn_bap.crypto.authorization import KeyResolver, verify_authorization_header
from beckn_bap.crypto.challenge import decrypt_challenge
from beckn_bap.errors import (
    ChallengeDecryptionError,
    ConfigurationError,
    MalformedContextError,
    SignatureVerificationError,
)
from beckn_bap.models.base import BAPBaseModel
from beckn_bap.models.context import validate_context
from beckn_bap.models.enums import Action, ErrorType
from beckn_bap.models.payloads import parse_callback_payload
from beckn_bap.models.responses import build_ack, build_nack
from beckn_bap.observability import get_logger, get_metrics
from beckn_bap.state.correlation import TransactionStore

logger = get_logger(__name__)


class CallbackResult(BAPBaseModel):
    """HTTP status and JSON body to send back for a callback."""

    status_code: int = 200
    body: dict[str, Any]


def protocol_error(message: str, code: str = "400") -> dict[str, Any]:
    """Body for a request too broken to NACK (no usable context)."""
    return {
        "error": {"type": ErrorType.PROTOCOL_ERROR.value, "code": code, "message": message}
    }


def _parse_body(raw_body: bytes) -> dict[str, Any]:
    try:
        body = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedContextError(f"body is not valid JSON ({e})") from e
    if not isinstance(body, dict) or not isinstance(body.get("context"), dict):
        raise MalformedContextError("Missing context")
    return body


class CallbackHandler:
    """Authenticates callbacks and records them in the correlation store.

    Args:
        config: Verification and context-checking settings
        store: Store that owns the transactions callbacks refer to
        key_resolver: Signer key lookup; defaults to ``config.key_resolver()``
    """

    def __init__(
        self,
        config: BAPConfig,
        store: TransactionStore,
        key_resolver: KeyResolver | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.key_resolver = key_resolver or config.key_resolver()

    def authenticate(self, authorization: str | None, raw_body: bytes) -> None:
        """Raise SignatureVerificationError unless the header verifies over ``raw_body``."""
        result = verify_authorization_header(authorization, raw_body, self.key_resolver)
        if not result.valid:
            raise SignatureVerificationError(
                result.message, details={"verdict": result.verdict.value, "key_id": result.key_id}
            )

    def check_context(self, context: dict[str, Any]) -> None:
        """Raise MalformedContextError for an unusable context.

        Domain/version/field checks apply only when ``strict_context`` is on;
        a transaction_id is always required.
        """
        if self.config.strict_context:
            errors = validate_context(
                context,
                expected_domain=self.config.domain,
                expected_core_version=self.config.core_version,
            )
            if errors:
                raise MalformedContextError("; ".join(errors), details={"errors": errors})
        if not context.get("transaction_id"):
            raise MalformedContextError("Missing transaction_id")

    def handle(
        self, action: Action | str, raw_body: bytes, authorization: str | None
    ) -> CallbackResult:
        """Process one callback and return the response to send.

        Args:
            action: The callback route the body arrived on
            raw_body: Exact request bytes (the signature covers these)
            authorization: The Authorization header, if any
        """
        action = Action(action)
        start_time = time.perf_counter()
        result = self._handle(action, raw_body, authorization)

        ack = (result.body.get("message") or {}).get("ack", {}).get("status", "REJECTED")
        metrics = get_metrics()
        metrics.increment_counter("bap_callbacks_total", {"action": action.value, "ack": ack})
        metrics.observe_histogram(
            "bap_callback_duration_seconds",
            time.perf_counter() - start_time,
            {"action": action.value},
        )
        return result

    def _handle(
        self, action: Action, raw_body: bytes, authorization: str | None
    ) -> CallbackResult:
        body: dict[str, Any] | None = None
        rejection = ""
        try:
            body = _parse_body(raw_body)
        except MalformedContextError as e:
            rejection = e.reason

        context: dict[str, Any] = body["context"] if body is not None else {}
        transaction_id = context.get("transaction_id")
        log = logger.bind(
            action=action.value,
            transaction_id=transaction_id,
            message_id=context.get("message_id"),
            bpp_id=context.get("bpp_id"),
        )
        log.info("bap.callback.received")

        if self.config.verify_signatures:
            try:
                self.authenticate(authorization, raw_body)
            except SignatureVerificationError as e:
                get_metrics().increment_counter(
                    "bap_auth_failures_total", {"reason": e.details["verdict"]}
                )
                log.warning("bap.callback.auth_failed", error=e.message, **e.details)
                return CallbackResult(body=build_nack(context, "401", e.message).to_wire())

        if body is None:
            get_metrics().increment_counter("bap_context_errors_total", {"action": action.value})
            log.warning("bap.callback.rejected", reason=rejection)
            return CallbackResult(status_code=400, body=protocol_error(rejection))

        try:
            self.check_context(context)
            payload = parse_callback_payload(action, body)
        except MalformedContextError as e:
            get_metrics().increment_counter("bap_context_errors_total", {"action": action.value})
            log.warning("bap.callback.invalid_context", error=e.reason)
            return CallbackResult(body=build_nack(context, "400", e.reason).to_wire())
        except ValidationError as e:
            get_metrics().increment_counter("bap_context_errors_total", {"action": action.value})
            log.warning("bap.callback.invalid_payload", error=str(e))
            message = f"Invalid callback payload: {e.error_count()} validation error(s)"
            return CallbackResult(body=build_nack(context, "400", message).to_wire())

        transaction = self.store.add_callback(action, str(transaction_id), payload)
        if transaction is None:
            return CallbackResult(
                body=build_nack(context, "404", "Transaction not found").to_wire()
            )

        log.info(
            "bap.callback.recorded",
            kind=payload.kind,
            status=transaction.status.value,
            callback_count=transaction.callback_count,
        )
        return CallbackResult(body=build_ack(context).to_wire())

    def answer_challenge(self, challenge: str) -> str:
        """Decrypt a registry challenge with the configured keys.

        Raises:
            ConfigurationError: If the encryption or registry key is not configured
            ChallengeDecryptionError: If the challenge cannot be decrypted
        """
        if not self.config.encryption_private_key or not self.config.registry_public_key:
            missing = (
                "encryption_private_key"
                if not self.config.encryption_private_key
                else "registry_public_key"
            )
            raise ConfigurationError(missing, "Keys for challenge decryption are not configured")
        answer = decrypt_challenge(
            challenge, self.config.registry_public_key, self.config.encryption_private_key
        )
        if answer is None:
            raise ChallengeDecryptionError("Decryption failed")
        return answer

    def handle_subscribe(self, raw_body: bytes) -> CallbackResult:
        """Answer ``on_subscribe``: ``{challenge}`` in, ``{answer}`` out."""
        metrics = get_metrics()
        try:
            body = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            body = None
        challenge = body.get("challenge") if isinstance(body, dict) else None
        if not challenge or not isinstance(challenge, str):
            metrics.increment_counter("bap_subscribe_challenges_total", {"outcome": "missing"})
            logger.warning("bap.subscribe.challenge_missing")
            return CallbackResult(status_code=400, body={"error": "Challenge string missing"})

        try:
            answer = self.answer_challenge(challenge)
        except ConfigurationError as e:
            metrics.increment_counter(
                "bap_subscribe_challenges_total", {"outcome": "misconfigured"}
            )
            logger.error("bap.subscribe.misconfigured", setting=e.setting)
            return CallbackResult(status_code=500, body={"error": "Server misconfiguration"})
        except ChallengeDecryptionError as e:
            metrics.increment_counter("bap_subscribe_challenges_total", {"outcome": "failed"})
            return CallbackResult(status_code=500, body={"error": e.message})

        metrics.increment_counter("bap_subscribe_challenges_total", {"outcome": "answered"})
        logger.info("bap.subscribe.challenge_answered")
        return CallbackResult(body={"answer": answer})
