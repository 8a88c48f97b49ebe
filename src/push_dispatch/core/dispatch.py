"""Dispatch engine.

Creates notification records and performs single send attempts, either
through the push transport (live) or by fabricating a successful outcome
(simulated). Every attempt is persisted on the record before the engine
returns or raises.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import ValidationError as PydanticValidationError

from push_dispatch.core.config import ExecutionMode, PushConfig
from push_dispatch.core.errors import (
    PersistenceError,
    TransportConfigurationError,
    ValidationError,
    classify_transport_error,
    error_response,
)
from push_dispatch.core.options import is_truthy_option, merge_options
from push_dispatch.transport.message import build_message, recipients_argument
from push_dispatch.types import (
    SUCCESS_MESSAGE,
    NotificationRecord,
    NotificationRequest,
    PushTransport,
    RecordStore,
    SendOptions,
    utcnow,
)
from push_dispatch.utils.logging import log_with_context, reset_correlation_id, set_correlation_id

__all__ = ["DispatchEngine", "ExecutionMode"]

logger = logging.getLogger(__name__)

_RECIPIENT_KEYS = ("to", "recipients")


class DispatchEngine:
    """Create and send push notifications.

    Args:
        store: Record store persisting notification records
        transport: Push gateway client used in live mode
        config: Dispatch configuration (defaults, mode, debug logging)
    """

    def __init__(
        self,
        store: RecordStore,
        transport: PushTransport | None = None,
        config: PushConfig | None = None,
    ) -> None:
        self.store: RecordStore = store
        self.transport: PushTransport | None = transport
        self.config: PushConfig = config if config is not None else PushConfig()
        self._debug_logger: logging.Logger = logging.getLogger(self.config.logger)

    def execution_mode(
        self,
        record: NotificationRecord,
        options: SendOptions | None = None,
    ) -> ExecutionMode:
        """Resolve the execution mode for one send attempt.

        A truthy ``fake`` option on the record or the call forces a
        simulated attempt regardless of the configured mode.
        """
        if is_truthy_option(record.options, "fake") or is_truthy_option(options, "fake"):
            return ExecutionMode.SIMULATED
        return self.config.execution_mode

    async def create(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
    ) -> NotificationRecord:
        """Validate and persist a new, unsent notification record.

        Stored options are layered as configured defaults, then ``options``,
        then the request's own options.

        Raises:
            ValidationError: If recipients are missing, empty or blank
            PersistenceError: If the store fails
        """
        validated = self._validate(request)
        document: dict[str, object] = {
            "recipients": list(validated.recipients),
            "data": validated.data,
            "notification": validated.notification,
            "options": merge_options(self.config.send_options, options, validated.options),
            "extra": merge_options(self.config.model.extension_fields, validated.extra),
        }
        record = await self.store.create(document)
        log_with_context(
            logger,
            logging.DEBUG,
            "Created notification record",
            extra={"record_id": record.id, "recipient_count": len(record.recipients)},
        )
        return record

    @staticmethod
    def _validate(request: NotificationRequest | Mapping[str, object]) -> NotificationRequest:
        if isinstance(request, NotificationRequest):
            return request

        if not any(request.get(key) is not None for key in _RECIPIENT_KEYS):
            raise ValidationError("No recipient(s) provided", errors=["recipients: field required"])

        try:
            return NotificationRequest.model_validate(dict(request))
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(loc) for loc in error['loc']) or 'request'}: {error['msg']}"
                for error in e.errors()
            ]
            raise ValidationError("Invalid notification request", errors=errors) from e

    async def dispatch(
        self,
        record: NotificationRecord,
        options: SendOptions | None = None,
    ) -> NotificationRecord:
        """Perform one send attempt for a record.

        Returns:
            The updated record

        Raises:
            TransportError: Classified gateway failure (already persisted
                on the record response)
            PersistenceError: If saving the outcome failed and the send
                itself did not
        """
        token = set_correlation_id(record.id)
        try:
            if self.execution_mode(record, options) is ExecutionMode.SIMULATED:
                return await self._simulate(record)
            return await self._deliver(record, options)
        finally:
            reset_correlation_id(token)

    async def send(
        self,
        request: NotificationRequest | Mapping[str, object],
        options: SendOptions | None = None,
    ) -> NotificationRecord:
        """Create a record and dispatch it immediately."""
        record = await self.create(request, options)
        return await self.dispatch(record)

    async def _simulate(self, record: NotificationRecord) -> NotificationRecord:
        if record.sent_at is None:
            record.sent_at = utcnow()
        record.response = {"message": SUCCESS_MESSAGE}
        _ = await self._save(record)
        logger.debug("Simulated send of notification %s", record.id)
        self._log_outcome(record)
        return record

    async def _deliver(
        self,
        record: NotificationRecord,
        options: SendOptions | None,
    ) -> NotificationRecord:
        if self.transport is None:
            raise TransportConfigurationError("No push transport is configured for live dispatch")

        effective = merge_options(self.config.send_options, record.options, options)
        _ = effective.pop("fake", None)
        message = build_message(record, effective)
        if self.config.debug:
            self._debug_logger.info("Gateway message for %s: %s", record.id, message)

        error: BaseException | None = None
        try:
            raw = await self.transport.send(message, recipients_argument(record.recipients), effective)
        except Exception as exc:
            error = classify_transport_error(exc)
            response = error_response(error)
            log_with_context(
                logger,
                logging.WARNING,
                "Notification send failed",
                extra={"record_id": record.id, "error_status": response["status"]},
            )
        else:
            response = dict(raw)
            response["message"] = SUCCESS_MESSAGE

        self._apply_response(record, response)

        try:
            _ = await self._save(record)
        except PersistenceError as persist_error:
            if error is None:
                raise
            logger.error("Failed to persist outcome of notification %s: %s", record.id, persist_error)

        self._log_outcome(record)
        if error is not None:
            raise error
        return record

    @staticmethod
    def _apply_response(record: NotificationRecord, response: dict[str, object]) -> None:
        record.response = response
        if str(response.get("message", "")).lower() != SUCCESS_MESSAGE:
            return

        if record.sent_at is None:
            record.sent_at = utcnow()

        results = response.get("results")
        if isinstance(results, list):
            record.results = [
                {
                    "to": recipient,
                    **(results[index] if index < len(results) and isinstance(results[index], Mapping) else {}),  # pyright: ignore[reportUnknownArgumentType]
                }
                for index, recipient in enumerate(record.recipients)
            ]

    async def _save(self, record: NotificationRecord) -> NotificationRecord:
        try:
            return await self.store.save(record)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save notification {record.id}: {e}", record_id=record.id) from e

    def _log_outcome(self, record: NotificationRecord) -> None:
        if self.config.debug:
            self._debug_logger.info("Notification outcome: %s", record.to_document())
