"""Completion reconciler: last hop of the appointment saga."""

from collections.abc import Callable, Sequence
from datetime import datetime

import structlog
from pydantic import ValidationError

from app.core.countries import CountryCode
from app.core.exceptions import MalformedMessageException
from app.messaging.work_queue import QueueMessage
from app.repositories.appointment_repository import AppointmentRecordStore
from app.repositories.ledger_repository import LedgerStore
from app.schemas.events import CompletionDetail, DetailType, EventEnvelope
from app.services.booking_service import utcnow

logger = structlog.get_logger(__name__)


class CompletionReconciler:
    """Marks appointments completed in both stores."""

    def __init__(
        self,
        records: AppointmentRecordStore,
        ledger: LedgerStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize reconciler with both stores."""
        self.records = records
        self.ledger = ledger
        self.clock = clock

    async def handle_batch(self, messages: Sequence[QueueMessage]) -> list[str]:
        """
        Process deliveries in order, each in isolation.

        A failing delivery is left out of the result so the queue redelivers
        it alone (and eventually dead-letters it); its neighbours settle.

        Returns:
            Ids of the deliveries that settled
        """
        settled = []
        for message in messages:
            try:
                await self.handle(message)
            except Exception:
                # Already logged by handle
                continue
            settled.append(message.message_id)

        if len(settled) < len(messages):
            logger.warning(
                "completion_batch_partially_settled",
                received=len(messages),
                settled=len(settled),
            )
        return settled

    async def handle(self, message: QueueMessage) -> None:
        """
        Process one delivery from the completion queue.

        Errors are logged and re-raised; a lost status update would leave the
        stores inconsistent.
        """
        log = logger.bind(message_id=message.message_id, receive_count=message.receive_count)

        try:
            envelope = EventEnvelope.model_validate_json(message.body)
            if envelope.detail_type != DetailType.APPOINTMENT_COMPLETED:
                log.info("completion_event_ignored", detail_type=envelope.detail_type.value)
                return
            detail = CompletionDetail.model_validate(envelope.detail)
        except ValidationError as e:
            log.error("completion_malformed", error=str(e))
            raise MalformedMessageException(str(e)) from e

        try:
            await self.reconcile(detail)
        except Exception as e:
            log.error(
                "completion_reconcile_failed",
                appointment_id=detail.appointment_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def reconcile(self, detail: CompletionDetail) -> None:
        """
        Apply the completed status.

        Safe to repeat: updating a missing record is a no-op and reapplying
        only refreshes ``updatedAt``.
        """
        updated_at = self.clock()

        found = await self.records.mark_completed(detail.appointment_id, updated_at)
        if not found:
            logger.warning("appointment_record_missing", appointment_id=detail.appointment_id)

        country = CountryCode.lookup(detail.country_code)
        if country is None:
            logger.warning(
                "ledger_update_skipped",
                appointment_id=detail.appointment_id,
                country_code=detail.country_code,
            )
        else:
            await self.ledger.mark_completed(country, detail.appointment_id, updated_at)

        logger.info(
            "appointment_reconciled",
            appointment_id=detail.appointment_id,
            country_code=detail.country_code,
        )
