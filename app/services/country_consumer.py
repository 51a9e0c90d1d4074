"""Country consumer: writes the ledger row and announces completion."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog
from pydantic import ValidationError

from app.core.countries import CountryCode
from app.core.exceptions import MalformedMessageException
from app.messaging.completion_bus import CompletionBus
from app.messaging.work_queue import QueueMessage
from app.repositories.ledger_repository import LedgerStore
from app.schemas.appointments import Appointment
from app.schemas.events import CompletionDetail, DetailType, EventEnvelope

logger = structlog.get_logger(__name__)


class MessageOutcome(str, Enum):
    """Settlement of one delivery."""

    PROCESSED = "processed"
    DROPPED = "dropped"
    FAILED = "failed"


@dataclass
class BatchResult:
    """Per-message outcomes of a batch."""

    processed: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def acknowledged(self) -> list[str]:
        """Deliveries the queue may forget; failed ones stay for redelivery."""
        return self.processed + self.dropped


def parse_notification(body: str) -> Appointment:
    """
    Unwrap an AppointmentCreated envelope.

    Raises:
        MalformedMessageException: If the body is not a valid envelope
    """
    try:
        envelope = EventEnvelope.model_validate_json(body)
        if envelope.detail_type != DetailType.APPOINTMENT_CREATED:
            raise MalformedMessageException(f"Unexpected detailType {envelope.detail_type.value}")
        return Appointment.model_validate(envelope.detail)
    except ValidationError as e:
        raise MalformedMessageException(str(e)) from e


class CountryConsumer:
    """Drains one country's notification queue."""

    def __init__(self, country: CountryCode, ledger: LedgerStore, bus: CompletionBus):
        """Initialize consumer for a country."""
        self.country = country
        self.ledger = ledger
        self.bus = bus

    async def handle_batch(self, messages: Sequence[QueueMessage]) -> BatchResult:
        """
        Process a batch concurrently.

        Every message settles independently; one failure never cancels or
        fails the others.
        """
        outcomes = await asyncio.gather(*(self._process(message) for message in messages))

        result = BatchResult()
        for message, outcome in zip(messages, outcomes):
            if outcome is MessageOutcome.PROCESSED:
                result.processed.append(message.message_id)
            elif outcome is MessageOutcome.DROPPED:
                result.dropped.append(message.message_id)
            else:
                result.failed.append(message.message_id)

        logger.info(
            "notification_batch_processed",
            country=self.country.value,
            received=len(messages),
            processed=len(result.processed),
            dropped=len(result.dropped),
            failed=len(result.failed),
        )
        return result

    async def _process(self, message: QueueMessage) -> MessageOutcome:
        log = logger.bind(
            country=self.country.value,
            message_id=message.message_id,
            receive_count=message.receive_count,
        )

        try:
            appointment = parse_notification(message.body)
            if appointment.country_code != self.country:
                raise MalformedMessageException(
                    f"Appointment for {appointment.country_code.value} "
                    f"routed to {self.country.value}"
                )
        except MalformedMessageException as e:
            log.error("notification_malformed", error=e.message)
            return MessageOutcome.DROPPED

        log = log.bind(appointment_id=appointment.appointment_id)
        try:
            await self.ledger.insert(appointment)
            await self.bus.publish_completed(
                CompletionDetail(
                    appointment_id=appointment.appointment_id,
                    insured_id=appointment.insured_id,
                    country_code=appointment.country_code.value,
                )
            )
        except Exception as e:
            log.error("notification_processing_failed", error=str(e), error_type=type(e).__name__)
            return MessageOutcome.FAILED

        log.info("notification_processed")
        return MessageOutcome.PROCESSED
