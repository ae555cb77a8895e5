import structlog

from supporter360.db.models.event import Event
from supporter360.db.repositories.event import EventRepository

logger = structlog.get_logger(__name__)


class IdempotencyGuard:
    """Check-before-insert for Events keyed by (source_system, external_id).

    The check is not atomic with the later insert; ``EventRepository.create``
    upserts on the same key so racing deliveries still converge on one row.
    """

    def __init__(self, events: EventRepository):
        self.events = events

    async def existing(self, source_system: str, external_id: str, kind: str) -> Event | None:
        event = await self.events.find_by_external_id(source_system, external_id)
        if event is not None:
            logger.info(
                "already_processed",
                kind=kind,
                source_system=source_system,
                external_id=external_id,
                event_id=str(event.event_id),
            )
        return event

    async def is_new(self, source_system: str, external_id: str, kind: str) -> bool:
        return await self.existing(source_system, external_id, kind) is None
