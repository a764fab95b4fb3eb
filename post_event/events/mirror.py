"""Mirror an event's start time onto its topic."""
import logging
from datetime import UTC, datetime

from sqlmodel import Session, select

from post_event.events.timeutil import as_utc
from post_event.models import TopicCustomField

logger = logging.getLogger(__name__)


class TopicFieldMirror:
    """Store topic-level fields as TopicCustomField rows, one per (topic, name)."""

    def __init__(self, session: Session):
        self.session = session

    def _find(self, topic_id: int, name: str) -> TopicCustomField | None:
        statement = (
            select(TopicCustomField)
            .where(TopicCustomField.topic_id == topic_id)
            .where(TopicCustomField.name == name)
        )
        return self.session.exec(statement).first()

    def upsert(self, topic_id: int, name: str, value: datetime) -> None:
        """Create the field or overwrite its value."""
        text = as_utc(value).isoformat() if value is not None else None
        field = self._find(topic_id, name)

        if field:
            field.value = text
            field.updated_at = datetime.now(UTC)
        else:
            field = TopicCustomField(topic_id=topic_id, name=name, value=text)

        self.session.add(field)
        logger.debug(f"Mirrored {name}={text} on topic {topic_id}")

    def delete(self, topic_id: int, name: str) -> None:
        field = self._find(topic_id, name)
        if field:
            self.session.delete(field)
            logger.debug(f"Removed {name} from topic {topic_id}")

    def get(self, topic_id: int, name: str) -> str | None:
        field = self._find(topic_id, name)
        return field.value if field else None
