"""Record identifiers: server-issued values and local placeholders."""

import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PendingId:
    """Placeholder id of an optimistically created record.

    Never equal to a server-issued id, whatever its string form.
    """

    token: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __str__(self) -> str:
        return f"pending:{self.token}"


RecordId = str | int | PendingId


def is_pending(record_id: object) -> bool:
    return isinstance(record_id, PendingId)
