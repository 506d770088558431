"""
Lifecycle timeline.

The timeline is the append-only audit trail embedded in every lifecycle.
Entries are immutable and ordered by append sequence.
"""

from typing import Optional

from ..models import Lifecycle, TimelineEntry, TimelineStatus, utcnow


def add_timeline_entry(
    lifecycle: Lifecycle,
    action: str,
    description: Optional[str],
    performed_by: str,
    status: TimelineStatus = TimelineStatus.SUCCESS,
) -> TimelineEntry:
    """
    Append a timeline entry with a server-assigned timestamp.

    Args:
        lifecycle: Lifecycle to record against
        action: Short action name ("Task Updated", "Status Updated", ...)
        description: Human readable detail
        performed_by: User id of the actor
        status: Outcome of the action

    Returns:
        The appended entry
    """
    entry = TimelineEntry(
        action=action,
        description=description,
        performed_by=performed_by,
        performed_at=utcnow(),
        status=status,
    )
    lifecycle.timeline.append(entry)
    return entry

