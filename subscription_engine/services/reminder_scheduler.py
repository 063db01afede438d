"""Day-threshold reminder selection."""

from collections.abc import Iterable


def due_reminders(
    threshold_days: Iterable[int],
    days_remaining: int,
    already_sent: Iterable[int],
) -> list[int]:
    """Return the thresholds that should fire now, largest first.

    A threshold is due when ``0 < days_remaining <= threshold`` and it has not
    been sent for the current period. Callers must add the returned values to
    their sent set and persist it before emitting anything, so a second call
    for the same instant returns nothing.

    Args:
        threshold_days: Configured reminder thresholds, in days.
        days_remaining: Whole days (rounded up) until the target timestamp.
        already_sent: Thresholds already notified for the covering period.

    Returns:
        The due thresholds, without duplicates.
    """
    if days_remaining <= 0:
        return []
    sent = set(already_sent)
    due = {day for day in threshold_days if days_remaining <= day and day not in sent}
    return sorted(due, reverse=True)
