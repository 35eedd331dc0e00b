"""
Slot grid helpers.

Slots are naive wall-clock labels in zero-padded 24-hour "HH:MM" form, so
string order and chronological order agree.
"""

import re

from salon_backend.core.errors import ValidationError

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" into minutes after midnight."""
    match = TIME_PATTERN.match(value or '')
    if not match:
        raise ValidationError(f'Invalid time format "{value}". Use HH:MM')
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time_str(minutes: int) -> str:
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def normalize_time(value: str) -> str:
    """Accept "H:MM" or "HH:MM[:SS]" and return the zero-padded "HH:MM" label."""
    candidate = (value or '').strip()
    parts = candidate.split(':')
    if len(parts) in (2, 3) and all(part.isdigit() for part in parts):
        candidate = f'{int(parts[0]):02d}:{int(parts[1]):02d}'
    return minutes_to_time_str(time_str_to_minutes(candidate))


def validate_date(value: str) -> str:
    if not value or not DATE_PATTERN.match(value):
        raise ValidationError('Invalid date format. Use YYYY-MM-DD')
    return value


def generate_slots(start_time: str, end_time: str, slot_duration: int) -> list[str]:
    """
    Build the ordered slot labels from start to end inclusive.

    Steps never overshoot end_time; an empty list comes back when start is
    after end.
    """
    if slot_duration <= 0:
        raise ValidationError('Slot duration must be a positive number of minutes')

    start = time_str_to_minutes(start_time)
    end = time_str_to_minutes(end_time)

    slots: list[str] = []
    current = start
    while current <= end:
        slots.append(minutes_to_time_str(current))
        current += slot_duration

    return slots


def format_time_for_display(time_label: str) -> str:
    """Render a slot label on a 12-hour clock, e.g. "13:30" -> "1:30 PM"."""
    minutes = time_str_to_minutes(time_label)
    hours, mins = divmod(minutes, 60)
    period = 'PM' if hours >= 12 else 'AM'
    display_hours = hours % 12 or 12
    return f'{display_hours}:{mins:02d} {period}'
