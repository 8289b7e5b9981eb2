"""Hourly slot expansion for availability windows.

Windows are half-open ``[from, to)`` ranges of ``"HH:MM"`` strings. Only the
hour part matters: a window of ``09:30``-``11:45`` yields ``09:00`` and
``10:00``.
"""

from collections.abc import Iterable

DEFAULT_TIME_SLOTS = [
    {'from': '09:00', 'to': '12:00'},
    {'from': '14:00', 'to': '17:00'},
]


def parse_hour(value: str) -> int:
    hour, _, _ = value.strip().partition(':')
    return int(hour)


def format_slot(hour: int) -> str:
    return f'{hour:02d}:00'


def expand_time_slots(time_slots: Iterable[dict]) -> list[str]:
    times: list[str] = []
    for window in time_slots:
        from_hour = parse_hour(window['from'])
        to_hour = parse_hour(window['to'])
        times.extend(format_slot(hour) for hour in range(from_hour, to_hour))
    return times


def resolve_available_times(time_slots: list[dict] | None, reserved_times: Iterable[str]) -> list[str]:
    """Expand the configured windows, or the defaults, minus reserved slots.

    Order follows the windows as configured; nothing is re-sorted.
    """
    windows = DEFAULT_TIME_SLOTS if time_slots is None else time_slots
    reserved = set(reserved_times)
    return [slot for slot in expand_time_slots(windows) if slot not in reserved]


def is_slot_label(value: str) -> bool:
    """True for labels produced by ``format_slot``, e.g. ``"09:00"``."""
    hour, separator, minutes = value.partition(':')
    return separator == ':' and len(hour) == 2 and hour.isdigit() and int(hour) < 24 and minutes == '00'
