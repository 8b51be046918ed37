from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterator, Optional, Sequence
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from src.careplan.clock import Clock, system_clock
from src.careplan.config import settings

logger = logging.getLogger("careplan.planning")

# "7 days", "2 weeks", "3 months" (case-insensitive, singular or plural).
_DURATION_RE = re.compile(r"(\d+)\s*(day|week|month)s?", re.IGNORECASE)
# "daily", "every 2 days", "weekly", "monthly".
_FREQUENCY_RE = re.compile(
    r"\b(daily|every\s+(\d+)\s*(?:day|week|month)s?|weekly|monthly)\b",
    re.IGNORECASE,
)

UNITS = ("day", "week", "month")


@dataclass(frozen=True)
class PlanInstruction:
    """The recurrence encoded in one plan line.

    ``count`` occurrences, ``interval`` units apart, starting today.
    """

    count: int
    unit: str
    interval: int = 1

    def offset(self, index: int) -> relativedelta:
        steps = index * self.interval
        if self.unit == "day":
            return relativedelta(days=steps)
        if self.unit == "week":
            return relativedelta(days=7 * steps)
        # Calendar months: Jan 31 + 1 month is the last day of February.
        return relativedelta(months=steps)

    def occurrences(self, now: datetime, hour: int) -> Iterator[datetime]:
        for index in range(self.count):
            yield (now + self.offset(index)).replace(hour=hour, minute=0, second=0, microsecond=0)


def parse_plan_line(line: str) -> Optional[PlanInstruction]:
    """Extract the duration and frequency from a single plan line.

    Returns None when either part is missing. The frequency phrase is removed
    before looking for the duration so that "every 2 days for 4 days" reads
    as four occurrences rather than two.
    """

    frequency = _FREQUENCY_RE.search(line)
    if frequency is None:
        return None

    remainder = line[: frequency.start()] + " " + line[frequency.end():]
    duration = _DURATION_RE.search(remainder)
    if duration is None:
        return None

    try:
        interval = int(frequency.group(2)) if frequency.group(2) else 1
        count = int(duration.group(1))
    except ValueError:
        # Digit strings beyond the int conversion limit.
        return None
    if interval <= 0:
        return None

    return PlanInstruction(count=count, unit=duration.group(2).lower(), interval=interval)


def _resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class PlanParser:
    """Turns free-text plan lines into absolute reminder timestamps.

    Only a small grammar is understood: a duration ("for 7 days") plus a
    frequency ("daily", "every 2 days", "weekly", "monthly"). Lines that do
    not match are skipped. Results keep input order with no sorting or
    de-duplication across lines.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        reminder_hour: Optional[int] = None,
        timezone_name: Optional[str] = None,
    ) -> None:
        self._clock = clock or system_clock
        hour = settings.reminder_hour if reminder_hour is None else reminder_hour
        if not 0 <= hour <= 23:
            raise ValueError(f"Reminder hour must be between 0 and 23, got {hour}. Check REMINDER_HOUR.")
        self._hour = hour
        self._tz = _resolve_timezone(timezone_name or settings.reminder_timezone)

    def parse(self, lines: Sequence[str], now: Optional[datetime] = None) -> Iterator[datetime]:
        """Return a lazy iterator over the schedule for ``lines``.

        ``now`` defaults to the clock's current time in the reminder timezone
        and is fixed when this method is called.
        """

        reference = now if now is not None else self._clock.now().astimezone(self._tz)
        return self._iter_schedule(lines, reference)

    def _iter_schedule(self, lines: Sequence[str], now: datetime) -> Iterator[datetime]:
        for line in lines:
            if not isinstance(line, str):
                logger.debug("Skipping non-text plan item: %r", line)
                continue

            instruction = parse_plan_line(line)
            if instruction is None:
                logger.debug("No schedule found in plan line: %r", line)
                continue

            if not self._in_range(instruction, now):
                logger.warning("Skipping plan line with out-of-range numbers: %r", line)
                continue

            yield from instruction.occurrences(now, self._hour)

    @staticmethod
    def _in_range(instruction: PlanInstruction, now: datetime) -> bool:
        if instruction.count == 0:
            return True
        try:
            now + instruction.offset(instruction.count - 1)
        except (OverflowError, ValueError):
            return False
        return True


plan_parser = PlanParser()
