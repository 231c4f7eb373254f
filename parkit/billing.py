import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

MS_PER_HOUR = 3_600_000
CENT = Decimal("0.01")


def billable_hours(entry_time: datetime, exit_time: datetime):
    """Elapsed time rounded up to whole hours; any stay bills at least one."""
    elapsed_ms = (exit_time - entry_time) // timedelta(milliseconds=1)
    return max(1, math.ceil(elapsed_ms / MS_PER_HOUR))


def charge(entry_time: datetime, exit_time: datetime, hourly_rate):
    rate = hourly_rate if isinstance(hourly_rate, Decimal) else Decimal(str(hourly_rate))
    amount = billable_hours(entry_time, exit_time) * rate
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
