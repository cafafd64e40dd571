"""Conversions between Python values and Avro logical type representations."""

import datetime
import decimal
import struct
import uuid
from typing import NamedTuple, Optional

from avroserde.exceptions import IllegalArgumentException


EPOCH_DATE = datetime.date(1970, 1, 1)
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

MILLIS_PER_DAY = 86_400_000
DURATION_SIZE = 12
UUID_SIZE = 16


class Duration(NamedTuple):
    """Avro ``duration``: three independent unsigned 32-bit quantities."""

    months: int
    days: int
    milliseconds: int


def date_to_days(value: datetime.date) -> int:
    """Get the number of days between the Unix epoch and a date."""
    if isinstance(value, datetime.datetime):
        value = value.date()
    return (value - EPOCH_DATE).days


def days_to_date(days: int) -> datetime.date:
    try:
        return EPOCH_DATE + datetime.timedelta(days=days)
    except OverflowError as e:
        raise IllegalArgumentException(f"Date out of range: {days} days", cause=e)


def time_to_millis(value: datetime.time) -> int:
    """Get the milliseconds since midnight, dropping sub-millisecond precision."""
    seconds = (value.hour * 60 + value.minute) * 60 + value.second
    return seconds * 1000 + value.microsecond // 1000


def millis_to_time(millis: int) -> datetime.time:
    if not 0 <= millis < MILLIS_PER_DAY:
        raise IllegalArgumentException(f"Time of day out of range: {millis} ms")
    seconds, ms = divmod(millis, 1000)
    minutes, second = divmod(seconds, 60)
    hour, minute = divmod(minutes, 60)
    return datetime.time(hour, minute, second, ms * 1000)


def datetime_to_millis(value: datetime.datetime) -> int:
    """Get the milliseconds since the Unix epoch.

    Naive datetimes are taken to be in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    delta = value - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def millis_to_datetime(millis: int) -> datetime.datetime:
    """Get the UTC datetime for milliseconds since the Unix epoch."""
    try:
        return EPOCH + datetime.timedelta(milliseconds=millis)
    except OverflowError as e:
        raise IllegalArgumentException(f"Timestamp out of range: {millis} ms", cause=e)


def int_to_twos_complement(value: int, size: Optional[int] = None) -> bytes:
    """Encode an integer as big-endian two's complement.

    Args:
        value: The integer.
        size: Exact output size. When omitted the shortest encoding that
            keeps the sign bit is used, with at least one byte.

    Raises:
        IllegalArgumentException: If the value does not fit in ``size`` bytes.
    """
    if size is None:
        size = (value + (value < 0)).bit_length() // 8 + 1
    try:
        return value.to_bytes(size, "big", signed=True)
    except OverflowError as e:
        raise IllegalArgumentException(f"Value {value} does not fit in {size} bytes", cause=e)


def twos_complement_to_int(data: bytes) -> int:
    return int.from_bytes(data, "big", signed=True)


def decimal_to_unscaled(value: decimal.Decimal, scale: int, precision: Optional[int] = None) -> int:
    """Get the unscaled integer of a decimal at a fixed scale.

    Trailing zeros are padded or removed as needed; any other loss of digits
    is an error.

    Raises:
        IllegalArgumentException: If the value is not finite, has more
            fractional digits than ``scale`` or more digits than ``precision``.
    """
    if not value.is_finite():
        raise IllegalArgumentException(f"Cannot encode non-finite decimal {value}")
    sign, digits, exponent = value.as_tuple()
    unscaled = int("".join(str(d) for d in digits) or "0")
    shift = exponent + scale
    if shift >= 0:
        unscaled *= 10 ** shift
    else:
        unscaled, remainder = divmod(unscaled, 10 ** -shift)
        if remainder:
            raise IllegalArgumentException(
                f"Decimal {value} has more than {scale} fractional digits"
            )
    if precision is not None and len(str(unscaled)) > precision:
        raise IllegalArgumentException(
            f"Decimal {value} needs more than {precision} digits of precision"
        )
    return -unscaled if sign else unscaled


def unscaled_to_decimal(unscaled: int, scale: int) -> decimal.Decimal:
    digits = tuple(int(d) for d in str(abs(unscaled)))
    return decimal.Decimal((1 if unscaled < 0 else 0, digits, -scale))


def decimal_to_plain_string(value: decimal.Decimal) -> str:
    """Format a decimal without an exponent, e.g. ``1E+3`` as ``1000``."""
    if not value.is_finite():
        raise IllegalArgumentException(f"Cannot encode non-finite decimal {value}")
    return format(value, "f")


def parse_decimal(text: str) -> decimal.Decimal:
    try:
        return decimal.Decimal(text)
    except decimal.InvalidOperation as e:
        raise IllegalArgumentException(f"Invalid decimal text: {text!r}", cause=e)


def parse_uuid(text: str) -> uuid.UUID:
    try:
        return uuid.UUID(text)
    except ValueError as e:
        raise IllegalArgumentException(f"Invalid UUID text: {text!r}", cause=e)


def duration_to_bytes(value: Duration) -> bytes:
    """Encode a duration as three little-endian unsigned 32-bit integers."""
    try:
        return struct.pack("<III", value.months, value.days, value.milliseconds)
    except struct.error as e:
        raise IllegalArgumentException(f"Invalid duration {value}", cause=e)


def bytes_to_duration(data: bytes) -> Duration:
    return Duration(*struct.unpack("<III", data))
