from __future__ import annotations

import datetime
from typing import Final, Union

from ..rest.errors import ValidationError

__all__ = (
    "DISCORD_EPOCH",
    "parse_snowflake",
    "snowflake_time",
    "time_snowflake",
    "Identifiable",
    "Mentionable",
)

DISCORD_EPOCH: Final[int] = 1420070400000
""" First second of 2015 in milliseconds, the start of every snowflake """

SnowflakeLike = Union[int, str]


def parse_snowflake(value: SnowflakeLike, name: str = "ID") -> int:
    """Turns an ID given as `int` or numeric `str` into an `int`, every
    method taking an ID accepts both through this.

    Raises
    ------
    lazycord.rest.errors.ValidationError
        The value is not a valid snowflake.
    """

    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a snowflake, not a bool")
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise ValidationError(f"{name} is not a valid snowflake: {value!r}")
        value = int(value)
    if not 0 <= value < 1 << 64:
        raise ValidationError(f"{name} is out of range for a snowflake: {value}")
    return value


def snowflake_time(snowflake: int) -> datetime.datetime:
    """The time a snowflake was created at, in UTC"""

    timestamp = ((snowflake >> 22) + DISCORD_EPOCH) / 1000
    return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)


def time_snowflake(when: datetime.datetime) -> int:
    """The smallest snowflake that could have been created at `when`,
    handy as a pagination boundary.
    """

    millis = int(when.timestamp() * 1000)
    return (millis - DISCORD_EPOCH) << 22


class Identifiable:
    """Has a snowflake `id`"""

    id: int

    @property
    def created_at(self) -> datetime.datetime:
        return snowflake_time(self.id)


class Mentionable:
    """Can be mentioned in a message"""

    @property
    def mention(self) -> str:
        raise NotImplementedError
