from typing import Final

import attr

from .. import __version__
from .route import BASE_URL

__all__ = ("RESTConfig", "USER_AGENT")

USER_AGENT: Final[
    str
] = f"DiscordBot (https://github.com/lazycord/lazycord, {__version__})"


def _positive(instance: "RESTConfig", attribute: "attr.Attribute[float]", value: float) -> None:
    if value <= 0:
        raise ValueError(f"{attribute.name} must be positive, got {value}")


def _retries(instance: "RESTConfig", attribute: "attr.Attribute[int]", value: int) -> None:
    if not 1 <= value <= 10:
        raise ValueError(f"{attribute.name} must be between 1 and 10, got {value}")


@attr.define(kw_only=True)
class RESTConfig:
    """Settings for the REST transport, every field has a sensible
    default so `RESTConfig()` is enough in most cases.
    """

    base_url: str = attr.field(default=BASE_URL, converter=lambda url: url.rstrip("/"))
    """ The API base every route is joined onto """

    user_agent: str = attr.field(default=USER_AGENT)
    """ The user agent that you want to use for your HTTP client
    (recommended to use this format `DiscordBot ($url, $versionNumber)`)
    """

    max_retries: int = attr.field(default=5, validator=_retries)
    """ How many times a ratelimited request is attempted before
    `TooManyRetries` is raised
    """

    timeout: float = attr.field(default=30.0, validator=_positive)
    """ Total timeout for a single HTTP request, in seconds """

    @base_url.validator
    def _check_base_url(self, attribute: "attr.Attribute[str]", value: str) -> None:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http, got {value!r}")
