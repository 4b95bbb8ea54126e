import asyncio
import enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Union

import attr

if TYPE_CHECKING:
    from ..permissions import Permission

__all__ = (
    "ErrorKind",
    "ErrorCode",
    "ClientException",
    "ValidationError",
    "MissingPermission",
    "HierarchyError",
    "BlockingCallError",
    "StalePrecondition",
    "TransportError",
    "TooManyRetries",
    "HTTPException",
    "Forbidden",
    "NotFound",
    "ServerError",
    "DecodeError",
    "classify",
)


class ErrorKind(enum.Enum):
    """How a failure came to be, this is what callers should branch on
    when deciding whether to retry.
    """

    VALIDATION = "validation"
    """ Caught locally before anything was sent """

    STALE = "stale"
    """ The pre-flight check of an action failed at dispatch time """

    TRANSPORT = "transport"
    """ The request never got a usable answer (network, timeout, ratelimit) """

    REMOTE = "remote"
    """ Discord processed the request and rejected it """

    DECODE = "decode"
    """ The response was successful but could not be interpreted """

    CANCELLED = "cancelled"
    """ The action was cancelled before it settled """


class ErrorCode(enum.IntEnum):
    """JSON error codes discord sends back along with an error response.
    Codes that are not listed resolve to `UNKNOWN`.
    """

    UNKNOWN = -1
    GENERAL_ERROR = 0
    UNKNOWN_ACCOUNT = 10001
    UNKNOWN_APPLICATION = 10002
    UNKNOWN_CHANNEL = 10003
    UNKNOWN_GUILD = 10004
    UNKNOWN_INTEGRATION = 10005
    UNKNOWN_INVITE = 10006
    UNKNOWN_MEMBER = 10007
    UNKNOWN_MESSAGE = 10008
    UNKNOWN_OVERRIDE = 10009
    UNKNOWN_PROVIDER = 10010
    UNKNOWN_ROLE = 10011
    UNKNOWN_TOKEN = 10012
    UNKNOWN_USER = 10013
    UNKNOWN_EMOJI = 10014
    UNKNOWN_WEBHOOK = 10015
    UNKNOWN_BAN = 10026
    BOTS_NOT_ALLOWED = 20001
    ONLY_BOTS_ALLOWED = 20002
    MAX_GUILDS = 30001
    MAX_FRIENDS = 30002
    MAX_MESSAGE_PINS = 30003
    MAX_USERS_PER_DM = 30004
    MAX_ROLES_PER_GUILD = 30005
    TOO_MANY_REACTIONS = 30010
    MAX_CHANNELS = 30013
    UNAUTHORIZED = 40001
    REQUEST_ENTITY_TOO_LARGE = 40005
    MISSING_ACCESS = 50001
    INVALID_ACCOUNT_TYPE = 50002
    INVALID_DM_ACTION = 50003
    EMBED_DISABLED = 50004
    INVALID_AUTHOR_EDIT = 50005
    EMPTY_MESSAGE = 50006
    CANNOT_SEND_TO_USER = 50007
    CANNOT_SEND_TO_VOICE_CHANNEL = 50008
    VERIFICATION_ERROR = 50009
    INVALID_OAUTH_APP_BOT = 50010
    MAX_OAUTH_APPS = 50011
    INVALID_OAUTH_STATE = 50012
    MISSING_PERMISSIONS = 50013
    INVALID_TOKEN = 50014
    NOTE_TOO_LONG = 50015
    INVALID_BULK_DELETE_COUNT = 50016
    INVALID_PIN = 50019
    INVALID_MESSAGE_TARGET = 50021
    INVALID_BULK_DELETE_MESSAGE_AGE = 50034
    INVALID_FORM_BODY = 50035
    INVITE_ACCEPTED_TO_GUILD_NOT_CONTAINING_BOT = 50036
    REACTION_BLOCKED = 90001

    @classmethod
    def _missing_(cls, value: object) -> "ErrorCode":
        return cls.UNKNOWN

    @classmethod
    def from_code(cls, code: Optional[int]) -> "ErrorCode":
        """Resolves a raw code, the lookup is the dict enum builds at
        import time so this is constant time.
        """

        if code is None:
            return cls.UNKNOWN
        return cls(code)


class ItemsList(list):
    def items(self):
        for n, item in enumerate(self):
            yield str(n), item


def flatten(
    d: Union[Dict[str, Any], ItemsList], path: Optional[str] = None
) -> List[Tuple[str, Tuple[str, str]]]:
    if path is None:
        path = ""

    items: List[Tuple[str, Tuple[str, str]]] = []
    for k, v in d.items():
        if k == "_errors":
            for item in v:
                items.append((path[1:], (item["message"], item["code"])))
        elif isinstance(v, dict):
            items.extend(flatten(v, path + ":" + k))
        elif isinstance(v, list):
            items.extend(flatten(ItemsList(v), path + ":" + k))
    return items


class ClientException(Exception):
    """Base class for every error the library raises or settles an
    action with.
    """

    kind: ErrorKind = ErrorKind.VALIDATION

    @property
    def retryable(self) -> bool:
        """Whether sending the same request again might succeed"""
        return False


class ValidationError(ClientException, ValueError):
    """Raised synchronously when an argument or the cached state already
    proves the request cannot succeed. Nothing is sent to discord.
    """


class MissingPermission(ValidationError):
    """The acting member lacks a permission required for the operation"""

    def __init__(self, permission: "Permission", message: Optional[str] = None):
        self.permission = permission
        if message is None:
            message = (
                "Cannot perform action due to a lack of Permission. "
                f"Missing permission: {permission.name}"
            )
        super().__init__(message)


class HierarchyError(ValidationError):
    """The acting member does not outrank the target role or member"""


class BlockingCallError(ValidationError, RuntimeError):
    """`complete()` was called on the thread running the event loop,
    waiting there would never finish.
    """


class StalePrecondition(ClientException):
    """The check attached to an action returned false right before it
    would have been sent.
    """

    kind = ErrorKind.STALE


class TransportError(ClientException):
    """The request did not produce a response that could be used, the
    connection failed or timed out.
    """

    kind = ErrorKind.TRANSPORT

    @property
    def retryable(self) -> bool:
        return True


class TooManyRetries(TransportError):
    """Raised when the maximum retry depth is reached"""


@attr.define(init=False, repr=False)
class HTTPException(ClientException):
    """Base class for errors that were encountered when making
    a HTTP request through the client. The status code and response
    data is included.
    """

    kind = ErrorKind.REMOTE

    code: int = attr.field()
    """ The HTTP status code """

    data: Union[str, Dict[str, Any]] = attr.field()
    """ The actual data of the request """

    def __init__(self, code: int, data: Union[str, Dict[str, Any]]):
        self.code = code
        self.data = data

        super().__init__(repr(self))

    @staticmethod
    def create(code: int, data: Union[str, Dict[str, Any]]) -> "HTTPException":
        """Picks the most specific exception type for a status code"""

        if code == 403:
            return Forbidden(code, data)
        if code == 404:
            return NotFound(code, data)
        if code >= 500:
            return ServerError(code, data)
        return HTTPException(code, data)

    @property
    def message(self) -> Optional[str]:
        """Error message sent by discord"""

        if isinstance(self.data, dict):
            return self.data.get("message")
        return None

    @property
    def errno(self) -> Optional[int]:
        """The raw JSON error code"""

        if isinstance(self.data, dict):
            return self.data.get("code")
        return None

    @property
    def error_code(self) -> ErrorCode:
        """The JSON error code as an `ErrorCode`, handy for matching on
        things like `ErrorCode.UNKNOWN_MESSAGE`.
        """

        return ErrorCode.from_code(self.errno)

    @property
    def errors(self) -> Optional[str]:
        """Returns the prettified error messages (discord sends them
        very strangely for some reason.
        """

        if isinstance(self.data, dict):
            if "errors" not in self.data:
                return None

            text = "\n".join(
                f"{item} ({code}): {message}"
                for item, (message, code) in flatten(self.data["errors"])
            )
            return text.strip()
        else:
            return self.data

    @property
    def retryable(self) -> bool:
        return self.code >= 500

    def __repr__(self) -> str:
        text = f"{self.code} {self.message} ({self.errno})"
        errors = self.errors
        if errors:
            text += f"\n{errors}"
        return text

    def __str__(self) -> str:
        return repr(self)


class Forbidden(HTTPException):
    """403, usually `ErrorCode.MISSING_PERMISSIONS` or `MISSING_ACCESS`"""


class NotFound(HTTPException):
    """404, the entity most likely got deleted"""


class ServerError(HTTPException):
    """5xx, something broke on discord's end"""


class DecodeError(ClientException):
    """A successful response could not be turned into the expected
    result.
    """

    kind = ErrorKind.DECODE


def classify(error: BaseException) -> Optional[ErrorKind]:
    """The kind of an error an action settled with, `None` for errors
    that did not come from the library (a raising transformer aside,
    those are wrapped in `DecodeError`).
    """

    if isinstance(error, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(error, ClientException):
        return error.kind
    return None
