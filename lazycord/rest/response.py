import json as jsonlib
from typing import Any, Mapping, Optional, final

import attr

__all__ = ("Response",)


@final
@attr.define
class Response:
    """The object that represents the response that discord
    sends back after a successful HTTP request.
    """

    code: int = attr.field()
    """ The status code of the response """

    data: str = attr.field()
    """ The raw data of the response, probably should not be used
    directly, rather call a helper method to get the parsed data.
    """

    content_type: Optional[str] = attr.field(default="application/json")
    """ The content-type of the response of the request, most
    likely application/json but could be something else (or nothing
    at all for `204 No Content`).
    """

    headers: Mapping[str, str] = attr.field(factory=dict)
    """ The response headers """

    @property
    def is_empty(self) -> bool:
        return self.code == 204 or not self.data

    def json(self) -> Any:
        """Returns the parsed JSON data of the response, will
        raise a `ValueError` if the content type is incorrect.
        """

        content_type = (self.content_type or "").split(";")[0].strip()
        if content_type == "application/json":
            return jsonlib.loads(self.data)
        else:
            raise ValueError(
                f"content-type must be `application/json` not `{self.content_type}`"
            )
