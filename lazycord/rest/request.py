from typing import Mapping, Optional, Union

import attr

from .builders import FormBuilder, JSONBuilder
from .route import Route

__all__ = ("RequestDescriptor",)


@attr.frozen(kw_only=True)
class RequestDescriptor:
    """Represents a HTTP request that has not been sent yet, this is what
    an action hands to the transport. Descriptors never change once they
    are built, use the `with_*` methods to derive a new one.
    """

    route: Route = attr.field()
    """ The compiled route (method, path and query) """

    json: Optional[JSONBuilder] = attr.field(default=None)
    """ JSON body of the request """

    form: Optional[FormBuilder] = attr.field(default=None)
    """ Multipart body of the request, takes precedence over `json` """

    reason: Optional[str] = attr.field(default=None)
    """ Audit log reason, sent as the `X-Audit-Log-Reason` header """

    headers: Optional[Mapping[str, str]] = attr.field(default=None)
    """ Extra headers to send along """

    @property
    def body(self) -> Union[JSONBuilder, FormBuilder, None]:
        """Whichever body the request carries, if any"""
        return self.form if self.form is not None else self.json

    def with_reason(self, reason: Optional[str]) -> "RequestDescriptor":
        return attr.evolve(self, reason=reason)

    def with_route(self, route: Route) -> "RequestDescriptor":
        return attr.evolve(self, route=route)
