from typing import Any, Dict, Final, Optional, Tuple, final
from urllib import parse

import attr

__all__ = ("Route", "BASE_URL")

BASE_URL: Final[str] = "https://discord.com/api/v10"

# parameters that decide which ratelimit bucket a route belongs to
MAJOR_PARAMETERS: Final[Tuple[str, ...]] = ("channel_id", "guild_id", "webhook_id")


@final
@attr.frozen(init=False)
class Route:
    """Container class for routes that the http client will interact with
    contains data about the path template, the parameters it is compiled
    with and the query string. Routes are immutable, use `with_query` to
    derive a new one.
    """

    method: str = attr.field()
    """ HTTP method the request will take """

    path: str = attr.field()
    """ The path of the Route (not interpolated with the parameters) """

    params: Dict[str, Any] = attr.field()
    """ The parameters that the route will take """

    query: Tuple[Tuple[str, str], ...] = attr.field()
    """ The query string parameters, in insertion order """

    def __init__(
        self,
        method: str,
        path: str,
        *,
        query: Optional[Tuple[Tuple[str, str], ...]] = None,
        **params: Any,
    ):
        object.__setattr__(self, "method", method.upper())
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "params", dict(sorted(params.items())))
        object.__setattr__(self, "query", tuple(query or ()))

        try:
            self.compiled_path
        except KeyError as exc:
            raise ValueError(
                f"missing parameter {exc.args[0]!r} for route {path!r}"
            ) from None

    @property
    def compiled_path(self) -> str:
        """The path interpolated with the (url quoted) parameters"""
        return self.path.format_map(
            {
                key: parse.quote(str(value), safe="")
                for key, value in self.params.items()
            }
        )

    @property
    def query_string(self) -> str:
        """The encoded query string, empty if there are no parameters"""
        return parse.urlencode(self.query)

    @property
    def url(self) -> str:
        """The interpolated URL of the route against the default base url"""
        return self.compile_url(BASE_URL)

    def compile_url(self, base_url: str) -> str:
        """Joins the compiled path (and query string) onto `base_url`.

        Parameters
        ----------
        base_url : builtins.str
            The API base, for example `https://discord.com/api/v10`.

        Returns
        -------
        builtins.str
        """

        url = base_url.rstrip("/") + self.compiled_path
        if self.query:
            url += "?" + self.query_string
        return url

    def with_query(self, **params: Any) -> "Route":
        """Returns a copy of this route with additional query parameters,
        parameters that are `None` are skipped. A parameter that already
        exists is replaced.

        Returns
        -------
        lazycord.rest.route.Route
        """

        query = dict(self.query)
        for key, value in params.items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = str(value).lower()
            query[key] = str(value)

        return Route(
            self.method, self.path, query=tuple(query.items()), **self.params
        )

    def get_query(self, key: str) -> Optional[str]:
        """Looks up a query parameter by name"""
        return dict(self.query).get(key)

    @property
    def bucket(self) -> str:
        """The ratelimit bucket that the route would fall into, as per the
        discord api docs (https://discord.com/developers/docs/topics/rate-limits)
        """
        major = [
            str(self.params[key]) for key in MAJOR_PARAMETERS if key in self.params
        ]
        return ":".join(major + [self.method, self.path])
