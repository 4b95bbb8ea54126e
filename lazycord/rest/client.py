import asyncio
import json as jsonlib
import logging
from typing import Any, MutableMapping, Optional, Union
from urllib import parse

import aiohttp
import attr

from .config import RESTConfig
from .errors import HTTPException, TooManyRetries, TransportError
from .request import RequestDescriptor
from .response import Response
from .route import Route

__all__ = ("RESTClient",)

_log = logging.getLogger(__name__)


def _loads(text: str) -> Union[str, Any]:
    try:
        return jsonlib.loads(text)
    except jsonlib.JSONDecodeError:
        return text


@attr.define(kw_only=True)
class RESTClient:
    """Client that handles HTTP request to discord's REST API,
    this does not create a session itself and needs one passed to
    it. This is the transport every action is eventually sent through,
    retries and ratelimits are handled here and nowhere else.
    """

    session: aiohttp.ClientSession = attr.field()
    """ The actual session that the client uses for its HTTP
    requests, try not to use directly as that may mess up the
    ratelimit handling :)
    """

    token: str = attr.field(repr=False)
    """ The token that the client will use for authorization,
    it is important to note that you should not share this with
    anyone!
    """

    config: RESTConfig = attr.field(factory=RESTConfig)
    """ Base url, user agent, retry and timeout settings """

    buckets: MutableMapping[str, asyncio.Lock] = attr.field(init=False)
    global_ratelimit: asyncio.Event = attr.field(init=False)

    def __attrs_post_init__(self):
        self.buckets = {}

        self.global_ratelimit = asyncio.Event()
        self.global_ratelimit.set()

    def _headers(self, request: RequestDescriptor) -> MutableMapping[str, str]:
        headers: MutableMapping[str, str] = {**(request.headers or {})}

        headers["Authorization"] = "Bot " + self.token
        headers["User-Agent"] = self.config.user_agent

        if request.form is None and request.json is not None:
            headers["Content-Type"] = "application/json"

        if request.reason:
            headers["X-Audit-Log-Reason"] = parse.quote(request.reason, safe=" ")

        return headers

    async def execute(self, request: RequestDescriptor) -> Response:
        """Makes a HTTP request described by `request`.

        Parameters
        ----------
        request : lazycord.rest.request.RequestDescriptor
            Route, body and reason of the request.

        Raises
        ------
        lazycord.rest.errors.HTTPException
            Oh no! Discord rejected the request, the exception carries
            the status and the JSON error code as to why.
        lazycord.rest.errors.TooManyRetries
            The maximum retry limit has been reached.
        lazycord.rest.errors.TransportError
            The connection failed or timed out.

        Returns
        -------
        lazycord.rest.response.Response
            The corresponding response object denoting what
            discord sent back to us.
        """

        route = request.route
        url = route.compile_url(self.config.base_url)
        headers = self._headers(request)
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)

        if route.bucket not in self.buckets:
            self.buckets[route.bucket] = asyncio.Lock()

        lock = self.buckets[route.bucket]
        await lock.acquire()
        release_later = False

        try:
            for attempt in range(self.config.max_retries):
                await self.global_ratelimit.wait()

                kwargs: MutableMapping[str, Any] = {"headers": headers, "timeout": timeout}
                if request.form is not None:
                    kwargs["data"] = request.form.build()
                elif request.json is not None:
                    kwargs["json"] = request.json.build()

                try:
                    async with self.session.request(
                        route.method, url, **kwargs
                    ) as response:
                        text = await response.text(encoding="utf-8")
                        _log.debug(
                            "%s %s has returned %s.", route.method, url, response.status
                        )

                        if response.status == 429:
                            data = _loads(text)
                            if not isinstance(data, dict):
                                raise HTTPException.create(response.status, data)

                            retry_after = float(data.get("retry_after", 1))
                            is_global = data.get("global", False)
                            _log.warning(
                                "We are being rate limited. %s %s responded with 429. "
                                "Retrying in %.2f seconds (attempt %d).",
                                route.method,
                                url,
                                retry_after,
                                attempt + 1,
                            )

                            if is_global:
                                self.global_ratelimit.clear()
                            try:
                                await asyncio.sleep(retry_after)
                            finally:
                                if is_global:
                                    self.global_ratelimit.set()
                            continue

                        if response.headers.get("X-Ratelimit-Remaining") == "0":
                            reset_after = float(
                                response.headers.get("X-Ratelimit-Reset-After", 0)
                            )
                            _log.debug(
                                "Bucket %s exhausted, releasing in %.2f seconds.",
                                route.bucket,
                                reset_after,
                            )
                            asyncio.get_running_loop().call_later(
                                reset_after, lock.release
                            )
                            release_later = True

                        if 200 <= response.status < 300:
                            return Response(
                                response.status,
                                data=text,
                                content_type=response.headers.get("Content-Type"),
                                headers=dict(response.headers),
                            )

                        raise HTTPException.create(response.status, _loads(text))

                except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                    _log.debug("%s %s failed: %r", route.method, url, exc)
                    raise TransportError(
                        f"{route.method} {url} failed: {exc!r}"
                    ) from exc

            raise TooManyRetries(
                f"maximum retry limit reached ({self.config.max_retries})"
            )
        finally:
            if not release_later:
                lock.release()

    async def request(self, route: Route, **kwargs: Any) -> Response:
        """Shortcut for sending a route without building the descriptor
        first, keyword arguments are the `RequestDescriptor` fields.
        """

        return await self.execute(RequestDescriptor(route=route, **kwargs))
