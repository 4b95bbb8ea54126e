from __future__ import annotations

import copy
import json as jsonlib
from typing import Any, List, Mapping, MutableMapping, Optional

import aiohttp
import attr

__all__ = ("JSONBuilder", "FormField", "FormBuilder")


def _to_json(value: Any) -> Any:
    if hasattr(value, "to_json"):
        return value.to_json()
    return value


@attr.define(init=False)
class JSONBuilder:
    """Represents the JSON body of a request"""

    inner: MutableMapping[str, Any] = attr.field(init=False)
    """ The inner representation of the JSON """

    def __init__(self, **kwargs: Any):
        self.inner = {key: _to_json(value) for key, value in kwargs.items()}

    def add(self, key: str, value: Any) -> JSONBuilder:
        """Add a key to the JSON mapping

        Parameters
        ----------
        key : builtins.str
            The key.
        value : typing.Any
            The value that the key represents. (Will implicitly
            call `to_json` if the type supports it).

        Returns
        -------
        lazycord.rest.builders.JSONBuilder
            The builder object, can be used for chaining.
        """

        self.inner[key] = _to_json(value)
        return self

    def add_optional(self, key: str, value: Any) -> JSONBuilder:
        """Same as `add` but does nothing when `value` is `None`"""

        if value is not None:
            self.add(key, value)
        return self

    def build(self) -> Mapping[str, Any]:
        """Builds the JSON object into a mapping. (This makes
        a deepcopy of the underlying object).

        Returns
        -------
        typing.Mapping[builtins.str, typing.Any]
        """

        return copy.deepcopy(self.inner)


@attr.frozen
class FormField:
    """A single part of a multipart form"""

    name: str = attr.field()
    value: Any = attr.field(repr=False)
    """ The payload of the part, `str` or `bytes` """

    content_type: str = attr.field(default="application/octet-stream")
    filename: Optional[str] = attr.field(default=None)


@attr.define(init=False)
class FormBuilder:
    """Represents a multipart form, used whenever files are uploaded"""

    fields: List[FormField] = attr.field(init=False)
    """ The parts of the form, in the order they are sent """

    def __init__(self):
        self.fields = []

    def add_field(
        self,
        name: str,
        value: Any,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> FormBuilder:
        """Adds a part to the form.

        Parameters
        ----------
        name : builtins.str
            The form name of the part.
        value : typing.Any
            The payload, either text or bytes.
        content_type : typing.Optional[builtins.str]
            Defaults to `application/octet-stream`.
        filename : typing.Optional[builtins.str]
            Makes discord treat the part as an attachment.

        Returns
        -------
        lazycord.rest.builders.FormBuilder
            The builder object, can be used for chaining.
        """

        field = FormField(name, value, filename=filename)
        if content_type is not None:
            field = attr.evolve(field, content_type=content_type)

        self.fields.append(field)
        return self

    def add_file(self, index: int, filename: str, data: bytes) -> FormBuilder:
        """Shortcut for attaching a file as `files[index]`"""

        return self.add_field(f"files[{index}]", data, filename=filename)

    def add_json(self, json: JSONBuilder) -> FormBuilder:
        """Attaches the rest of the request body as `payload_json`,
        discord reads the JSON from there when a form is sent.
        """

        return self.add_field(
            "payload_json",
            jsonlib.dumps(json.build()),
            content_type="application/json",
        )

    def build(self) -> aiohttp.FormData:
        """Builds a fresh `aiohttp.FormData`, aiohttp consumes the form
        when sending so a retried request needs a new one.
        """

        form = aiohttp.FormData(quote_fields=False)
        for field in self.fields:
            form.add_field(
                field.name,
                field.value,
                content_type=field.content_type,
                filename=field.filename,
            )

        return form
