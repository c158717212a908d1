"""Normalized API response value object."""

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ResponseDecodeError


class Response(BaseModel):
    """Simplified view of an API response.

    Attributes:
        http_code: The HTTP status code.
        body: The JSON-decoded body. An empty body decodes to ``{}``.
        headers: Response headers as ``name -> [values]`` in their original
            casing and order.
    """

    http_code: int
    body: Any = Field(default_factory=dict)
    headers: dict[str, list[str]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "Response":
        """Build a Response from a completed httpx.Response.

        Raises:
            ResponseDecodeError: If the body is non-empty and not valid JSON.
        """
        if not response.text.strip():
            body: Any = {}
        else:
            try:
                body = response.json()
            except ValueError as e:
                raise ResponseDecodeError(
                    f"Response body is not valid JSON: {e}", response=response
                ) from e

        headers: dict[str, list[str]] = {}
        for raw_name, raw_value in response.headers.raw:
            name = raw_name.decode("latin-1")
            headers.setdefault(name, []).append(raw_value.decode("latin-1"))

        return cls(http_code=response.status_code, body=body, headers=headers)

    def header(self, name: str) -> list[str]:
        """Return all values of header ``name``, matched case-insensitively."""
        values: list[str] = []
        for key, key_values in self.headers.items():
            if key.lower() == name.lower():
                values.extend(key_values)
        return values
