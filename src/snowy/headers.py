"""Mutable request header set with authorization helpers."""

from __future__ import annotations

import base64


class Headers(dict[str, str]):
    """Header name to value mapping.

    Keys are stored exactly as given; case folding is left to the transport.
    Values are not validated here.
    """

    def add(self, name: str, value: str) -> None:
        self[name] = value

    def contains(self, name: str) -> bool:
        return name in self

    def get(self, name: str, default: str = "") -> str:  # type: ignore[override]
        """Return the header value, or an empty string when absent."""
        return super().get(name, default)

    def remove(self, name: str) -> None:
        self.pop(name, None)

    def add_bearer(self, token: str) -> None:
        self.add("Authorization", f"Bearer {token}")

    def add_basic_auth(self, username: str, password: str) -> None:
        credentials = f"{username}:{password}".encode("utf-8")
        encoded = base64.b64encode(credentials).decode("ascii")
        self.add("Authorization", f"Basic {encoded}")
