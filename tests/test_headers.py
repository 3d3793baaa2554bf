import base64

from snowy.headers import Headers


def test_add_bearer_sets_authorization():
    headers = Headers({"X-Test": "test"})
    headers.add_bearer("token")

    assert headers["Authorization"] == "Bearer token"
    assert headers["X-Test"] == "test"


def test_add_basic_auth_encodes_credentials():
    headers = Headers()
    headers.add_basic_auth("user", "pass")

    expected = base64.b64encode(b"user:pass").decode("ascii")
    assert headers["Authorization"] == f"Basic {expected}"
    assert headers["Authorization"] == "Basic dXNlcjpwYXNz"


def test_add_overwrites_existing_value():
    headers = Headers()
    headers.add("X-Token", "first")
    headers.add("X-Token", "second")

    assert headers.get("X-Token") == "second"


def test_contains():
    headers = Headers({"X-Token": "token"})

    assert headers.contains("X-Token")
    assert not headers.contains("Authorization")


def test_keys_are_case_sensitive():
    headers = Headers({"X-Token": "token"})

    assert not headers.contains("x-token")


def test_remove():
    headers = Headers({"X-Token": "token"})
    headers.remove("X-Token")
    headers.remove("Missing")

    assert not headers.contains("X-Token")


def test_get_returns_empty_string_when_absent():
    headers = Headers({"X-Token": "token"})

    assert headers.get("X-Token") == "token"
    assert headers.get("Authorization") == ""
