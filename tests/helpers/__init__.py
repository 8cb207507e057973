from .mocks import FakeTransport, SentCall, BASE_URL, ok, error

__all__ = [
    "FakeTransport",
    "SentCall",
    "BASE_URL",
    "ok",
    "error",
]
