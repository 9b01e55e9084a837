"""Shared fixtures for the fsmkit test suite."""

import pytest


class RecordingConsole:
    """Console sink that records every call as ``(method, args)``."""

    def __init__(self):
        self.calls = []

    def log(self, *args):
        self.calls.append(("log", args))

    def error(self, *args):
        self.calls.append(("error", args))

    def group(self, *args):
        self.calls.append(("group", args))

    def group_end(self):
        self.calls.append(("group_end", ()))

    def labels(self):
        """Group labels in the order they were opened."""
        return [args[0] for method, args in self.calls if method == "group"]

    def values(self, key):
        """Every value logged under ``key``."""
        return [args[1] for method, args in self.calls if method in ("log", "error") and args[0] == key]


@pytest.fixture
def console():
    return RecordingConsole()
