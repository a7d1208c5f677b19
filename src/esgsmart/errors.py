from __future__ import annotations

from typing import Optional


class ArtifactError(Exception):
    """Base class for failures reading an artifact from the remote store."""

    kind = "error"

    def __init__(self, path: str, message: str = "", status_code: Optional[int] = None):
        self.path = path
        self.message = message
        self.status_code = status_code
        super().__init__(f"{self.kind}: {path}" + (f" ({message})" if message else ""))


class NotFound(ArtifactError):
    """The artifact has not been produced yet."""

    kind = "not_found"


class ReadError(ArtifactError):
    """Transport, permission or server failure while reading."""

    kind = "read_error"


class MalformedArtifact(ArtifactError):
    """The artifact was read but is not the JSON shape we expect."""

    kind = "malformed"


class ConfigurationMissing(RuntimeError):
    """A required environment value (endpoint or credential) is absent."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing env: {name}")


class ServiceError(RuntimeError):
    """A remote operation (serving, DBFS put, job trigger, chat) failed."""

    def __init__(self, operation: str, status_code: Optional[int] = None, body: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        detail = f" {status_code}" if status_code is not None else ""
        super().__init__(f"{operation} failed{detail}: {body[:300]}")
