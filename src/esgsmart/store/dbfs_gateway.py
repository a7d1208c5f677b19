from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Iterable, List, Optional, Tuple

import requests

from esgsmart.errors import MalformedArtifact, NotFound, ReadError
from esgsmart.store.http_client import DatabricksClient

logger = logging.getLogger(__name__)

# DBFS read API returns at most 1MB per call
CHUNK_SIZE = 1_000_000

READ_API = "/api/2.0/dbfs/read"
PUT_API = "/api/2.0/dbfs/put"


def normalize_dbfs_path(path: str) -> str:
    """
    Map the path conventions in use onto the API's "dbfs:/..." form.

        dbfs:/tmp/x.json  -> dbfs:/tmp/x.json
        /dbfs/tmp/x.json  -> dbfs:/tmp/x.json
        /tmp/x.json       -> dbfs:/tmp/x.json
        tmp/x.json        -> dbfs:/tmp/x.json
    """
    p = (path or "").strip()
    if p.startswith("dbfs:"):
        rest = p[len("dbfs:"):]
    elif p.startswith("/dbfs/"):
        rest = p[len("/dbfs"):]
    else:
        rest = p
    return "dbfs:/" + rest.lstrip("/")


class DbfsGateway:
    """
    Read-side access to DBFS artifacts.

    Every read pages through the file in CHUNK_SIZE pieces, joins the base64
    payload, and decodes it. Errors are raised as NotFound, ReadError or
    MalformedArtifact so callers can tell "not yet" from "broken".
    """

    def __init__(self, client: Optional[DatabricksClient] = None, chunk_size: int = CHUNK_SIZE):
        self.client = client or DatabricksClient()
        self.chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Raw transfer
    # ------------------------------------------------------------------

    def _read_chunk(self, dbfs_path: str, offset: int) -> Tuple[str, int]:
        params = {"path": dbfs_path, "offset": offset, "length": self.chunk_size}
        try:
            r = self.client.get(READ_API, params=params)
        except requests.RequestException as e:
            raise ReadError(dbfs_path, f"network error: {e}") from e

        if r.status_code == 404:
            raise NotFound(dbfs_path, "File not found", 404)
        if not r.ok:
            raise ReadError(dbfs_path, r.text[:300], r.status_code)

        try:
            payload = r.json()
        except ValueError as e:
            raise ReadError(dbfs_path, f"unexpected read response: {e}", r.status_code) from e

        data = payload.get("data") or ""
        bytes_read = int(payload.get("bytes_read") or 0)
        return data, bytes_read

    def read_bytes(self, path: str) -> bytes:
        dbfs_path = normalize_dbfs_path(path)
        offset = 0
        parts: List[str] = []

        while True:
            data, bytes_read = self._read_chunk(dbfs_path, offset)
            if not data or bytes_read == 0:
                break

            parts.append(data)
            offset += bytes_read

            # Short chunk means EOF
            if bytes_read < self.chunk_size:
                break

        if not parts:
            raise NotFound(dbfs_path, "Empty file", 404)

        # Chunks are decoded separately: each is independently padded base64.
        try:
            raw = b"".join(base64.b64decode(p, validate=True) for p in parts)
        except (binascii.Error, ValueError) as e:
            raise MalformedArtifact(dbfs_path, f"invalid base64: {e}") from e

        logger.debug("Read %d bytes from %s in %d chunk(s)", len(raw), dbfs_path, len(parts))
        return raw

    def read_text(self, path: str) -> str:
        raw = self.read_bytes(path)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedArtifact(normalize_dbfs_path(path), f"not UTF-8: {e}") from e

    # ------------------------------------------------------------------
    # JSON reads
    # ------------------------------------------------------------------

    def read(self, path: str) -> Any:
        """Read and parse one JSON artifact."""
        text = self.read_text(path)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedArtifact(
                normalize_dbfs_path(path), f"Artifact is not valid JSON: {e}"
            ) from e

    def read_first_of(self, paths: Iterable[str]) -> Tuple[str, Any]:
        """
        Try each candidate in order and return (path, data) for the first hit.

        Absent candidates are skipped; any other failure is raised at once
        without trying the remaining candidates.
        """
        tried: List[str] = []
        for path in paths:
            tried.append(path)
            try:
                data = self.read(path)
            except NotFound:
                logger.debug("Not found: %s", path)
                continue
            logger.debug("Found: %s", path)
            return path, data

        raise NotFound(", ".join(tried), "no candidate exists", 404)

    # ------------------------------------------------------------------
    # Write (used by submission only)
    # ------------------------------------------------------------------

    def put_text(self, path: str, text: str, overwrite: bool = True) -> None:
        payload = {
            "path": normalize_dbfs_path(path),
            "overwrite": overwrite,
            "contents": base64.b64encode(text.encode("utf-8")).decode("ascii"),
        }
        self.client.post_json(PUT_API, payload, operation="DBFS put")
