"""Artifact storage for rendered reports.

The orchestrator needs exactly two operations from a blob store: persist
bytes and get a handle back, and mint a time-bounded read URL for a handle.
``LocalArtifactStore`` implements both on the local filesystem; its URLs
carry an expiry and an HMAC signature that ``verify_url`` checks.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import parse_qs, quote, unquote, urlsplit

from db_guardian.errors import StorageError
from db_guardian.model.run import ReportRef, utc_now

_logger = logging.getLogger(__name__)

DEFAULT_URL_TTL = timedelta(minutes=15)


class ArtifactStore(Protocol):
    def store(self, data: bytes, content_type: str, name: str) -> ReportRef:
        """Persist *data* and return its handle."""
        ...

    def read(self, ref: ReportRef) -> bytes:
        ...

    def delete(self, ref: ReportRef) -> None:
        """Remove the artifact; a missing artifact is not an error."""
        ...

    def access_url(self, ref: ReportRef, expires_in: timedelta = DEFAULT_URL_TTL) -> str:
        """Return a signed URL that stops working after *expires_in*."""
        ...


def report_key(name: str, when: datetime) -> str:
    """Date-partitioned key: ``reports/YYYY/MM/DD/<name>``."""
    return f"reports/{when:%Y/%m/%d}/{name}"


class LocalArtifactStore:
    """Store artifacts as files under *base_dir*.

    Parameters
    ----------
    base_dir:
        Root directory; keys are paths relative to it.
    secret:
        HMAC key for signing access URLs.
    container:
        Name recorded as the first half of every ``ReportRef``.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        base_dir: Path,
        secret: str | bytes,
        *,
        container: str = "local",
        clock: Callable[[], datetime] = utc_now,
    ):
        if not secret:
            raise ValueError("URL signing secret cannot be empty")
        self.base_dir = Path(base_dir)
        self.container = container
        self._secret = secret.encode() if isinstance(secret, str) else secret
        self._clock = clock

    def path_for(self, ref: ReportRef) -> Path:
        if ref.container != self.container:
            raise StorageError(
                "Report reference belongs to another container",
                {"container": ref.container, "expected": self.container},
            )
        base = self.base_dir.resolve()
        path = (base / ref.key).resolve()
        if base not in path.parents:
            raise StorageError("Report key escapes the storage root", {"key": ref.key})
        return path

    # ── write ──────────────────────────────────────────────────────

    def store(self, data: bytes, content_type: str, name: str) -> ReportRef:
        ref = ReportRef(container=self.container, key=report_key(name, self._clock()))
        path = self.path_for(ref)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(
                "Failed to store artifact", {"key": ref.key, "error": str(exc)}
            ) from exc
        _logger.debug("stored %s (%s, %d bytes)", ref.key, content_type, len(data))
        return ref

    # ── read ───────────────────────────────────────────────────────

    def read(self, ref: ReportRef) -> bytes:
        path = self.path_for(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(
                "Failed to read artifact", {"key": ref.key, "error": str(exc)}
            ) from exc

    def delete(self, ref: ReportRef) -> None:
        path = self.path_for(ref)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(
                "Failed to delete artifact", {"key": ref.key, "error": str(exc)}
            ) from exc
        _logger.debug("deleted %s", ref.key)

    # ── signed URLs ────────────────────────────────────────────────

    def _sign(self, ref: ReportRef, expires: int) -> str:
        payload = f"{ref.container}/{ref.key}:{expires}".encode()
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()

    def access_url(self, ref: ReportRef, expires_in: timedelta = DEFAULT_URL_TTL) -> str:
        if expires_in <= timedelta(0):
            raise ValueError("expires_in must be positive")
        expires = int((self._clock() + expires_in).timestamp())
        path = self.path_for(ref)
        return (
            f"{path.as_uri()}?container={quote(ref.container)}&key={quote(ref.key)}"
            f"&expires={expires}&signature={self._sign(ref, expires)}"
        )

    def verify_url(self, url: str) -> ReportRef | None:
        """Return the handle a URL grants access to, or ``None`` if invalid or expired."""
        query = parse_qs(urlsplit(url).query)
        try:
            ref = ReportRef(
                container=unquote(query["container"][0]),
                key=unquote(query["key"][0]),
            )
            expires = int(query["expires"][0])
            signature = query["signature"][0]
        except (KeyError, IndexError, ValueError):
            return None
        if not hmac.compare_digest(signature, self._sign(ref, expires)):
            return None
        if datetime.fromtimestamp(expires, tz=timezone.utc) < self._clock():
            return None
        return ref
