from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from esgsmart.config import DEFAULT_POLL_SECONDS
from esgsmart.errors import ConfigurationMissing
from esgsmart.types import DocumentSession, PollState, ReadinessResponse

logger = logging.getLogger(__name__)

FetchCycle = Callable[[str, Optional[str]], ReadinessResponse]
UpdateListener = Callable[[DocumentSession], None]


class CancellationToken:
    """Marks every cycle started for one document; cancelled on change."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ReadinessPoller:
    """
    Watches one document at a time until its three artifacts are all present.

    Lifecycle:
        IDLE --start()--> POLLING --all ready--> ALL_READY
        any state --start(other id) / clear()--> IDLE (then POLLING again)

    Only one fetch cycle runs at a time. The blocking read happens in a worker
    thread; everything else runs on the event loop. Results for a document
    that is no longer current are dropped on arrival.

    `start()` must be called from a running event loop.
    """

    def __init__(
        self,
        fetch: Optional[FetchCycle] = None,
        interval: float = DEFAULT_POLL_SECONDS,
        on_update: Optional[UpdateListener] = None,
    ):
        if fetch is None:
            from esgsmart.store.artifact_lookup import ArtifactLookup

            fetch = ArtifactLookup().fetch_all
        self._fetch = fetch
        self.interval = interval
        self.on_update = on_update

        self.session: Optional[DocumentSession] = None
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        self._ready: Optional[asyncio.Event] = None
        self._failure: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> PollState:
        return self.session.state if self.session else PollState.IDLE

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self, document_id: str, batch_path: Optional[str] = None) -> DocumentSession:
        """Begin watching a document, abandoning whatever was watched before."""
        loop = asyncio.get_running_loop()
        self.clear()

        token = CancellationToken(document_id)
        self._token = token
        self._failure = None
        self._ready = asyncio.Event()
        self.session = DocumentSession(document_id=document_id, batch_path=batch_path)

        logger.info("Polling artifacts for %s every %.1fs", document_id, self.interval)
        self._task = loop.create_task(self._run(token))
        return self.session

    def clear(self) -> None:
        """Stop watching: cancel the timer and orphan any in-flight read."""
        if self._token is not None:
            logger.debug("Cancelling polling for %s", self._token.document_id)
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._token = None
        self._task = None
        self._inflight = None
        self.session = None

    async def retry(self) -> Optional[ReadinessResponse]:
        """
        Run one extra fetch cycle now; the regular schedule is unchanged.

        A retry while a cycle is already running waits for that cycle instead
        of starting another. Once all artifacts are ready this is a no-op.
        """
        token = self._token
        if token is None or self.session is None:
            return None
        if self.session.state is PollState.ALL_READY:
            return self.session.response
        try:
            await asyncio.shield(self._cycle(token))
        except asyncio.CancelledError:
            # The document was cleared while the shared cycle was running.
            if token.cancelled:
                return None
            raise
        return self.session.response if self.session else None

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until ALL_READY. Returns False on timeout; re-raises a
        configuration error that stopped polling.
        """
        if self._ready is None:
            return False
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        if self._failure is not None:
            raise self._failure
        return True

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _finished(self, token: CancellationToken) -> bool:
        return (
            token.cancelled
            or self._failure is not None
            or self.session is None
            or self.session.state is PollState.ALL_READY
        )

    async def _run(self, token: CancellationToken) -> None:
        while True:
            await self._cycle(token)
            if self._finished(token):
                return
            await asyncio.sleep(self.interval)
            if self._finished(token):
                return

    def _cycle(self, token: CancellationToken) -> asyncio.Future:
        if self.busy:
            return self._inflight
        self._inflight = asyncio.ensure_future(self._fetch_and_apply(token))
        return self._inflight

    async def _fetch_and_apply(self, token: CancellationToken) -> None:
        session = self.session
        batch_path = session.batch_path if session else None
        try:
            response = await asyncio.to_thread(self._fetch, token.document_id, batch_path)
        except ConfigurationMissing as e:
            if self._is_current(token):
                logger.error("Polling stopped for %s: %s", token.document_id, e)
                self._failure = e
                self.session.last_error = str(e)
                self.session.state = PollState.IDLE
                self._ready.set()
            return
        except Exception as e:
            if self._is_current(token):
                logger.warning("Fetch cycle failed for %s: %s", token.document_id, e)
                self.session.last_error = str(e)
                self._notify()
            return

        if not self._is_current(token):
            logger.debug("Discarding result for stale document %s", token.document_id)
            return

        self._apply(response)

    def _is_current(self, token: CancellationToken) -> bool:
        return (
            not token.cancelled
            and self.session is not None
            and self.session.document_id == token.document_id
        )

    def _apply(self, response: ReadinessResponse) -> None:
        session = self.session
        session.response = response
        session.cycles += 1
        session.last_error = None

        if response.ready.all:
            session.state = PollState.ALL_READY
            logger.info(
                "All artifacts ready for %s after %d cycle(s)", session.document_id, session.cycles
            )
            self._ready.set()
        else:
            session.state = PollState.POLLING

        self._notify()

    def _notify(self) -> None:
        if self.on_update is None or self.session is None:
            return
        try:
            self.on_update(self.session)
        except Exception as e:  # pragma: no cover
            logger.warning("Update listener failed: %s", e)


def watch_document(
    document_id: str,
    batch_path: Optional[str] = None,
    timeout: Optional[float] = None,
    interval: float = DEFAULT_POLL_SECONDS,
    fetch: Optional[FetchCycle] = None,
) -> DocumentSession:
    """
    Synchronous helper: poll until ready or timeout and return the session.
    """

    async def _watch() -> DocumentSession:
        poller = ReadinessPoller(fetch=fetch, interval=interval)
        session = poller.start(document_id, batch_path)
        try:
            await poller.wait_until_ready(timeout)
        finally:
            poller.clear()
        return session

    return asyncio.run(_watch())
