# Copyright The Volcano Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Follow a container's log and relay it line by line.

A LogSession owns one producer thread that reads the container log and
feeds a bounded queue of StreamEvents. The consumer sees each line in
order, then exactly one of Done (clean end of stream) or Failure
(retrieval error). Nothing follows a Failure. A session closed or
cancelled by the caller simply stops producing.
"""

import queue
import threading
from typing import Callable, Iterator, Optional

from podwatch.constants import MAX_PENDING_LINES, QUEUE_POLL_INTERVAL
from podwatch.exceptions import StreamError, StreamInterruptedError
from podwatch.models.events import StreamEvent, StreamEventKind
from podwatch.runtime.context import RunContext
from podwatch.utils.log import get_logger


class LogSession:
    def __init__(
        self,
        provider,
        namespace: str,
        pod_name: str,
        container: str,
        ctx: RunContext,
        max_pending: int = MAX_PENDING_LINES,
    ):
        self.provider = provider
        self.namespace = namespace
        self.pod_name = pod_name
        self.container = container
        self.ctx = ctx
        self._events: "queue.Queue[StreamEvent]" = queue.Queue(maxsize=max_pending)
        self._stopped = threading.Event()
        self._stream = None
        self._stream_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._logger = get_logger(f"{__name__}.LogSession")

    @property
    def log_context(self) -> dict:
        return {"pod": self.pod_name, "namespace": self.namespace, "container": self.container}

    def start(self) -> "LogSession":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._produce,
            name=f"logs-{self.pod_name}-{self.container}",
            daemon=True,
        )
        self._thread.start()
        return self

    def events(self) -> Iterator[StreamEvent]:
        """
        Yield events in order until Done or Failure (inclusive).

        Returns early, without a final event, when the session is closed or
        the run context is done.
        """
        while True:
            if self.ctx.done:
                self.close()
                return
            if self._stopped.is_set() and self._events.empty():
                return
            try:
                event = self._events.get(timeout=QUEUE_POLL_INTERVAL)
            except queue.Empty:
                continue
            yield event
            if event.final:
                return

    def close(self) -> None:
        """Stop producing and release the log connection."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        with self._stream_lock:
            stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except Exception as e:
                self._logger.debug("Error closing log stream", dict(self.log_context, error=str(e)))

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the producer to finish. Returns True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _produce(self) -> None:
        try:
            stream = self.provider.open_log_stream(self.namespace, self.pod_name, self.container)
            with self._stream_lock:
                self._stream = stream
            if self._stopped.is_set():
                stream.close()
                return

            for line in stream:
                if not self._put(StreamEvent.line(line)):
                    return
        except Exception as e:
            if self._stopped.is_set():
                return
            self._logger.debug("Log retrieval failed", dict(self.log_context, error=str(e)))
            error = e if isinstance(e, StreamError) else StreamError(
                f"Failed to read logs of {self.namespace}/{self.pod_name}: {e}", self.log_context
            )
            self._put(StreamEvent.failure(error))
            return

        if not self._stopped.is_set():
            self._put(StreamEvent.done())

    def _put(self, event: StreamEvent) -> bool:
        # a full queue blocks the producer until the consumer catches up
        while not self._stopped.is_set():
            try:
                self._events.put(event, timeout=QUEUE_POLL_INTERVAL)
                return True
            except queue.Full:
                if self.ctx.done:
                    return False
        return False


class LogStreamer:
    """Relays a running container's log to a consumer."""

    def __init__(self, provider, max_pending: int = MAX_PENDING_LINES):
        self.provider = provider
        self.max_pending = max_pending
        self._logger = get_logger(f"{__name__}.LogStreamer")

    def open(self, namespace: str, pod_name: str, container: str, ctx: RunContext) -> LogSession:
        """Start a streaming session; the caller consumes its events and closes it."""
        return LogSession(
            self.provider, namespace, pod_name, container, ctx, max_pending=self.max_pending
        ).start()

    def stream_logs(
        self,
        namespace: str,
        pod_name: str,
        container: str,
        consumer: Callable[[str], None],
        ctx: RunContext,
    ) -> None:
        """
        Forward every log line to ``consumer`` until the stream ends.

        Raises:
            StreamError: If retrieval fails or the consumer cannot accept a line
            StreamInterruptedError: If the context ends before the stream does
        """
        with self.open(namespace, pod_name, container, ctx) as session:
            if not self.relay(session, consumer):
                reason = "cancelled" if ctx.cancelled else "deadline exceeded"
                raise StreamInterruptedError(
                    f"Log stream of {namespace}/{pod_name} stopped before it ended: {reason}",
                    session.log_context
                )

    def relay(self, session: LogSession, consumer: Callable[[str], None]) -> bool:
        """
        Drain a session into ``consumer``.

        Returns:
            True if the stream ended cleanly, False if it was closed or cancelled

        Raises:
            StreamError: On a Failure event or a consumer error
        """
        for event in session.events():
            if event.kind is StreamEventKind.LINE:
                try:
                    consumer(event.text)
                except StreamError:
                    session.close()
                    raise
                except OSError as e:
                    session.close()
                    raise StreamError(f"Failed to write log line: {e}", session.log_context) from e
            elif event.kind is StreamEventKind.FAILURE:
                raise event.error
            else:
                self._logger.debug("Log stream finished", session.log_context)
                return True
        return False
