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
Run coordination for the conformance pod.

``run`` waits for the pod to be Running, relays its log on a background
thread and blocks on the termination watch in the calling thread. Once the
exit code is known, the log relay gets a bounded drain window to reach the
end of the stream before its connection is closed.
"""

import threading
from typing import Callable, Optional

from podwatch.constants import LOG_DRAIN_TIMEOUT
from podwatch.exceptions import PodTerminatedError, StreamError
from podwatch.models.configuration import Configuration
from podwatch.models.events import RunResult
from podwatch.runtime.context import RunContext
from podwatch.runtime.log_streamer import LogSession, LogStreamer
from podwatch.runtime.readiness import PollPolicy, ReadinessPoller
from podwatch.runtime.termination import TerminationWatcher
from podwatch.utils.log import get_logger


def _discard(line: str) -> None:
    pass


class RunCoordinator:
    """Sequences readiness, log streaming and termination for one pod."""

    def __init__(
        self,
        provider,
        configuration: Configuration,
        consumer: Optional[Callable[[str], None]] = None,
        poll_policy: PollPolicy = PollPolicy(),
        drain_timeout: float = LOG_DRAIN_TIMEOUT,
    ) -> None:
        self.configuration = configuration
        self.consumer = consumer or _discard
        self.drain_timeout = drain_timeout
        self.readiness = ReadinessPoller(provider, policy=poll_policy)
        self.streamer = LogStreamer(provider)
        self.termination = TerminationWatcher(provider)
        self._logger = get_logger(f"{__name__}.RunCoordinator")

    @property
    def _target(self) -> dict:
        return {
            "namespace": self.configuration.namespace,
            "pod_name": self.configuration.pod_name,
        }

    def new_context(self) -> RunContext:
        """Root context for a run, bounded by the configured overall timeout."""
        return RunContext(timeout=self.configuration.timeout or None)

    def await_running(self, ctx: RunContext) -> None:
        """
        Raises:
            ReadinessError: If the pod is not observed running in time
        """
        self.readiness.await_running(
            ctx=ctx.child(timeout=self.configuration.startup_timeout),
            **self._target,
        )

    def print_running_logs(self, ctx: RunContext) -> None:
        """
        Wait for the pod to run, then print its log until the stream ends.

        Raises:
            ReadinessError: If the pod neither starts nor finishes in time
            StreamError: If log retrieval or output fails
            StreamInterruptedError: If the run context ends before the stream
        """
        self.await_running(ctx)
        self.streamer.stream_logs(
            container=self.configuration.container,
            consumer=self.consumer,
            ctx=ctx,
            **self._target,
        )

    def await_exit_code(self, ctx: RunContext) -> RunResult:
        """Block until the conformance container's exit code is known (-1 if it cannot be)."""
        return self.termination.await_termination(
            container=self.configuration.container,
            ctx=ctx,
            **self._target,
        )

    def run(self, ctx: Optional[RunContext] = None) -> RunResult:
        """
        Follow the pod from start to finish.

        Raises:
            ReadinessError: If the pod neither starts nor finishes in time
        """
        ctx = ctx or self.new_context()
        try:
            self.await_running(ctx)
        except PodTerminatedError as e:
            # the exit status and log are still readable from the finished pod
            self._logger.info(
                "Pod finished before it was observed running",
                dict(self._target, phase=e.snapshot.phase.value)
            )

        session = self.streamer.open(
            container=self.configuration.container,
            ctx=ctx,
            **self._target,
        )
        relay = threading.Thread(
            target=self._relay,
            args=(session,),
            name=f"relay-{self.configuration.pod_name}",
            daemon=True,
        )
        relay.start()

        try:
            result = self.await_exit_code(ctx)
        except BaseException:
            # stop the relay now instead of draining it
            ctx.cancel()
            raise
        finally:
            relay.join(self.drain_timeout)
            if relay.is_alive():
                self._logger.warning("Log stream still open after pod termination, closing it", self._target)
            session.close()

        self._logger.info("Conformance run finished", dict(self._target, exit_code=result.exit_code))
        return result

    def _relay(self, session: LogSession) -> None:
        try:
            self.streamer.relay(session, self.consumer)
        except StreamError as e:
            # logs are best-effort, the exit code comes from the watch
            self._logger.warning(f"Log streaming stopped: {e}", self._target)
