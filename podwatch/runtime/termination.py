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

"""Watch the conformance pod until its conformance container has stopped."""

from typing import Any, Iterable, Optional

from kubernetes.client.rest import ApiException

from podwatch.constants import UNDETERMINED_EXIT_CODE
from podwatch.exceptions import WatchDecodeError
from podwatch.models.events import RunResult
from podwatch.models.pod import PodPhase, PodSnapshot
from podwatch.runtime.context import RunContext
from podwatch.utils.log import get_logger


class _Resolution:
    """Holds the single result of one watch; resolving twice is a bug."""

    def __init__(self):
        self.result: Optional[RunResult] = None

    def resolve(self, exit_code: int) -> RunResult:
        if self.result is not None:
            raise RuntimeError(f"exit code already resolved to {self.result.exit_code}")
        self.result = RunResult(exit_code=exit_code)
        return self.result


class TerminationWatcher:
    """
    Observes pod snapshots until the conformance container terminates.

    Never raises: anything that prevents a decision resolves to exit code -1.
    """

    def __init__(self, provider):
        self.provider = provider
        self._logger = get_logger(f"{__name__}.TerminationWatcher")

    def await_termination(
        self,
        namespace: str,
        pod_name: str,
        container: str,
        ctx: Optional[RunContext] = None,
    ) -> RunResult:
        ctx = ctx or RunContext()
        context = {"pod": pod_name, "namespace": namespace}
        resolution = _Resolution()

        self._logger.info("Waiting for pod to terminate...", context)
        events = None
        try:
            events = self.provider.watch_pod(
                namespace, pod_name, should_stop=lambda: ctx.done, remaining=ctx.remaining
            )
            return self.observe(events, container, ctx, resolution)
        except ApiException as e:
            self._logger.error("Failed to watch pod", dict(context, status=e.status, reason=e.reason))
        except Exception as e:
            self._logger.error("Pod watch failed", dict(context, error=str(e)))
        finally:
            self._close(events)
        return resolution.resolve(UNDETERMINED_EXIT_CODE)

    def _close(self, events) -> None:
        close = getattr(events, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            self._logger.debug("Error closing pod watch", {"error": str(e)})

    def observe(
        self,
        events: Iterable[Any],
        container: str,
        ctx: RunContext,
        resolution: Optional[_Resolution] = None,
    ) -> RunResult:
        """Consume watch objects in order and stop at the first decisive one."""
        resolution = resolution or _Resolution()
        for obj in events:
            try:
                snapshot = PodSnapshot.from_object(obj)
            except WatchDecodeError as e:
                self._logger.error(str(e), e.context)
                return resolution.resolve(UNDETERMINED_EXIT_CODE)

            exit_code = self._decide(snapshot, container)
            if exit_code is not None:
                return resolution.resolve(exit_code)
            if ctx.done:
                break

        if ctx.done:
            self._logger.warning("Stopped waiting for pod termination", {"cancelled": ctx.cancelled})
        else:
            self._logger.warning("Pod watch closed before termination was observed")
        return resolution.resolve(UNDETERMINED_EXIT_CODE)

    def _decide(self, snapshot: PodSnapshot, container: str) -> Optional[int]:
        """Exit code if the snapshot is decisive, else None."""
        status = snapshot.container(container)

        if snapshot.phase.terminal:
            self._logger.info("Pod terminated.", {"phase": snapshot.phase.value})
            if status is not None and status.terminated and status.exit_code is not None:
                return status.exit_code
            self._logger.warning("Conformance container has no terminated state", {"container": container})
            return UNDETERMINED_EXIT_CODE

        if snapshot.phase is PodPhase.RUNNING:
            for cs in snapshot.terminated_containers():
                self._logger.info(f"Container {cs.name} terminated.", {"exit_code": cs.exit_code})
            if status is not None and status.terminated:
                return status.exit_code if status.exit_code is not None else UNDETERMINED_EXIT_CODE

        return None
