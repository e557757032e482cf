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

"""Wait for the conformance pod to reach the Running phase."""

from dataclasses import dataclass
from typing import Optional

from kubernetes.client.rest import ApiException

from podwatch.constants import POLL_INITIAL_INTERVAL, POLL_MAX_INTERVAL, POLL_MULTIPLIER
from podwatch.exceptions import PodTerminatedError, ReadinessError, ReadinessTimeoutError, WatchDecodeError
from podwatch.models.pod import PodPhase, PodSnapshot
from podwatch.runtime.context import RunContext
from podwatch.utils.log import get_logger


@dataclass(frozen=True)
class PollPolicy:
    initial_interval: float = POLL_INITIAL_INTERVAL
    multiplier: float = POLL_MULTIPLIER
    max_interval: float = POLL_MAX_INTERVAL
    max_attempts: Optional[int] = None

    def intervals(self):
        interval = self.initial_interval
        while True:
            yield interval
            interval = min(interval * self.multiplier, self.max_interval)


def _transient(error: ApiException) -> bool:
    # status 0 means the request never got a response
    return not error.status or error.status >= 500


class ReadinessPoller:
    """Polls a pod until it is Running, with backoff and a required deadline."""

    def __init__(self, provider, policy: PollPolicy = PollPolicy()):
        self.provider = provider
        self.policy = policy
        self._logger = get_logger(f"{__name__}.ReadinessPoller")

    def await_running(self, namespace: str, pod_name: str, ctx: RunContext) -> PodSnapshot:
        """
        Block until the pod reports the Running phase.

        Args:
            namespace: Namespace of the pod
            pod_name: Name of the pod
            ctx: Run context; must carry a deadline

        Returns:
            The first snapshot showing the pod as Running

        Raises:
            ReadinessTimeoutError: If the deadline passes first
            PodTerminatedError: If the pod is already Succeeded or Failed
            ReadinessError: On lookup/decode failure, cancellation or exhausted attempts
        """
        if ctx.deadline is None:
            raise ValueError("await_running requires a context with a deadline")

        context = {"pod": pod_name, "namespace": namespace}
        self._logger.info("Waiting for pod to be running", context)

        attempts = 0
        last_phase = None
        for interval in self.policy.intervals():
            if ctx.cancelled:
                raise ReadinessError("Cancelled while waiting for pod to start", context)
            if ctx.expired:
                raise ReadinessTimeoutError(
                    f"Pod {pod_name} did not start within the startup timeout",
                    dict(context, phase=last_phase.value if last_phase else "NotFound")
                )

            attempts += 1
            snapshot = self._lookup(namespace, pod_name, context)
            if snapshot is not None:
                if snapshot.phase != last_phase:
                    self._logger.debug("Pod phase observed", dict(context, phase=snapshot.phase.value))
                last_phase = snapshot.phase
                if snapshot.phase is PodPhase.RUNNING:
                    self._logger.info("Pod is running", context)
                    return snapshot
                if snapshot.phase.terminal:
                    raise PodTerminatedError(
                        f"Pod {pod_name} finished before it was observed running",
                        snapshot,
                        dict(context, phase=snapshot.phase.value)
                    )

            if self.policy.max_attempts is not None and attempts >= self.policy.max_attempts:
                raise ReadinessError(
                    f"Pod {pod_name} not running after {attempts} attempts",
                    dict(context, attempts=attempts)
                )
            ctx.sleep(interval)

        raise ReadinessError("Polling stopped unexpectedly", context)

    def _lookup(self, namespace: str, pod_name: str, context: dict) -> Optional[PodSnapshot]:
        try:
            return self.provider.get_pod(namespace, pod_name)
        except WatchDecodeError as e:
            raise ReadinessError(f"Failed to decode pod {pod_name}: {e}", context) from e
        except ApiException as e:
            if _transient(e):
                self._logger.warning("Transient error looking up pod, retrying", dict(context, status=e.status))
                return None
            raise ReadinessError(f"Failed to look up pod {pod_name}: {e.reason}", dict(context, status=e.status)) from e
