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
Kubernetes provider for the conformance pod.

This service exposes the three cluster capabilities the run needs:
reading a pod, watching it, and following a container's log.
"""

import math
from typing import Any, Callable, Iterator, Optional

from kubernetes import client, config, watch
from kubernetes.client import V1Pod
from kubernetes.client.rest import ApiException

from podwatch.constants import LOG_CHUNK_SIZE, WATCH_WINDOW_SECONDS
from podwatch.exceptions import ConfigurationError
from podwatch.models.pod import PodSnapshot
from podwatch.services.log_stream import ContainerLogStream
from podwatch.utils.log import get_logger

HTTP_STATUS_GONE = 410


class KubernetesProvider:
    """Cluster access for a single pod: get, watch and log streaming."""

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        core_api: Optional[client.CoreV1Api] = None,
        watch_window: int = WATCH_WINDOW_SECONDS,
    ) -> None:
        """
        Initialize Kubernetes provider.

        Args:
            kubeconfig: Path to kubeconfig file (uses in-cluster or default config if not specified)
            core_api: Preconfigured CoreV1Api, skips config loading
            watch_window: Server-side timeout of a single watch request in seconds
        """
        self._logger = get_logger(f"{__name__}.KubernetesProvider")
        self.watch_window = watch_window

        if core_api is not None:
            self.core_api = core_api
            return

        try:
            if kubeconfig:
                config.load_kube_config(config_file=kubeconfig)
                self._logger.info("Loaded Kubernetes config", {"kubeconfig": kubeconfig})
            else:
                # Try in-cluster config first, then local kubeconfig
                try:
                    config.load_incluster_config()
                    self._logger.info("Using in-cluster Kubernetes config")
                except config.ConfigException:
                    config.load_kube_config()
                    self._logger.info("Using local Kubernetes config")
        except (config.ConfigException, OSError) as e:
            raise ConfigurationError(
                f"Failed to load Kubernetes configuration: {e}",
                {"kubeconfig": kubeconfig or ""}
            ) from e

        self.core_api = client.CoreV1Api()

    def get_pod(self, namespace: str, name: str) -> Optional[PodSnapshot]:
        """
        Read the current state of a pod.

        Returns:
            PodSnapshot, or None if the pod does not exist

        Raises:
            ApiException: For API errors other than 404
            WatchDecodeError: If the response is not a pod
        """
        try:
            pod = self.core_api.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return PodSnapshot.from_object(pod)

    def watch_pod(
        self,
        namespace: str,
        name: str,
        should_stop: Optional[Callable[[], bool]] = None,
        remaining: Optional[Callable[[], Optional[float]]] = None,
    ) -> Iterator[Any]:
        """
        Watch a single pod and yield the raw objects of its watch events.

        Each watch request is bounded by ``watch_window`` seconds; when it ends
        the watch is re-opened from the last seen resource version, until
        ``should_stop`` returns True. ``remaining`` reports the seconds left
        in the run (None when unbounded); no window outlasts it. Objects are
        not decoded here.

        Raises:
            ApiException: If the watch cannot be opened or reports an error
        """
        should_stop = should_stop or (lambda: False)
        resource_version = None

        while not should_stop():
            w = watch.Watch()
            kwargs = {
                "namespace": namespace,
                "field_selector": f"metadata.name={name}",
                "timeout_seconds": self._window(remaining),
            }
            if resource_version:
                kwargs["resource_version"] = resource_version

            self._logger.debug("Opening pod watch", {
                "pod": name,
                "namespace": namespace,
                "resource_version": resource_version or "",
            })
            try:
                for event in w.stream(self.core_api.list_namespaced_pod, **kwargs):
                    obj = event.get("object") if isinstance(event, dict) else event
                    if isinstance(obj, V1Pod) and obj.metadata is not None:
                        resource_version = obj.metadata.resource_version
                    yield obj
                    if should_stop():
                        return
            except ApiException as e:
                if e.status != HTTP_STATUS_GONE:
                    raise
                self._logger.debug("Watch resource version expired, restarting", {"pod": name})
                resource_version = None
            finally:
                w.stop()

    def _window(self, remaining: Optional[Callable[[], Optional[float]]]) -> int:
        left = remaining() if remaining is not None else None
        if left is None:
            return self.watch_window
        # the API takes whole seconds and treats 0 as no timeout
        return max(1, min(self.watch_window, math.ceil(left)))

    def open_log_stream(self, namespace: str, pod_name: str, container: str) -> ContainerLogStream:
        """
        Start following a container's log.

        Raises:
            ApiException: If the log request is rejected
        """
        response = self.core_api.read_namespaced_pod_log(
            name=pod_name,
            namespace=namespace,
            container=container,
            follow=True,
            _preload_content=False,
        )
        self._logger.debug("Following container log", {
            "pod": pod_name,
            "namespace": namespace,
            "container": container,
        })
        return ContainerLogStream(response, chunk_size=LOG_CHUNK_SIZE)
