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
Pod state as the core sees it.

Snapshots are built from whatever the cluster client delivers (typed
``V1Pod`` objects, raw ``Pod`` dictionaries from a watch) and are the only
pod representation the readiness, termination and coordination logic read.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from kubernetes.client import V1Pod

from podwatch.exceptions import WatchDecodeError


class PodPhase(Enum):
    """Pod lifecycle phase, as reported by the API server"""
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PodPhase":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def terminal(self) -> bool:
        return self in (PodPhase.SUCCEEDED, PodPhase.FAILED)


@dataclass(frozen=True)
class ContainerStatus:
    name: str
    terminated: bool = False
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class PodSnapshot:
    phase: PodPhase
    container_statuses: Tuple[ContainerStatus, ...] = field(default_factory=tuple)
    resource_version: Optional[str] = None

    def container(self, name: str) -> Optional[ContainerStatus]:
        """Return the status of the named container, if reported."""
        for status in self.container_statuses:
            if status.name == name:
                return status
        return None

    def terminated_containers(self) -> Tuple[ContainerStatus, ...]:
        return tuple(s for s in self.container_statuses if s.terminated)

    @classmethod
    def from_object(cls, obj: Any) -> "PodSnapshot":
        """
        Decode a watch/list object into a snapshot.

        Args:
            obj: a PodSnapshot, a kubernetes ``V1Pod`` or a raw ``Pod`` mapping

        Returns:
            PodSnapshot

        Raises:
            WatchDecodeError: If the object is not a recognizable pod
        """
        if isinstance(obj, PodSnapshot):
            return obj
        if isinstance(obj, V1Pod):
            return cls._from_v1_pod(obj)
        if isinstance(obj, Mapping) and obj.get("kind") == "Pod":
            return cls._from_mapping(obj)
        raise WatchDecodeError(
            f"Received unexpected {type(obj).__name__} object from watch",
            {"type": type(obj).__name__}
        )

    @classmethod
    def _from_v1_pod(cls, pod: V1Pod) -> "PodSnapshot":
        status = pod.status
        statuses = []
        for cs in (status.container_statuses if status else None) or []:
            terminated = cs.state.terminated if cs.state else None
            statuses.append(ContainerStatus(
                name=cs.name,
                terminated=terminated is not None,
                exit_code=terminated.exit_code if terminated is not None else None,
            ))
        return cls(
            phase=PodPhase.parse(status.phase if status else None),
            container_statuses=tuple(statuses),
            resource_version=pod.metadata.resource_version if pod.metadata else None,
        )

    @classmethod
    def _from_mapping(cls, pod: Mapping[str, Any]) -> "PodSnapshot":
        status = pod.get("status") or {}
        statuses = []
        for cs in status.get("containerStatuses") or []:
            terminated = (cs.get("state") or {}).get("terminated")
            statuses.append(ContainerStatus(
                name=cs.get("name", ""),
                terminated=terminated is not None,
                exit_code=terminated.get("exitCode") if terminated is not None else None,
            ))
        return cls(
            phase=PodPhase.parse(status.get("phase")),
            container_statuses=tuple(statuses),
            resource_version=(pod.get("metadata") or {}).get("resourceVersion"),
        )
