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
Resolved run configuration.

Durations follow the Go notation used by the conformance tooling config
files ("90s", "5m", "1h30m", "250ms"); bare numbers are seconds.
"""

import re
from typing import Union

from pydantic import BaseModel, Field, field_validator

from podwatch.constants import (
    CONFORMANCE_CONTAINER,
    CONFORMANCE_POD_NAME,
    DEFAULT_NAMESPACE,
    DEFAULT_STARTUP_TIMEOUT,
)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Union[str, int, float]) -> float:
    """Convert a duration to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("Empty duration")
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


class Configuration(BaseModel):
    """Pydantic model for the run configuration."""

    kubeconfig: str = Field("", description="Path to the kubeconfig file")
    namespace: str = Field(DEFAULT_NAMESPACE, description="Namespace of the conformance pod")
    pod_name: str = Field(CONFORMANCE_POD_NAME, description="Name of the conformance pod")
    container: str = Field(CONFORMANCE_CONTAINER, description="Name of the conformance container")
    output_dir: str = Field("", description="Directory for logs")
    startup_timeout: float = Field(DEFAULT_STARTUP_TIMEOUT, description="Max seconds to wait for the pod to start")
    timeout: float = Field(0, description="Max seconds for the whole run, 0 disables")
    verbose: bool = Field(False, description="Enable debug logging")

    @field_validator('startup_timeout', 'timeout', mode='before')
    @classmethod
    def validate_duration(cls, v):
        return parse_duration(v)

    @field_validator('namespace', 'pod_name', 'container')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator('startup_timeout')
    @classmethod
    def validate_startup_timeout(cls, v):
        if v <= 0:
            raise ValueError(f"startup timeout must be positive, got {v}")
        return v

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v):
        if v < 0:
            raise ValueError(f"timeout must not be negative, got {v}")
        return v
