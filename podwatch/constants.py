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

# Kubernetes Constants
DEFAULT_NAMESPACE = "conformance"
CONFORMANCE_POD_NAME = "e2e-conformance-test"
CONFORMANCE_CONTAINER = "conformance-container"
NAMESPACE_ENV = "PODWATCH_NAMESPACE"
KUBECONFIG_ENV = "KUBECONFIG"

# Readiness polling
DEFAULT_STARTUP_TIMEOUT = 300  # seconds
POLL_INITIAL_INTERVAL = 0.5  # seconds
POLL_MAX_INTERVAL = 5.0  # seconds
POLL_MULTIPLIER = 2.0

# Watch / log streaming
WATCH_WINDOW_SECONDS = 30
LOG_CHUNK_SIZE = 8192
MAX_PENDING_LINES = 1024
QUEUE_POLL_INTERVAL = 0.2  # seconds
LOG_DRAIN_TIMEOUT = 10.0  # seconds

UNDETERMINED_EXIT_CODE = -1
