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

import time
import unittest

from podwatch.exceptions import ReadinessError, StreamError, StreamInterruptedError
from podwatch.models.configuration import Configuration
from podwatch.models.pod import PodPhase
from podwatch.runtime.context import RunContext
from podwatch.runtime.coordinator import RunCoordinator
from podwatch.runtime.readiness import PollPolicy
from tests.fakes import CONTAINER, FakeLogStream, FakeProvider, alive, snapshot, terminated

FAST = PollPolicy(initial_interval=0.001, max_interval=0.01)


def _coordinator(provider, received, **overrides):
    values = {"namespace": "ns", "pod_name": "pod", "container": CONTAINER, "startup_timeout": 5}
    values.update(overrides)
    return RunCoordinator(
        provider,
        Configuration(**values),
        consumer=received.append,
        poll_policy=FAST,
        drain_timeout=2,
    )


class TestRunCoordinator(unittest.TestCase):
    def test_run_streams_logs_and_returns_exit_code(self):
        received = []
        provider = FakeProvider(
            pods=[snapshot(PodPhase.PENDING), snapshot(PodPhase.RUNNING, alive())],
            log_stream=FakeLogStream(["a", "b"]),
            watch_objects=[
                snapshot(PodPhase.RUNNING, alive()),
                snapshot(PodPhase.RUNNING, terminated(0)),
            ],
        )

        result = _coordinator(provider, received).run()

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(received, ["a", "b"])

    def test_stream_failure_does_not_change_exit_code(self):
        received = []
        provider = FakeProvider(
            pods=[snapshot(PodPhase.RUNNING)],
            log_stream=FakeLogStream(["x"], error=ConnectionResetError("reset")),
            watch_objects=[snapshot(PodPhase.FAILED, terminated(2))],
        )

        with self.assertLogs("podwatch.runtime.coordinator", level="WARNING"):
            result = _coordinator(provider, received).run()

        self.assertEqual(result.exit_code, 2)
        self.assertEqual(received, ["x"])

    def test_open_log_stream_is_closed_after_drain_window(self):
        stream = FakeLogStream(["a"], block=True)
        provider = FakeProvider(
            pods=[snapshot(PodPhase.RUNNING)],
            log_stream=stream,
            watch_objects=[snapshot(PodPhase.SUCCEEDED, terminated(0))],
        )
        coordinator = _coordinator(provider, [])
        coordinator.drain_timeout = 0.05

        result = coordinator.run()

        self.assertEqual(result.exit_code, 0)
        self.assertTrue(stream.closed.is_set())

    def test_pod_finished_before_running_reports_exit_code(self):
        received = []
        provider = FakeProvider(
            pods=[snapshot(PodPhase.PENDING), snapshot(PodPhase.FAILED, terminated(2))],
            log_stream=FakeLogStream(["FAIL: [sig-network] DNS"]),
            watch_objects=[snapshot(PodPhase.FAILED, terminated(2))],
        )

        result = _coordinator(provider, received).run()

        self.assertEqual(result.exit_code, 2)
        self.assertEqual(received, ["FAIL: [sig-network] DNS"])

    def test_interrupt_cancels_without_waiting_for_drain(self):
        stream = FakeLogStream(["a"], block=True)
        provider = FakeProvider(
            pods=[snapshot(PodPhase.RUNNING)],
            log_stream=stream,
            watch_error=KeyboardInterrupt(),
        )
        coordinator = _coordinator(provider, [])
        coordinator.drain_timeout = 3
        ctx = coordinator.new_context()

        started = time.monotonic()
        with self.assertRaises(KeyboardInterrupt):
            coordinator.run(ctx)

        self.assertLess(time.monotonic() - started, 1.0)
        self.assertTrue(ctx.cancelled)
        self.assertTrue(stream.closed.is_set())

    def test_lines_are_discarded_without_consumer(self):
        provider = FakeProvider(
            pods=[snapshot(PodPhase.RUNNING)],
            log_stream=FakeLogStream(["a"]),
            watch_objects=[snapshot(PodPhase.SUCCEEDED, terminated(0))],
        )
        configuration = Configuration(namespace="ns", pod_name="pod", container=CONTAINER)

        result = RunCoordinator(provider, configuration, poll_policy=FAST).run()

        self.assertEqual(result.exit_code, 0)

    def test_readiness_failure_propagates(self):
        provider = FakeProvider(pods=[snapshot(PodPhase.PENDING)])

        with self.assertRaises(ReadinessError):
            _coordinator(provider, [], startup_timeout=0.05).run()

    def test_overall_timeout_bounds_readiness(self):
        provider = FakeProvider(pods=[snapshot(PodPhase.PENDING)])
        coordinator = _coordinator(provider, [], startup_timeout=60, timeout=0.05)

        with self.assertRaises(ReadinessError):
            coordinator.run(coordinator.new_context())

    def test_print_running_logs(self):
        received = []
        provider = FakeProvider(pods=[snapshot(PodPhase.RUNNING)], log_stream=FakeLogStream(["one", "two"]))

        _coordinator(provider, received).print_running_logs(RunContext())

        self.assertEqual(received, ["one", "two"])

    def test_print_running_logs_returns_stream_error(self):
        provider = FakeProvider(pods=[snapshot(PodPhase.RUNNING)], log_error=RuntimeError("no such container"))

        with self.assertRaises(StreamError):
            _coordinator(provider, []).print_running_logs(RunContext())

    def test_print_running_logs_reports_deadline_mid_stream(self):
        received = []
        stream = FakeLogStream(["one"], block=True)
        provider = FakeProvider(pods=[snapshot(PodPhase.RUNNING)], log_stream=stream)

        with self.assertRaises(StreamInterruptedError) as cm:
            _coordinator(provider, received).print_running_logs(RunContext(timeout=0.3))

        self.assertIn("deadline exceeded", str(cm.exception))
        self.assertEqual(received, ["one"])
        self.assertTrue(stream.closed.wait(2))

    def test_await_exit_code(self):
        provider = FakeProvider(watch_objects=[
            snapshot(PodPhase.PENDING),
            snapshot(PodPhase.FAILED, terminated(2)),
        ])

        result = _coordinator(provider, []).await_exit_code(RunContext())

        self.assertEqual(result.exit_code, 2)

    def test_new_context_uses_overall_timeout(self):
        self.assertIsNone(_coordinator(FakeProvider(), []).new_context().deadline)
        self.assertIsNotNone(_coordinator(FakeProvider(), [], timeout=10).new_context().deadline)


if __name__ == "__main__":
    unittest.main()
