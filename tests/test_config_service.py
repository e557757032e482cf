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

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from pydantic import ValidationError

from podwatch.exceptions import ConfigurationError, HomeDirectoryError
from podwatch.models.configuration import Configuration, parse_duration
from podwatch.services.config_service import ConfigService, resolve_kubeconfig


class TestParseDuration(unittest.TestCase):
    def test_numbers_are_seconds(self):
        self.assertEqual(parse_duration(90), 90.0)
        self.assertEqual(parse_duration("2.5"), 2.5)

    def test_go_style_durations(self):
        self.assertEqual(parse_duration("90s"), 90.0)
        self.assertEqual(parse_duration("5m"), 300.0)
        self.assertEqual(parse_duration("1h30m"), 5400.0)
        self.assertEqual(parse_duration("250ms"), 0.25)

    def test_invalid_durations(self):
        for value in ("", "5x", "m5", "5m junk", True):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_duration(value)


class TestConfiguration(unittest.TestCase):
    def test_defaults(self):
        configuration = Configuration()

        self.assertEqual(configuration.namespace, "conformance")
        self.assertEqual(configuration.pod_name, "e2e-conformance-test")
        self.assertEqual(configuration.container, "conformance-container")
        self.assertEqual(configuration.startup_timeout, 300)
        self.assertEqual(configuration.timeout, 0)

    def test_duration_strings(self):
        configuration = Configuration(startup_timeout="2m", timeout="1h")
        self.assertEqual(configuration.startup_timeout, 120.0)
        self.assertEqual(configuration.timeout, 3600.0)

    def test_rejects_invalid_values(self):
        for values in ({"namespace": " "}, {"startup_timeout": 0}, {"timeout": -1}, {"startup_timeout": "soon"}):
            with self.subTest(values=values):
                with self.assertRaises(ValidationError):
                    Configuration(**values)


class TestResolveKubeconfig(unittest.TestCase):
    def test_explicit_path_is_kept(self):
        self.assertEqual(resolve_kubeconfig("/etc/kube/admin.conf"), "/etc/kube/admin.conf")

    @patch.dict(os.environ, {"KUBECONFIG": "/tmp/from-env"})
    def test_falls_back_to_env(self):
        self.assertEqual(resolve_kubeconfig(""), "/tmp/from-env")

    @patch("podwatch.services.config_service.Path.home", return_value=Path("/home/tester"))
    def test_falls_back_to_home(self, _home):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(resolve_kubeconfig(""), str(Path("/home/tester/.kube/config")))

    @patch("podwatch.services.config_service.Path.home", return_value=Path("/home/tester"))
    def test_expands_tilde(self, _home):
        self.assertEqual(resolve_kubeconfig("~/clusters/dev"), str(Path("/home/tester/clusters/dev")))

    @patch("podwatch.services.config_service.Path.home", side_effect=RuntimeError("no home"))
    def test_home_directory_error(self, _home):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(HomeDirectoryError):
                resolve_kubeconfig("")
        with self.assertRaises(HomeDirectoryError):
            resolve_kubeconfig("~/config")

    @patch("podwatch.services.config_service.Path.home", side_effect=RuntimeError("no home"))
    def test_home_not_needed_for_absolute_path(self, _home):
        self.assertEqual(resolve_kubeconfig("/abs/config"), "/abs/config")


@patch("podwatch.services.config_service.load_dotenv")
class TestConfigService(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        env = patch.dict(os.environ, {"KUBECONFIG": "/tmp/kubeconfig"})
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("PODWATCH_NAMESPACE", None)

    def _write(self, content: str) -> str:
        path = Path(self.tmp.name) / "config.yaml"
        path.write_text(content, encoding="utf-8")
        return str(path)

    def test_defaults_without_file(self, _dotenv):
        configuration = ConfigService().complete({})

        self.assertEqual(configuration.namespace, "conformance")
        self.assertEqual(configuration.kubeconfig, "/tmp/kubeconfig")

    def test_file_values_with_dashed_keys(self, _dotenv):
        config_file = self._write(
            "namespace: sonobuoy\n"
            "startup-timeout: 10m\n"
            "output-dir: /tmp/results\n"
            "parallel: 4\n"
        )

        configuration = ConfigService().complete({}, config_file=config_file)

        self.assertEqual(configuration.namespace, "sonobuoy")
        self.assertEqual(configuration.startup_timeout, 600.0)
        self.assertEqual(configuration.output_dir, "/tmp/results")

    def test_cli_values_override_file(self, _dotenv):
        config_file = self._write("namespace: from-file\npod_name: from-file\n")

        configuration = ConfigService().complete(
            {"namespace": "from-cli", "pod_name": None, "startup_timeout": "30s"},
            config_file=config_file,
        )

        self.assertEqual(configuration.namespace, "from-cli")
        self.assertEqual(configuration.pod_name, "from-file")
        self.assertEqual(configuration.startup_timeout, 30.0)

    def test_env_namespace_below_file(self, _dotenv):
        os.environ["PODWATCH_NAMESPACE"] = "from-env"

        self.assertEqual(ConfigService().complete({}).namespace, "from-env")

        config_file = self._write("namespace: from-file\n")
        self.assertEqual(ConfigService().complete({}, config_file=config_file).namespace, "from-file")

    def test_missing_file(self, _dotenv):
        with self.assertRaises(ConfigurationError):
            ConfigService().complete({}, config_file=str(Path(self.tmp.name) / "absent.yaml"))

    def test_invalid_yaml(self, _dotenv):
        config_file = self._write("namespace: [unterminated\n")
        with self.assertRaises(ConfigurationError):
            ConfigService().complete({}, config_file=config_file)

    def test_non_mapping_file(self, _dotenv):
        config_file = self._write("- just\n- a list\n")
        with self.assertRaises(ConfigurationError):
            ConfigService().complete({}, config_file=config_file)

    def test_invalid_values_are_wrapped(self, _dotenv):
        with self.assertRaises(ConfigurationError) as cm:
            ConfigService().complete({"startup_timeout": "-5"})
        self.assertIn("invalid configuration", str(cm.exception))


if __name__ == "__main__":
    unittest.main()
