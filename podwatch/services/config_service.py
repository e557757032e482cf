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
Configuration service.

Builds the run configuration from defaults, an optional YAML base file,
the environment and explicitly supplied CLI values, then resolves the
kubeconfig path.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from podwatch.constants import KUBECONFIG_ENV, NAMESPACE_ENV
from podwatch.exceptions import ConfigurationError, HomeDirectoryError
from podwatch.models.configuration import Configuration
from podwatch.utils.log import get_logger

logger = get_logger(__name__)


def _home_dir() -> Path:
    try:
        return Path.home()
    except (RuntimeError, KeyError) as e:
        raise HomeDirectoryError(f"failed to determine home directory: {e}") from e


def resolve_kubeconfig(kubeconfig: str) -> str:
    """
    Resolve the kubeconfig path.

    An empty path falls back to $KUBECONFIG, then to ~/.kube/config. A
    leading '~' is expanded; the home directory is only looked up when needed.

    Raises:
        HomeDirectoryError: If the home directory is needed but unknown
    """
    if not kubeconfig:
        kubeconfig = os.getenv(KUBECONFIG_ENV, "")
        if not kubeconfig:
            return str(_home_dir() / ".kube" / "config")

    if kubeconfig.startswith("~"):
        rest = kubeconfig[1:].lstrip("/\\")
        return str(_home_dir() / rest)

    return kubeconfig


class ConfigService:
    """Service for loading and completing the run configuration."""

    def __init__(self, env_file: Optional[str] = None) -> None:
        self.env_file = env_file

    def load_file(self, config_file: Path) -> Dict[str, Any]:
        """
        Load a YAML configuration file.

        Keys may be written with dashes (``startup-timeout``) or underscores.

        Raises:
            ConfigurationError: If the file is missing or not a YAML mapping
        """
        if not config_file.exists():
            raise ConfigurationError(
                f"Configuration file not found: {config_file}",
                {"config_file": str(config_file)}
            )

        logger.debug("Loading configuration", {"config_file": str(config_file)})
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e

        if not isinstance(data, Mapping):
            raise ConfigurationError(
                f"Configuration file must contain a mapping, got {type(data).__name__}",
                {"config_file": str(config_file)}
            )

        known = set(Configuration.model_fields)
        values = {}
        for key, value in data.items():
            field = str(key).replace("-", "_")
            if field not in known:
                logger.warning("Ignoring unknown configuration key", {"key": key})
                continue
            values[field] = value
        return values

    def complete(
        self,
        cli_values: Optional[Mapping[str, Any]] = None,
        config_file: Optional[str] = None,
    ) -> Configuration:
        """
        Merge defaults, file, environment and CLI values into a Configuration.

        Args:
            cli_values: Values given on the command line; None means not supplied
            config_file: Optional base configuration file

        Returns:
            Configuration: Validated configuration with a resolved kubeconfig

        Raises:
            ConfigurationError: If loading or validation fails
        """
        values: Dict[str, Any] = {}
        if config_file:
            values.update(self.load_file(Path(config_file)))

        load_dotenv(self.env_file)
        env_namespace = os.getenv(NAMESPACE_ENV)
        if env_namespace and not values.get("namespace"):
            values["namespace"] = env_namespace

        # explicitly supplied CLI values win over the file
        for key, value in (cli_values or {}).items():
            if value is not None:
                values[key] = value

        values["kubeconfig"] = resolve_kubeconfig(values.get("kubeconfig") or "")

        try:
            return Configuration(**values)
        except ValidationError as e:
            raise ConfigurationError(f"invalid configuration: {e}") from e
