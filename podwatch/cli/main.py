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
Main CLI entry point for podwatch.

This module defines the command-line interface using Typer: follow a
conformance pod, print its log and report its exit code.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from podwatch.exceptions import PodwatchError
from podwatch.models.configuration import Configuration
from podwatch.runtime.coordinator import RunCoordinator
from podwatch.services.config_service import ConfigService
from podwatch.services.k8s_provider import KubernetesProvider
from podwatch.services.output_sink import ConsoleSink
from podwatch.utils.log import configure_logging

# Status and errors go to stderr; stdout carries the pod's log
console = Console(stderr=True)

app = typer.Typer(
    name="podwatch",
    help="podwatch - follow a conformance pod, stream its logs and report its exit code",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

CONFIG_OPTION = typer.Option(None, "--config", help="Path to an optional base configuration file")
KUBECONFIG_OPTION = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig file")
NAMESPACE_OPTION = typer.Option(None, "--namespace", "-n", help="Namespace of the conformance pod")
POD_NAME_OPTION = typer.Option(None, "--pod-name", help="Name of the conformance pod")
CONTAINER_OPTION = typer.Option(None, "--container", help="Name of the conformance container")
OUTPUT_DIR_OPTION = typer.Option(None, "--output-dir", help="Directory for logs")
STARTUP_TIMEOUT_OPTION = typer.Option(
    None, "--startup-timeout", help="Max time to wait for the pod to start (e.g. 90s, 5m)"
)
TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Max time for the whole run, 0 disables")
VERBOSE_OPTION = typer.Option(None, "--verbose", help="Enable detailed logging")


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        from podwatch import __version__
        console.print(f"podwatch version: [bold green]{__version__}[/bold green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """podwatch - conformance pod log and exit status follower."""


def _load_configuration(config_file: Optional[str], **cli_values) -> Configuration:
    configuration = ConfigService().complete(cli_values, config_file=config_file)
    log_file = None
    if configuration.output_dir:
        log_file = str(Path(configuration.output_dir) / "podwatch.log")
    configure_logging(verbose=configuration.verbose, log_file=log_file)
    return configuration


def _create_provider(configuration: Configuration) -> KubernetesProvider:
    kubeconfig = configuration.kubeconfig
    # a missing default kubeconfig leaves room for in-cluster config
    if kubeconfig and not Path(kubeconfig).exists():
        kubeconfig = None
    return KubernetesProvider(kubeconfig=kubeconfig)


def _create_sink(configuration: Configuration) -> ConsoleSink:
    log_file = None
    if configuration.output_dir:
        log_file = str(Path(configuration.output_dir) / f"{configuration.pod_name}.log")
    return ConsoleSink(log_file=log_file)


def _process_status(exit_code: int) -> int:
    return exit_code & 0xFF


def _fail(error: Exception, verbose: bool) -> None:
    console.print(f"❌ Error: [red]{error}[/red]")
    if verbose:
        import traceback
        console.print(traceback.format_exc())
    raise typer.Exit(1)


@app.command()
def run(
    config: Optional[str] = CONFIG_OPTION,
    kubeconfig: Optional[str] = KUBECONFIG_OPTION,
    namespace: Optional[str] = NAMESPACE_OPTION,
    pod_name: Optional[str] = POD_NAME_OPTION,
    container: Optional[str] = CONTAINER_OPTION,
    output_dir: Optional[str] = OUTPUT_DIR_OPTION,
    startup_timeout: Optional[str] = STARTUP_TIMEOUT_OPTION,
    timeout: Optional[str] = TIMEOUT_OPTION,
    verbose: Optional[bool] = VERBOSE_OPTION,
) -> None:
    """
    Wait for the conformance pod, stream its logs and exit with its exit code.
    """
    try:
        configuration = _load_configuration(
            config,
            kubeconfig=kubeconfig,
            namespace=namespace,
            pod_name=pod_name,
            container=container,
            output_dir=output_dir,
            startup_timeout=startup_timeout,
            timeout=timeout,
            verbose=verbose or None,
        )
        provider = _create_provider(configuration)
    except PodwatchError as e:
        _fail(e, bool(verbose))

    with _create_sink(configuration) as sink:
        coordinator = RunCoordinator(provider, configuration, consumer=sink)
        ctx = coordinator.new_context()
        try:
            result = coordinator.run(ctx)
        except KeyboardInterrupt:
            ctx.cancel()
            console.print("⚠️  Interrupted")
            raise typer.Exit(130)
        except PodwatchError as e:
            _fail(e, configuration.verbose)

    if result.determined:
        style = "green" if result.succeeded else "red"
        console.print(f"Conformance container exited with code [bold {style}]{result.exit_code}[/bold {style}]")
    else:
        console.print("⚠️  Exit code of the conformance container could not be determined")
    raise typer.Exit(_process_status(result.exit_code))


@app.command()
def logs(
    config: Optional[str] = CONFIG_OPTION,
    kubeconfig: Optional[str] = KUBECONFIG_OPTION,
    namespace: Optional[str] = NAMESPACE_OPTION,
    pod_name: Optional[str] = POD_NAME_OPTION,
    container: Optional[str] = CONTAINER_OPTION,
    output_dir: Optional[str] = OUTPUT_DIR_OPTION,
    startup_timeout: Optional[str] = STARTUP_TIMEOUT_OPTION,
    timeout: Optional[str] = TIMEOUT_OPTION,
    verbose: Optional[bool] = VERBOSE_OPTION,
) -> None:
    """
    Wait for the conformance pod and print its logs until the stream ends.
    """
    try:
        configuration = _load_configuration(
            config,
            kubeconfig=kubeconfig,
            namespace=namespace,
            pod_name=pod_name,
            container=container,
            output_dir=output_dir,
            startup_timeout=startup_timeout,
            timeout=timeout,
            verbose=verbose or None,
        )
        provider = _create_provider(configuration)
        with _create_sink(configuration) as sink:
            coordinator = RunCoordinator(provider, configuration, consumer=sink)
            coordinator.print_running_logs(coordinator.new_context())
    except KeyboardInterrupt:
        console.print("⚠️  Interrupted")
        raise typer.Exit(130)
    except PodwatchError as e:
        _fail(e, bool(verbose))


@app.command("exit-code")
def exit_code(
    config: Optional[str] = CONFIG_OPTION,
    kubeconfig: Optional[str] = KUBECONFIG_OPTION,
    namespace: Optional[str] = NAMESPACE_OPTION,
    pod_name: Optional[str] = POD_NAME_OPTION,
    container: Optional[str] = CONTAINER_OPTION,
    timeout: Optional[str] = TIMEOUT_OPTION,
    verbose: Optional[bool] = VERBOSE_OPTION,
) -> None:
    """
    Wait for the conformance container to stop, print its exit code and exit with it.
    """
    try:
        configuration = _load_configuration(
            config,
            kubeconfig=kubeconfig,
            namespace=namespace,
            pod_name=pod_name,
            container=container,
            timeout=timeout,
            verbose=verbose or None,
        )
        provider = _create_provider(configuration)
    except PodwatchError as e:
        _fail(e, bool(verbose))

    coordinator = RunCoordinator(provider, configuration)
    try:
        result = coordinator.await_exit_code(coordinator.new_context())
    except KeyboardInterrupt:
        console.print("⚠️  Interrupted")
        raise typer.Exit(130)

    typer.echo(result.exit_code)
    raise typer.Exit(_process_status(result.exit_code))


if __name__ == "__main__":
    app()
