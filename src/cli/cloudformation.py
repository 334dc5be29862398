#!/usr/bin/env python3
"""
CloudFormation stack lifecycle CLI commands.
"""

import json
import logging
import os
import signal
import subprocess
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import click

from cloudformation import (
    CloudFormationProvider,
    LifecycleResult,
    Outcome,
    StackLifecycleManager,
)
from config import StackConfig, apply_environment, load_stack_config

logger = logging.getLogger(__name__)

EXIT_CODES = {
    Outcome.SUCCEEDED: 0,
    Outcome.FAILED: 1,
    Outcome.REJECTED: 1,
    Outcome.TIMED_OUT: 2,
    Outcome.CANCELLED: 130,
}


@contextmanager
def cancel_on_signals() -> Iterator[threading.Event]:
    """Yield an event that SIGINT and SIGTERM set instead of killing the process."""
    cancel = threading.Event()

    def handle_signal(signum: int, frame: object) -> None:
        logger.info("Received signal %d, stopping wait...", signum)
        cancel.set()

    previous = {
        signum: signal.signal(signum, handle_signal)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield cancel
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def parse_params(params: Tuple[str, ...]) -> dict:
    """Parse KEY=VALUE pairs, keeping their order."""
    result = {}
    for param in params:
        key, sep, value = param.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got {param!r}", param_hint="--param")
        result[key] = value
    return result


def resolve_config(
    config_file: Optional[str],
    stack_name: Optional[str],
    template_file: Optional[str] = None,
    params: Tuple[str, ...] = (),
    region: Optional[str] = None,
    profile: Optional[str] = None,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
) -> StackConfig:
    """Merge a config file (if any) with command-line overrides."""
    if config_file:
        config = load_stack_config(config_file)
    elif stack_name:
        config = apply_environment(StackConfig(stack_name=stack_name))
    else:
        raise click.UsageError("Either --config or --stack-name is required")

    if stack_name:
        config.stack_name = stack_name
    if template_file:
        config.template_file = os.path.abspath(template_file)
    if params:
        config.parameters.update(parse_params(params))
    if region:
        config.region = region
    if profile:
        config.profile = profile
    if timeout is not None:
        config.timeout = timeout
    if interval is not None:
        config.poll_interval = interval
    return config


def build_manager(config: StackConfig) -> StackLifecycleManager:
    provider = CloudFormationProvider(
        region=config.region,
        profile=config.profile,
        capabilities=config.capabilities,
        tags=config.tags,
    )
    return StackLifecycleManager(provider, progress=sys.stdout)


def run_create(config: StackConfig, cancel: threading.Event) -> LifecycleResult:
    manager = build_manager(config)
    return manager.create(
        config.stack_name, config.load_template(), config.wait_config(), cancel
    )


def run_delete(config: StackConfig, cancel: threading.Event) -> LifecycleResult:
    manager = build_manager(config)
    return manager.delete(config.stack_name, config.wait_config(), cancel)


def stack_options(func):
    """Options shared by every command."""
    func = click.option("--interval", type=float, help="Seconds between status checks")(func)
    func = click.option("--timeout", type=float, help="Seconds to wait before giving up")(func)
    func = click.option("--profile", help="AWS profile to use")(func)
    func = click.option("--region", help="AWS region")(func)
    func = click.option("--stack-name", "-s", help="CloudFormation stack name")(func)
    func = click.option(
        "--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False),
        help="Stack configuration YAML file",
    )(func)
    return func


@click.group()
def main() -> None:
    """CloudFormation stack lifecycle commands."""
    pass


@main.command()
@stack_options
@click.option(
    "--template-file", "-t", type=click.Path(exists=True, dir_okay=False),
    help="Template file (overrides the config file)",
)
@click.option("--param", "-p", "params", multiple=True, help="Template parameter KEY=VALUE")
@click.option("--json", "output_json", is_flag=True, help="Print outputs as JSON")
def create(
    config_file, stack_name, region, profile, timeout, interval, template_file, params, output_json
) -> None:
    """Create a stack and wait for it to finish."""
    try:
        config = resolve_config(
            config_file, stack_name, template_file, params, region, profile, timeout, interval
        )
        with cancel_on_signals() as cancel:
            result = run_create(config, cancel)
    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if result.success and result.outputs:
        if output_json:
            click.echo(json.dumps(result.outputs, indent=2))
        else:
            click.echo("\nOutputs:")
            for key, value in result.outputs.items():
                click.echo(f"  {key}: {value}")

    sys.exit(EXIT_CODES[result.outcome])


@main.command()
@stack_options
def delete(config_file, stack_name, region, profile, timeout, interval) -> None:
    """Delete a stack and wait until it is gone."""
    try:
        config = resolve_config(
            config_file, stack_name, region=region, profile=profile,
            timeout=timeout, interval=interval,
        )
        with cancel_on_signals() as cancel:
            result = run_delete(config, cancel)
    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    sys.exit(EXIT_CODES[result.outcome])


def output_environment(outputs: dict, prefix: str) -> dict:
    """Map stack outputs to environment variable names."""
    return {f"{prefix}{key}".upper(): value for key, value in outputs.items()}


@main.command(context_settings={"ignore_unknown_options": True})
@stack_options
@click.option(
    "--template-file", "-t", type=click.Path(exists=True, dir_okay=False),
    help="Template file (overrides the config file)",
)
@click.option("--param", "-p", "params", multiple=True, help="Template parameter KEY=VALUE")
@click.option("--env-prefix", default="STACK_", show_default=True, help="Prefix for output variables")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def wrap(
    config_file, stack_name, region, profile, timeout, interval, template_file, params,
    env_prefix, command,
) -> None:
    """
    Run COMMAND with a stack that exists only for its duration.

    The stack outputs are exported to COMMAND as environment variables.
    The stack is deleted afterwards, whether or not COMMAND succeeds.
    """
    try:
        config = resolve_config(
            config_file, stack_name, template_file, params, region, profile, timeout, interval
        )
        with cancel_on_signals() as cancel:
            created = run_create(config, cancel)
            if not created.success:
                sys.exit(1)

            env = os.environ.copy()
            env.update(output_environment(created.outputs or {}, env_prefix))

            click.echo(f"▶️  Running: {' '.join(command)}")
            try:
                returncode = subprocess.run(list(command), env=env, check=False).returncode
            finally:
                # A signal during the command must not stop the teardown wait
                cancel.clear()
                deleted = run_delete(config, cancel)

            if returncode != 0:
                click.echo(f"❌ Command failed with code {returncode}", err=True)
                sys.exit(returncode)
            sys.exit(EXIT_CODES[deleted.outcome])
    except click.ClickException:
        raise
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
