#!/usr/bin/env python3
"""Main CLI entry point for stack lifecycle commands."""

import logging

import click

from .cloudformation import create, delete, wrap


@click.group()
@click.version_option(package_name="stack-lifecycle")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Create and delete CloudFormation stacks, waiting for them to settle.

    Progress is written to stdout; log messages go to stderr.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(create)
cli.add_command(delete)
cli.add_command(wrap)


if __name__ == "__main__":
    cli()
