"""
Tests for the stack lifecycle command line.
"""

import json
import os
import signal
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from cli.__main__ import cli
from cli.cloudformation import cancel_on_signals, output_environment, parse_params
from cloudformation.exceptions import RequestRejected
from cloudformation.models import StackSnapshot, StackStatus


def snapshot(status: str, outputs=()) -> StackSnapshot:
    return StackSnapshot(
        name="test-stack",
        status=StackStatus.parse(status),
        raw_status=status,
        outputs=tuple(outputs),
    )


@pytest.fixture
def provider():
    """Patch the CloudFormation provider used by the CLI."""
    with patch("cli.cloudformation.CloudFormationProvider") as provider_cls:
        instance = MagicMock()
        instance.describe_stack_events.return_value = []
        instance.list_stacks.return_value = []
        provider_cls.return_value = instance
        yield instance


@pytest.fixture
def template_file(tmp_path: Path) -> Path:
    path = tmp_path / "template.json"
    path.write_text('{"Resources": {}}')
    return path


class TestCreateCommand:
    """Test the create command."""

    def test_create_prints_outputs_as_json(self, provider, template_file: Path) -> None:
        """Test a successful create exits 0 and prints outputs."""
        provider.describe_stack.return_value = snapshot(
            "CREATE_COMPLETE", [("Url", "http://x")]
        )

        result = CliRunner().invoke(
            cli,
            [
                "create", "--stack-name", "test-stack",
                "--template-file", str(template_file),
                "--param", "Env=dev", "--param", "Size=2",
                "--interval", "0.01", "--json",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Successfully created stack: test-stack" in result.output
        assert json.loads(result.output[result.output.index("{"):]) == {"Url": "http://x"}
        name, template = provider.create_stack.call_args[0]
        assert name == "test-stack"
        assert template.parameters == {"Env": "dev", "Size": "2"}

    def test_create_from_config_file(self, provider, tmp_path: Path, template_file: Path) -> None:
        """Test a config file supplies the stack settings."""
        config_path = tmp_path / "stack.yaml"
        config_path.write_text(
            yaml.dump(
                {
                    "stack_name": "from-config",
                    "template_file": template_file.name,
                    "parameters": {"Env": "prod"},
                    "poll_interval": 0.01,
                }
            )
        )
        provider.describe_stack.return_value = snapshot("CREATE_COMPLETE")

        result = CliRunner().invoke(cli, ["create", "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        name, template = provider.create_stack.call_args[0]
        assert name == "from-config"
        assert template.parameters == {"Env": "prod"}

    def test_create_rejected_exits_1(self, provider, template_file: Path) -> None:
        """Test a rejected create exits 1 with the reason shown."""
        provider.create_stack.side_effect = RequestRejected("test-stack", "Template invalid")

        result = CliRunner().invoke(
            cli, ["create", "-s", "test-stack", "-t", str(template_file)]
        )

        assert result.exit_code == 1
        assert "Template invalid" in result.output
        provider.describe_stack.assert_not_called()

    def test_create_timeout_exits_2(self, provider, template_file: Path) -> None:
        """Test a timed out create exits 2."""
        provider.describe_stack.return_value = snapshot("CREATE_IN_PROGRESS")

        result = CliRunner().invoke(
            cli, ["create", "-s", "test-stack", "-t", str(template_file), "--timeout", "0"]
        )

        assert result.exit_code == 2
        assert "may still exist" in result.output

    def test_create_interrupted_by_signal_exits_130(self, provider, template_file: Path) -> None:
        """Test SIGTERM during the wait cancels it and warns about the stack."""

        def describe_and_terminate(stack_name: str) -> StackSnapshot:
            os.kill(os.getpid(), signal.SIGTERM)
            return snapshot("CREATE_IN_PROGRESS")

        provider.describe_stack.side_effect = describe_and_terminate

        result = CliRunner().invoke(
            cli, ["create", "-s", "test-stack", "-t", str(template_file), "--interval", "30"]
        )

        assert result.exit_code == 130
        assert "Stack test-stack creation was interrupted" in result.output
        assert provider.describe_stack.call_count == 1
        provider.delete_stack.assert_not_called()

    def test_create_requires_stack(self, provider) -> None:
        """Test create without a config or stack name is a usage error."""
        result = CliRunner().invoke(cli, ["create"])

        assert result.exit_code != 0
        assert "--config or --stack-name" in result.output
        provider.create_stack.assert_not_called()

    def test_create_without_template_errors(self, provider) -> None:
        """Test create with no template reports an error."""
        result = CliRunner().invoke(cli, ["create", "-s", "test-stack"])

        assert result.exit_code == 1
        assert "template_file" in result.output

    def test_bad_param_format(self, provider, template_file: Path) -> None:
        """Test a malformed --param is rejected."""
        result = CliRunner().invoke(
            cli, ["create", "-s", "test-stack", "-t", str(template_file), "-p", "novalue"]
        )

        assert result.exit_code != 0
        assert "KEY=VALUE" in result.output


class TestDeleteCommand:
    """Test the delete command."""

    def test_delete_success(self, provider) -> None:
        """Test delete exits 0 once the stack is gone."""
        result = CliRunner().invoke(
            cli, ["delete", "--stack-name", "test-stack", "--interval", "0.01"]
        )

        assert result.exit_code == 0, result.output
        provider.delete_stack.assert_called_once_with("test-stack")
        assert "deleted successfully" in result.output

    def test_delete_failed(self, provider) -> None:
        """Test a DELETE_FAILED stack exits 1."""
        provider.list_stacks.return_value = [snapshot("DELETE_FAILED")]

        result = CliRunner().invoke(cli, ["delete", "-s", "test-stack"])

        assert result.exit_code == 1


class TestWrapCommand:
    """Test running a command around a temporary stack."""

    def test_wrap_exports_outputs_and_deletes(self, provider, template_file: Path) -> None:
        """Test outputs reach the command and the stack is deleted afterwards."""
        provider.describe_stack.return_value = snapshot(
            "CREATE_COMPLETE", [("Url", "http://x")]
        )
        check = "import os, sys; sys.exit(0 if os.environ['STACK_URL'] == 'http://x' else 3)"

        result = CliRunner().invoke(
            cli,
            ["wrap", "-s", "test-stack", "-t", str(template_file), "--interval", "0.01",
             "--", sys.executable, "-c", check],
        )

        assert result.exit_code == 0, result.output
        provider.create_stack.assert_called_once()
        provider.delete_stack.assert_called_once_with("test-stack")

    def test_wrap_deletes_when_command_fails(self, provider, template_file: Path) -> None:
        """Test the stack is deleted and the command's exit code returned."""
        provider.describe_stack.return_value = snapshot("CREATE_COMPLETE")

        result = CliRunner().invoke(
            cli,
            ["wrap", "-s", "test-stack", "-t", str(template_file), "--interval", "0.01",
             "--", sys.executable, "-c", "import sys; sys.exit(4)"],
        )

        assert result.exit_code == 4
        provider.delete_stack.assert_called_once_with("test-stack")

    def test_wrap_skips_command_when_create_fails(self, provider, template_file: Path) -> None:
        """Test a failed create neither runs the command nor deletes the stack."""
        provider.describe_stack.return_value = snapshot("ROLLBACK_COMPLETE")

        with patch("cli.cloudformation.subprocess.run") as run:
            result = CliRunner().invoke(
                cli,
                ["wrap", "-s", "test-stack", "-t", str(template_file), "--", "true"],
            )

        assert result.exit_code == 1
        run.assert_not_called()
        provider.delete_stack.assert_not_called()

    def test_wrap_create_timeout_exits_1(self, provider, template_file: Path) -> None:
        """Test a create that times out counts as a create failure."""
        provider.describe_stack.return_value = snapshot("CREATE_IN_PROGRESS")

        with patch("cli.cloudformation.subprocess.run") as run:
            result = CliRunner().invoke(
                cli,
                ["wrap", "-s", "test-stack", "-t", str(template_file), "--timeout", "0",
                 "--", "true"],
            )

        assert result.exit_code == 1
        assert "may still exist" in result.output
        run.assert_not_called()
        provider.delete_stack.assert_not_called()


class TestCancelOnSignals:
    """Test signals are turned into a cancel event."""

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGINT])
    def test_signal_sets_event_and_restores_handler(self, signum: int) -> None:
        """Test the signal sets the event and the old handler comes back."""
        previous = signal.getsignal(signum)

        with cancel_on_signals() as cancel:
            assert not cancel.is_set()
            os.kill(os.getpid(), signum)
            assert cancel.wait(2)

        assert signal.getsignal(signum) is previous


class TestHelpers:
    """Test CLI helper functions."""

    def test_parse_params_keeps_order_and_equals(self) -> None:
        """Test values may contain '='."""
        assert parse_params(("B=2", "A=x=y")) == {"B": "2", "A": "x=y"}

    def test_output_environment(self) -> None:
        """Test output keys become prefixed upper-case names."""
        assert output_environment({"ApiUrl": "u"}, "STACK_") == {"STACK_APIURL": "u"}

    def test_help_lists_commands(self) -> None:
        """Test the group help shows every command."""
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("create", "delete", "wrap"):
            assert command in result.output
