"""Tests for CLI command validation"""

import pytest

from tab_suspender.commands import CLI_COMMANDS, HOST_COMMANDS, format_help, get_command_suggestion, is_valid_cli_command


@pytest.mark.parametrize("command", [c[1:] for c in CLI_COMMANDS])
def test_known_commands_are_valid(command):
    assert is_valid_cli_command(command)


@pytest.mark.parametrize("command", ["", "runn", "/run", "exit"])
def test_unknown_commands_are_invalid(command):
    assert not is_valid_cli_command(command)


def test_host_commands_are_cli_commands():
    assert HOST_COMMANDS <= set(CLI_COMMANDS)


def test_suggestion_for_typo():
    message = get_command_suggestion("/stauts")
    assert "Unknown command '/stauts'" in message
    assert "Did you mean: /status?" in message


def test_no_suggestion_for_nonsense():
    message = get_command_suggestion("/xyzzy")
    assert "Did you mean" not in message
    assert "/help" in message


def test_help_lists_every_command():
    text = format_help()
    for command in CLI_COMMANDS:
        assert command in text
