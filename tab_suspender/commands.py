"""Command validation utilities for tab-suspender"""

import difflib

# Valid commands at CLI level, with the usage shown by /help
CLI_COMMANDS = {
    "/run": "Run the suspension daemon",
    "/status": "Show suspension statistics",
    "/exemptions": "List exempt domains",
    "/exempt": "<domain|url>  Never suspend this domain",
    "/unexempt": "<domain|url>  Remove a domain from the exemptions",
    "/reset-exemptions": "Restore the default exemption list",
    "/settings": "Show the global timeout and domain rules",
    "/set-timeout": "<minutes>  Set the global idle timeout",
    "/add-rule": "<domain> <minutes>  Use a different timeout for a domain",
    "/remove-rule": "<domain>  Remove a domain rule",
    "/reset-stats": "Zero the suspension counters",
    "/purge-snapshots": "Remove snapshots past the retention window",
    "/help": "Show this help",
}

# Commands that need a connection to the browser
HOST_COMMANDS = {"/run", "/status"}


def is_valid_cli_command(command: str) -> bool:
    """Check if a CLI command is valid

    Args:
        command: Command string (without leading /)

    Returns:
        True if valid, False otherwise
    """
    return f"/{command}" in CLI_COMMANDS


def get_command_suggestion(user_input: str) -> str:
    """Get a helpful error message for an invalid command"""
    msg = f"Unknown command '{user_input}'\n\n"

    close = difflib.get_close_matches(user_input, list(CLI_COMMANDS), n=1)
    if close:
        msg += f"Did you mean: {close[0]}?\n"

    msg += "Run 'tab-suspender /help' to see available commands"
    return msg


def format_help() -> str:
    lines = ["", "tab-suspender - suspend idle browser tabs", "=" * 60, "", "Available commands:"]
    for command, usage in CLI_COMMANDS.items():
        lines.append(f"  {command:20s} {usage}")
    lines.append("")
    return "\n".join(lines)
