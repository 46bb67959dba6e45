"""
Utility functions for CLI scripts.
"""

import json
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


def print_header(title: str, width: int = 60) -> None:
    """Print a formatted header."""
    print("=" * width)
    print(title.center(width))
    print("=" * width)


def confirm_action(message: str, default: bool = True) -> bool:
    """
    Ask user to confirm an action.

    Args:
        message: Confirmation message
        default: Default choice

    Returns:
        True if confirmed, False otherwise
    """
    choices = "Y/n" if default else "y/N"
    choice = input(f"{message} [{choices}]: ").lower().strip()

    if not choice:
        return default

    return choice in ['y', 'yes']


def format_time(seconds: float) -> str:
    """Format seconds as human-readable time."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    elif minutes > 0:
        return f"{minutes}m {secs}s"
    else:
        return f"{secs}s"


def parse_json_arg(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse a JSON object given on the command line.

    Raises:
        ValueError: If text is not a JSON object
    """
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError("JSON input must be an object")
    return value


def parse_key_value_args(args: list) -> Dict[str, Any]:
    """
    Parse key=value arguments into dictionary.

    Args:
        args: List of strings in format "key=value"

    Returns:
        Dictionary of parsed arguments

    Example:
        >>> parse_key_value_args(['session.max_concurrent_jobs=4', 'logging.level=DEBUG'])
        {'session.max_concurrent_jobs': 4, 'logging.level': 'DEBUG'}
    """
    result = {}
    for arg in args:
        if '=' not in arg:
            logger.warning("Ignoring invalid argument (no '='): %s", arg)
            continue

        key, value = arg.split('=', 1)

        # Try to convert to appropriate type
        try:
            # Try int
            value = int(value)
        except ValueError:
            try:
                # Try float
                value = float(value)
            except ValueError:
                # Try bool
                if value.lower() in ['true', 'false']:
                    value = value.lower() == 'true'
                # Keep as string otherwise

        result[key] = value

    return result
