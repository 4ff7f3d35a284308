"""Input validation for CLI arguments."""
import re
import sys
from typing import List

from agent_vaultkit.secrets.domains.extraction import split_fields

# Vault path segments: letters, digits and - _ . @ +, separated by single slashes
_PATH_PATTERN = re.compile(r'^[A-Za-z0-9_.@+-]+(/[A-Za-z0-9_.@+-]+)*$')


def validate_field_list(field_spec: str) -> List[str]:
    """
    Validate a comma-separated list of secret field names.

    Args:
        field_spec: Field names, e.g. "username,password"

    Returns:
        The parsed field names

    Raises:
        SystemExit with code 2 if the list is empty
    """
    fields = split_fields(field_spec)
    if not fields:
        print("Error: At least one secret field name is required", file=sys.stderr)
        print("\nPass a comma-separated list, e.g. --fields username,password", file=sys.stderr)
        sys.exit(2)
    return fields


def validate_secret_path(path: str) -> None:
    """
    Validate a Vault secret path.

    Args:
        path: Path relative to /v1/, e.g. "kv-v2/data/api-key"

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not path:
        print("Error: Secret path cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not _PATH_PATTERN.match(path):
        print(f"Error: Invalid secret path '{path}'", file=sys.stderr)
        print("\nPaths are relative to /v1/ without leading or trailing slashes.", file=sys.stderr)
        print("\nExamples of valid paths:", file=sys.stderr)
        print("  ✓ kv-v2/data/api-key", file=sys.stderr)
        print("  ✓ database/creds/dev-readonly", file=sys.stderr)
        print("\nExamples of invalid paths:", file=sys.stderr)
        print("  ✗ /kv-v2/data/api-key (leading slash)", file=sys.stderr)
        print("  ✗ kv-v2//api-key (empty segment)", file=sys.stderr)
        print("  ✗ kv v2/api key (contains space)", file=sys.stderr)
        sys.exit(2)
