"""CLI entrypoint for agent-vaultkit."""
import os
import sys
import signal
import asyncio
import argparse
import logging
from pathlib import Path

from .validators import validate_field_list, validate_secret_path

VERSION = "0.1.0"

# Configure logging to stderr so stdout carries only secret values
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _load_environment(args):
    """Load configuration, exiting with a usage error if it is invalid."""
    from agent_vaultkit.secrets.domains.config_loader import load_environment
    from agent_vaultkit.secrets.domains.errors import ConfigurationError

    try:
        return load_environment(getattr(args, "config", None))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


def _run_fetch(fetch, env):
    """Run a fetcher, cancelling it on SIGINT/SIGTERM."""
    async def runner():
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, cancel.set)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                logger.debug(f"Signal handler for {sig.name} not supported")
        return await fetch(env, cancel=cancel)

    from agent_vaultkit.secrets.domains.errors import (
        ConfigurationError,
        FetchCancelledError,
        VaultKitError,
    )

    try:
        return asyncio.run(runner())
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except FetchCancelledError as e:
        print(f"Interrupted: {e}", file=sys.stderr)
        sys.exit(130)
    except VaultKitError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _print_fields(values, fields, quiet):
    for name in fields:
        if quiet:
            # Quiet mode: name=value only, for scripts
            print(f"{name}={values[name]}")
        else:
            print(f"Secret '{name}': {values[name]}")


def cmd_version(args):
    """Show version information."""
    print(f"agent-vaultkit {VERSION}")


def cmd_config_show(args):
    """Show the config file in use and the effective Vault settings."""
    from agent_vaultkit.secrets.domains.config_loader import (
        CONFIG_PATH_ENV,
        _get_config_path,
        default_config_path,
    )
    from agent_vaultkit.secrets.domains.errors import ConfigurationError

    env_path = os.getenv(CONFIG_PATH_ENV)
    if args.config:
        source = "--config"
    elif env_path and Path(env_path).expanduser().is_file():
        source = CONFIG_PATH_ENV
    else:
        source = "default"

    try:
        config_path = _get_config_path(args.config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    if config_path:
        print(f"Config path: {config_path}")
        print(f"Source: {source}")
    else:
        print(f"Config path: {default_config_path()}")
        print("Source: default (file not found, using environment variables)")

    env = _load_environment(args)
    print(f"Vault address: {env.vault_address}")
    print(f"Role id: {env.approle_role_id}")
    print(f"Kubernetes secret path: {env.kubernetes.database_creds_path}")
    print(f"AppRole database credentials path: {env.secret_id.database_creds_path}")
    print(f"AppRole API key path: {env.secret_id.api_key_path}")


def cmd_secrets_kubernetes(args):
    """Fetch secret fields using Kubernetes service-account auth."""
    from agent_vaultkit.secrets.workflows.secret_operations import fetch_by_kubernetes_auth

    env = _load_environment(args)
    if args.fields is not None:
        env.kubernetes.database_creds_fields = args.fields
    if args.path is not None:
        env.kubernetes.database_creds_path = args.path
    fields = validate_field_list(env.kubernetes.database_creds_fields)
    validate_secret_path(env.kubernetes.database_creds_path)

    values = _run_fetch(fetch_by_kubernetes_auth, env)
    _print_fields(values, fields, args.quiet)


def cmd_secrets_db_creds(args):
    """Fetch dynamic database credentials using AppRole auth."""
    from agent_vaultkit.secrets.workflows.secret_operations import fetch_database_credentials_by_approle

    env = _load_environment(args)
    if args.path is not None:
        env.secret_id.database_creds_path = args.path
    validate_secret_path(env.secret_id.database_creds_path)

    credentials, lease = _run_fetch(fetch_database_credentials_by_approle, env)
    if args.quiet:
        print(f"username={credentials.username}")
        print(f"password={credentials.password}")
    else:
        print(f"Username: {credentials.username}")
        print(f"Password: {credentials.password}")
        print(f"Lease duration: {lease.lease_duration}s")
        if lease.lease_id:
            print(f"Lease id: {lease.lease_id}")


def cmd_secrets_api_keys(args):
    """Fetch API keys from kv-v2 using AppRole auth."""
    from agent_vaultkit.secrets.workflows.secret_operations import fetch_api_keys_by_approle

    env = _load_environment(args)
    if args.fields is not None:
        env.secret_id.api_key_field = args.fields
    if args.path is not None:
        env.secret_id.api_key_path = args.path
    fields = validate_field_list(env.secret_id.api_key_field)
    validate_secret_path(env.secret_id.api_key_path)

    values = _run_fetch(fetch_api_keys_by_approle, env)
    _print_fields(values, fields, args.quiet)


def _add_fetch_arguments(parser, with_fields=True):
    parser.add_argument(
        "--path",
        help="Secret path to read (overrides the configured path)"
    )
    if with_fields:
        parser.add_argument(
            "--fields",
            help="Comma-separated secret field names (overrides the configured fields)"
        )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Output only name=value lines (useful for scripts)"
    )


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (login, network, secret not found, malformed secret)
        2 - Usage errors (invalid arguments, invalid configuration)
        130 - Cancelled by SIGINT/SIGTERM
    """
    parser = argparse.ArgumentParser(
        prog="vaultkit",
        description="agent-vaultkit CLI - fetch credentials from HashiCorp Vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (login, network, secret not found, malformed secret)
  2 - Usage error (invalid arguments, invalid configuration)

Environment variables:
  VAULTKIT_CONFIG               - Config file path
  VAULT_ADDRESS                 - Vault address (default: localhost:8200)
  VAULT_APPROLE_ROLE_ID         - Role id for Kubernetes and AppRole login
  VAULT_APPROLE_JWT_TOKEN_FILE  - Service-account token file
  VAULT_DATABASE_CREDS_PATH     - Secret path read after Kubernetes login
  VAULT_DATABASE_CREDS_FIELDS   - Fields extracted after Kubernetes login
  VAULT_APPROLE_SECRET_ID_FILE  - Wrapped secret id file
  VAULT_API_KEY_PATH            - kv-v2 path of the API keys
  VAULT_API_KEY_FIELD           - API key field names

Configuration:
  Default location: ~/.config/agent-vaultkit/config.yml
        """
    )
    parser.add_argument(
        "--config",
        help="Path to config file (default: $VAULTKIT_CONFIG or ~/.config/agent-vaultkit/config.yml)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log login and read progress to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # version command
    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of agent-vaultkit"
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect agent-vaultkit configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    _config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show current config",
        description="""
Display the configuration file path, its source and the effective Vault settings.

Sources:
  - --config: Path given on the command line
  - VAULTKIT_CONFIG: Path from the environment
  - default: ~/.config/agent-vaultkit/config.yml
        """
    )

    # secrets command
    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Fetch secrets from Vault",
        description="Log in to Vault and fetch credentials"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    kubernetes_parser = secrets_subparsers.add_parser(
        "kubernetes",
        help="Fetch secret fields with Kubernetes auth",
        description="""
Log in with the pod's service-account token and print the configured fields
of one secret.
        """
    )
    _add_fetch_arguments(kubernetes_parser)

    db_creds_parser = secrets_subparsers.add_parser(
        "db-creds",
        help="Fetch dynamic database credentials with AppRole auth",
        description="""
Log in with AppRole (response-wrapped secret id) and generate a new set of
temporary database credentials. The lease duration is printed; renewal is
left to the caller.
        """
    )
    _add_fetch_arguments(db_creds_parser, with_fields=False)

    api_keys_parser = secrets_subparsers.add_parser(
        "api-keys",
        help="Fetch API keys with AppRole auth",
        description="Log in with AppRole and print the configured API key fields from kv-v2."
    )
    _add_fetch_arguments(api_keys_parser)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger("agent_vaultkit").setLevel(logging.INFO)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    # Route to command handlers
    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "config":
            if args.config_command == "show":
                cmd_config_show(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        elif args.command == "secrets":
            if args.secrets_command == "kubernetes":
                cmd_secrets_kubernetes(args)
            elif args.secrets_command == "db-creds":
                cmd_secrets_db_creds(args)
            elif args.secrets_command == "api-keys":
                cmd_secrets_api_keys(args)
            else:
                secrets_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
