"""CLI entrypoint for sops-secrets."""
import os
import sys
import json
import argparse
import logging
from pathlib import Path

from .validators import validate_secret_name, parse_tag_argument, parse_replica_argument

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def cmd_version(args):
    """Show version information."""
    print(f"sops-secrets {VERSION}")


def cmd_config_set_path(args):
    """Set config file path preference."""
    from sops_secrets.secrets.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.exists():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    from sops_secrets.secrets.domains.config_loader import CONFIG_ENV_VAR, default_config_path
    from sops_secrets.secrets.domains.preferences import get_preference

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        if Path(env_path).is_file():
            print(f"Config path: {env_path}")
        else:
            print(f"Config path (from {CONFIG_ENV_VAR}, but file not found): {env_path}")
        print("Source: environment")
        return

    config_path_pref = get_preference("config_path")

    if config_path_pref:
        if Path(config_path_pref).exists():
            print(f"Config path: {config_path_pref}")
        else:
            print(f"Config path (from preference, but file not found): {config_path_pref}")
        print("Source: preference")
        return

    default_config = default_config_path()
    print(f"Config path: {default_config}")
    if default_config.exists():
        print("Source: default")
    else:
        print("Source: default (file not found, built-in defaults apply)")


def cmd_config_clear(args):
    """Clear config path preference."""
    from sops_secrets.secrets.domains.config_loader import default_config_path
    from sops_secrets.secrets.domains.preferences import clear_preference

    clear_preference("config_path")
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def cmd_decode(args):
    """Decrypt a local sops file and print the trimmed plaintext."""
    from sops_secrets.secrets.domains.config_loader import load_config
    from sops_secrets.secrets.domains.declarations import infer_content_format
    from sops_secrets.secrets.domains.sops_decoder import SopsDecoder

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)

    content_format = infer_content_format(str(path), args.format)
    config = load_config()
    decoder = SopsDecoder(config["sops"]["binary_path"])
    print(decoder.decode(path.read_bytes(), content_format))


def cmd_reconcile(args):
    """Run one lifecycle event read from a JSON file."""
    from sops_secrets.secrets.workflows.event_handler import build_reconciler, handle_event

    try:
        with open(args.event_file, 'r') as f:
            event = json.load(f)
    except OSError as e:
        print(f"Error: Failed to read event file: {e}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Event file is not valid JSON: {e}", file=sys.stderr)
        sys.exit(2)

    if not isinstance(event, dict):
        print("Error: Event file must contain a JSON object", file=sys.stderr)
        sys.exit(2)

    response = handle_event(event, build_reconciler())
    print(json.dumps(response))


def cmd_declare(args):
    """Print the custom resource properties for a sops file."""
    from sops_secrets.secrets.domains.declarations import DeploymentUnit, infer_content_format
    from sops_secrets.secrets.domains.models import BlobLocator, ReplicaRegion, SecretDefinition, Tag

    validate_secret_name(args.name)

    policy = None
    if args.policy_file:
        policy_text = Path(args.policy_file).read_text()
        try:
            json.loads(policy_text)
        except json.JSONDecodeError as e:
            print(f"Error: Policy file is not valid JSON: {e}", file=sys.stderr)
            sys.exit(2)
        policy = policy_text.strip()

    definition = SecretDefinition(
        name=args.name,
        content_format=infer_content_format(args.file, args.format),
        source=BlobLocator(args.bucket, args.key or Path(args.file).name),
        encryption_key_ref=args.kms_key_arn,
        storage_key_ref=args.secret_kms_key_arn,
        description=args.description,
        tags=tuple(Tag(*parse_tag_argument(t)) for t in args.tag),
        resource_policy=policy,
        replica_regions=tuple(ReplicaRegion(*parse_replica_argument(r)) for r in args.replica),
    )
    unit = DeploymentUnit("cli")
    print(json.dumps(unit.declare(definition), indent=2))


def main():
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (decryption, AWS API, missing files, etc.)
        2 - Usage errors (invalid arguments, invalid event or declaration, etc.)
    """
    parser = argparse.ArgumentParser(
        prog="sops-secrets",
        description="Store sops-encrypted files in AWS Secrets Manager",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (decryption, AWS API, missing files, etc.)
  2 - Usage error (invalid arguments, invalid event or declaration, etc.)

Environment variables:
  SOPS_SECRETS_CONFIG - Path to config file (overrides preference)
  SOPS_BINARY         - Path to the sops binary (overrides config file)
  AWS_REGION          - AWS region (overrides config file)

Configuration:
  Default location: ~/.config/sops-secrets/config.yml
  Custom path: Set with 'sops-secrets config set-path <path>'
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("version", help="Show version information")

    # config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path",
        description="Store the absolute config path in ~/.config/sops-secrets/preferences.json"
    )
    config_set_path_parser.add_argument("path", help="Path to config file")
    config_subparsers.add_parser("show", help="Show current config path")
    config_subparsers.add_parser("clear", help="Clear config path preference")

    # decode command
    decode_parser = subparsers.add_parser(
        "decode",
        help="Decrypt a local sops file",
        description="Decrypt a sops file and print the plaintext without surrounding whitespace."
    )
    decode_parser.add_argument("file", help="Path to the sops-encrypted file")
    decode_parser.add_argument(
        "--format",
        choices=["json", "yaml", "dotenv", "txt"],
        help="Content format (inferred from the file extension if omitted)"
    )

    # reconcile command
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        help="Run one lifecycle event",
        description="""
Reconcile a secret in AWS Secrets Manager from a custom resource event.

The event file is JSON with RequestType (Create, Update or Delete),
ResourceProperties and, for Update and Delete, PhysicalResourceId.
The response JSON is printed to stdout.
        """
    )
    reconcile_parser.add_argument("event_file", help="Path to event JSON file")

    # declare command
    declare_parser = subparsers.add_parser(
        "declare",
        help="Print custom resource properties for a sops file",
    )
    declare_parser.add_argument("file", help="Path to the sops-encrypted file")
    declare_parser.add_argument("--name", required=True, help="Secret name in Secrets Manager")
    declare_parser.add_argument("--format", choices=["json", "yaml", "dotenv", "txt"])
    declare_parser.add_argument("--bucket", required=True, help="S3 bucket holding the uploaded file")
    declare_parser.add_argument("--key", help="S3 object key (defaults to the file name)")
    declare_parser.add_argument("--kms-key-arn", help="KMS key used to encrypt the sops file")
    declare_parser.add_argument("--secret-kms-key-arn", help="KMS key Secrets Manager uses for the value")
    declare_parser.add_argument("--description", help="Secret description")
    declare_parser.add_argument("--tag", action="append", default=[], metavar="KEY=VALUE")
    declare_parser.add_argument("--replica", action="append", default=[], metavar="REGION[:KMS_KEY]")
    declare_parser.add_argument("--policy-file", help="JSON resource policy document")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    from sops_secrets.secrets.domains.errors import ValidationError

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        elif args.command == "decode":
            cmd_decode(args)
        elif args.command == "reconcile":
            cmd_reconcile(args)
        elif args.command == "declare":
            cmd_declare(args)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
