"""Input validation for CLI arguments."""
import re
import sys

# Secrets Manager allows ASCII letters, digits and /_+=.@- up to 512 characters
SECRET_NAME_PATTERN = r'^[A-Za-z0-9/_+=.@-]{1,512}$'


def validate_secret_name(name: str) -> None:
    """
    Validate secret name matches Secrets Manager requirements.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name:
        print("Error: Secret name cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not re.match(SECRET_NAME_PATTERN, name):
        print(f"Error: Invalid secret name '{name}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers and / _ + = . @ -", file=sys.stderr)
        print("Maximum length: 512 characters", file=sys.stderr)
        sys.exit(2)


def parse_tag_argument(raw: str) -> tuple:
    """
    Split a KEY=VALUE tag argument.

    Raises:
        SystemExit with code 2 if the argument has no '=' or an empty key
    """
    key, sep, value = raw.partition("=")
    if not sep or not key:
        print(f"Error: Invalid tag '{raw}', expected KEY=VALUE", file=sys.stderr)
        sys.exit(2)
    return key, value


def parse_replica_argument(raw: str) -> tuple:
    """Split a REGION[:KMS_KEY] replica argument."""
    region, _, kms_key_id = raw.partition(":")
    if not region:
        print(f"Error: Invalid replica '{raw}', expected REGION[:KMS_KEY]", file=sys.stderr)
        sys.exit(2)
    return region, kms_key_id or None
