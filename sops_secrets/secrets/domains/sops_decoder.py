"""Decrypt sops-encrypted content by shelling out to the sops binary."""
import logging
import subprocess
from typing import Union

from .config_loader import DEFAULT_SOPS_BINARY
from .errors import DecryptError, InvalidFormatError
from .models import ContentFormat

logger = logging.getLogger(__name__)


def parse_content_format(value: Union[str, ContentFormat]) -> ContentFormat:
    """
    Coerce a declared format into a ContentFormat.

    Raises:
        InvalidFormatError: If the value is not json, yaml, dotenv or txt
    """
    if isinstance(value, ContentFormat):
        return value
    try:
        return ContentFormat(value)
    except ValueError:
        allowed = ", ".join(f.value for f in ContentFormat)
        raise InvalidFormatError(f"Unsupported secret type '{value}' (expected one of: {allowed})")


class SopsDecoder:
    """Runs `sops --decrypt` with matching input and output types."""

    def __init__(self, binary_path: str = DEFAULT_SOPS_BINARY):
        self.binary_path = binary_path

    def decode(self, ciphertext: bytes, content_format: Union[str, ContentFormat]) -> str:
        """
        Decrypt ciphertext and return the plaintext without surrounding whitespace.

        Args:
            ciphertext: Raw bytes of the sops-encrypted file
            content_format: Declared format; sops re-serializes into the same format

        Returns:
            Decrypted plaintext, stripped of leading and trailing whitespace

        Raises:
            InvalidFormatError: If content_format is not recognized
            DecryptError: If sops cannot run, exits non-zero, or writes anything to stderr
        """
        fmt = parse_content_format(content_format)
        command = [
            self.binary_path,
            "--decrypt",
            "--input-type", fmt.value,
            "--output-type", fmt.value,
            "/dev/stdin",
        ]

        try:
            result = subprocess.run(command, input=ciphertext, capture_output=True, check=False)
        except OSError as e:
            raise DecryptError(f"Failed to run sops at '{self.binary_path}': {e}") from e

        # Any diagnostic output, even blank lines, means the plaintext cannot be trusted.
        if result.stderr:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise DecryptError(f"sops command failed with: {stderr or repr(result.stderr)}")
        if result.returncode != 0:
            raise DecryptError(f"sops exited with status {result.returncode}")

        try:
            plaintext = result.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptError(f"sops produced non UTF-8 output: {e}") from e

        return plaintext.strip()
