"""Wrapper around the age command line tool.

age is driven as a black box: plaintext or ciphertext goes in on stdin,
the result comes out on stdout (or in the ``-o`` file), failures are a
non-zero exit status with a diagnostic on stderr.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .errors import CipherProcessError

log = logging.getLogger(__name__)


@dataclass
class RecipientSet:
    """Inline recipients (``-r``) and recipients files (``-R``) for one encryption."""

    recipients: List[str] = field(default_factory=list)
    recipient_files: List[Path] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.recipients or self.recipient_files)

    def with_file(self, path: Path) -> "RecipientSet":
        """Copy of this set with one more recipients file appended."""
        return RecipientSet(list(self.recipients), [*self.recipient_files, path])

    def to_args(self) -> List[str]:
        args = []
        for recipient in self.recipients:
            args.extend(["-r", recipient])
        for path in self.recipient_files:
            args.extend(["-R", str(path)])
        return args


class AgeCipher:
    """Encrypt and decrypt by running the ``age`` binary."""

    def __init__(self, binary: str = "age"):
        self.binary = binary

    def _run(self, args: List[str], input_data: bytes) -> bytes:
        command = [self.binary, *args]
        log.debug("Running %s", " ".join(command))
        try:
            # run() writes all of stdin, then drains stdout/stderr, then waits
            result = subprocess.run(command, input=input_data, capture_output=True)
        except FileNotFoundError as e:
            raise CipherProcessError(
                f"'{self.binary}' is not installed or not in PATH",
                returncode=127,
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise CipherProcessError(
                f"{self.binary} exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout

    def decrypt(self, ciphertext: bytes, identity_path: Path) -> bytes:
        """Decrypt ciphertext with the identities in ``identity_path``."""
        return self._run(["-d", "--identity", str(identity_path)], ciphertext)

    def encrypt(self, plaintext: bytes, recipients: RecipientSet, output_path: Path) -> None:
        """Encrypt plaintext to ``recipients``, age writes ``output_path`` itself."""
        self._run([*recipients.to_args(), "-o", str(output_path)], plaintext)

    def is_installed(self) -> bool:
        """Check if the age binary can be run."""
        try:
            subprocess.run([self.binary, "--version"], capture_output=True, check=True)
            return True
        except (subprocess.CalledProcessError, FileNotFoundError):
            return False


def check_age_keygen_installed() -> bool:
    """Check if age-keygen is installed."""
    try:
        subprocess.run(["age-keygen", "--version"], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False
