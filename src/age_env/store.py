"""Environment store: named, age-encrypted KEY=VALUE files in one directory."""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, TextIO, Tuple, Union

from . import codec, filters
from .cipher import RecipientSet
from .config import NAME_PATTERN, StorePaths, validate_name
from .errors import (
    AbortedByUser,
    AgeEnvError,
    CommandNotFound,
    EnvironmentAlreadyExists,
    EnvironmentNotFound,
    FormatError,
    KeyNotFoundError,
    MissingRecipientsError,
    StoreNotInitialized,
)
from .session import Session, export_line

log = logging.getLogger(__name__)

# Stands in for an environment name: read the plaintext env from stdin
INLINE = "-"

Confirm = Callable[[str], bool]


class EnvironmentStore:
    """
    Create, read, re-encrypt and delete environments.

    ``cipher`` is anything with ``encrypt(plaintext, recipients, output_path)``
    and ``decrypt(ciphertext, identity_path)``. ``confirm`` asks a yes/no
    question; None means nobody can be asked.
    """

    def __init__(
        self,
        paths: StorePaths,
        cipher,
        session: Optional[Session] = None,
        confirm: Optional[Confirm] = None,
    ):
        self.paths = paths
        self.cipher = cipher
        self.session = session if session is not None else Session()
        self.confirm = confirm

    # Store layout

    def list_environments(self) -> List[str]:
        if not self.paths.envs_dir.exists():
            return []
        return sorted(
            path.name
            for path in self.paths.envs_dir.iterdir()
            if path.is_file() and NAME_PATTERN.match(path.name)
        )

    def _existing_file(self, name: str) -> Path:
        path = self.paths.env_file(name)
        if not path.exists():
            raise EnvironmentNotFound(f"Environment {name!r} does not exist ({path})")
        return path

    def add_identity(self, text: str) -> Path:
        """Append identities to the store's identity file."""
        path = self.paths.identities_file
        self.paths.root.mkdir(parents=True, exist_ok=True)
        # Private key material: never world readable
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(text)
        log.info("Added identities to %s", path)
        return path

    def add_recipient(self, text: str) -> Path:
        """Append recipients to the global recipients file."""
        path = self.paths.recipients_file
        self.paths.root.mkdir(parents=True, exist_ok=True)
        with open(path, "a") as f:
            f.write(text)
        log.info("Added recipients to %s", path)
        return path

    # Cipher plumbing

    def _recipients(self, recipients: Optional[RecipientSet]) -> RecipientSet:
        recipients = recipients or RecipientSet()
        if self.paths.recipients_file.exists():
            recipients = recipients.with_file(self.paths.recipients_file)
        if not recipients:
            raise MissingRecipientsError(
                "Either --recipient or --recipients-file must be provided, "
                "or the global recipients file must be present"
            )
        return recipients

    def _decrypt(self, name: str) -> dict:
        path = self._existing_file(name)
        identities = self.paths.identities_file
        if not identities.exists():
            raise StoreNotInitialized(f"Identities file {identities} does not exist")

        log.debug("Decrypting environment %s", name)
        plaintext = self.cipher.decrypt(path.read_bytes(), identities)
        try:
            text = plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Environment {name!r} is not valid UTF-8") from e
        return codec.parse(text)

    def _encrypt(self, name: str, values: dict, recipients: RecipientSet) -> Path:
        path = self.paths.env_file(name)
        self.paths.envs_dir.mkdir(parents=True, exist_ok=True)
        log.debug("Encrypting %d key(s) into %s", len(values), path)
        self.cipher.encrypt(codec.serialize(values).encode("utf-8"), recipients, path)
        return path

    def _resolve(
        self,
        name: str,
        only: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        passthrough: bool = False,
    ) -> Tuple[dict, str]:
        """
        Filtered values of an environment and where they came from:
        ``passthrough``, ``preload`` or ``decrypt``.
        """
        validate_name(name)
        if passthrough:
            values = self.session.passthrough(name, only)
            if values is not None:
                log.debug("Environment %s already materialized, skipping decryption", name)
                return filters.apply(values, None, exclude), "passthrough"

        values = self.session.preload.lookup(name)
        source = "preload"
        if values is None:
            values = self._decrypt(name)
            source = "decrypt"
        else:
            log.debug("Environment %s found in preload cache", name)
        return filters.apply(values, only, exclude), source

    def _marks_session(self, source: str, only, exclude) -> bool:
        return source != "passthrough" and not filters.is_filtered(only, exclude)

    # Operations

    def create(
        self,
        name: str,
        source_text: str,
        recipients: Optional[RecipientSet] = None,
        skip_confirmation: bool = False,
        only: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> Path:
        """Encrypt a dotenv text as environment ``name``."""
        path = self.paths.env_file(name)
        values = filters.apply(codec.parse(source_text), only, exclude)
        recipients = self._recipients(recipients)

        if path.exists() and not skip_confirmation:
            if self.confirm is None:
                raise EnvironmentAlreadyExists(
                    f"Environment {name!r} already exists, use -y to overwrite it"
                )
            if not self.confirm(f"Environment {name!r} already exists. Overwrite it?"):
                raise AbortedByUser(f"Not overwriting environment {name!r}")

        self._encrypt(name, values, recipients)
        log.info("Created environment %s with %d key(s)", name, len(values))
        return path

    def show(
        self,
        name: str,
        only: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        key: Optional[str] = None,
        passthrough: bool = False,
    ) -> Union[str, List[str]]:
        """
        ``KEY=VALUE`` lines of an environment, or just the value of ``key``.
        """
        values, _ = self._resolve(name, only, exclude, passthrough)
        if key is not None:
            if key not in values:
                raise KeyNotFoundError(f"Key not found in {name!r}: {key}")
            return values[key]
        return [f"{k}={v}" for k, v in values.items()]

    def show_for_eval(
        self,
        name: str,
        only: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        preload: bool = False,
        passthrough: bool = False,
    ) -> List[str]:
        """
        Shell ``export`` statements for an environment.

        With ``preload`` the single statement updates the preload carrier
        instead, the key filters do not apply to it.
        """
        if preload:
            if filters.is_filtered(only, exclude):
                log.warning("--only/--exclude are ignored with --preload")
            return [self.preload([name])]

        values, source = self._resolve(name, only, exclude, passthrough)
        lines = [export_line(k, v) for k, v in values.items()]
        if self._marks_session(source, only, exclude):
            lines.append(export_line(*self.session.marker(name, values)))
        return lines

    def preload(self, names: Sequence[str]) -> str:
        """
        Export statement for the preload carrier with ``names`` added.

        Names already in the carrier are not decrypted again.
        """
        cache = self.session.preload
        for name in names:
            validate_name(name)
            if name in cache:
                log.debug("Environment %s already preloaded", name)
                continue
            cache.append(name, self._decrypt(name))
        return cache.export_statement()

    def run_with_env(
        self,
        name: str,
        command: Sequence[str],
        only: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        passthrough: bool = False,
        stdin: Optional[TextIO] = None,
    ) -> int:
        """
        Run ``command`` with the environment merged over the inherited one.

        Returns the command's exit status.
        """
        if not command:
            raise AgeEnvError("No command specified")

        env = dict(self.session.environ)
        if name == INLINE:
            text = (stdin if stdin is not None else sys.stdin).read()
            values = filters.apply(codec.parse(text), only, exclude)
        else:
            values, source = self._resolve(name, only, exclude, passthrough)
            if self._marks_session(source, only, exclude):
                marker, keys = self.session.marker(name, values)
                env[marker] = keys
        env.update(values)

        log.debug("Running %s with %d key(s) from %s", command[0], len(values), name)
        try:
            result = subprocess.run(list(command), env=env)
        except FileNotFoundError as e:
            raise CommandNotFound(f"Command not found: {command[0]}") from e
        return result.returncode

    def _reencrypt(self, name: str, recipients: RecipientSet) -> Path:
        values = self._decrypt(name)
        path = self._encrypt(name, values, recipients)
        log.info("Re-encrypted environment %s", name)
        return path

    def reencrypt(self, name: str, recipients: Optional[RecipientSet] = None) -> Path:
        """Decrypt ``name`` and encrypt the same content to new recipients."""
        return self._reencrypt(name, self._recipients(recipients))

    def reencrypt_all(self, recipients: Optional[RecipientSet] = None) -> List[str]:
        """Re-encrypt every environment, stopping at the first failure."""
        recipients = self._recipients(recipients)
        names = self.list_environments()
        for name in names:
            self._reencrypt(name, recipients)
        return names

    def delete(self, name: str) -> Path:
        path = self._existing_file(name)
        path.unlink()
        log.info("Deleted environment %s", name)
        return path

    def delete_all(self) -> List[Path]:
        """
        Delete every environment after confirmation.

        Returns the deleted files, empty when there was nothing to delete.
        """
        files = [self.paths.envs_dir / name for name in self.list_environments()]
        if not files:
            return []

        listing = "\n".join(f"  {path}" for path in files)
        prompt = f"{listing}\n\nDelete all {len(files)} environments in {self.paths.envs_dir}?"
        if self.confirm is None or not self.confirm(prompt):
            raise AbortedByUser("Not deleting environments")

        for path in files:
            path.unlink()
            log.info("Deleted %s", path)
        return files

    def reset(self) -> Path:
        """Remove the whole store directory after confirmation."""
        root = self.paths.root
        if not root.exists():
            return root
        if self.confirm is None or not self.confirm(f"Remove {root} with all identities and environments?"):
            raise AbortedByUser(f"Not removing {root}")
        shutil.rmtree(root)
        log.info("Removed %s", root)
        return root
