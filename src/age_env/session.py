"""Reuse of decrypted environments within one shell session.

Two mechanisms, both carried in ordinary process environment variables
and therefore scoped to the shell that evaluated them:

Preload cache
    ``AGE_ENV_PRELOAD`` holds ``name:base64(payload)`` records separated
    by ``;``. The payload is the serialized plaintext of the whole
    environment. The shell gets it through ``eval "$(age-env se NAME --preload)"``.

Passthrough markers
    ``_AGE_ENV_PASSTHROUGH_<name>`` is set once an environment's full key
    set has been exported into the shell. Its value lists the exported
    keys so the values can be read back from the ambient environment.

Neither is checked for staleness. Re-encrypting or editing the store in
the middle of a session is not detected.
"""

import base64
import logging
import os
import re
import shlex
from typing import Iterable, List, Mapping, Optional, Tuple

from . import codec
from .errors import FormatError

log = logging.getLogger(__name__)

PRELOAD_VAR = "AGE_ENV_PRELOAD"
PASSTHROUGH_PREFIX = "_AGE_ENV_PASSTHROUGH_"


def marker_name(name: str) -> str:
    """Variable name of the passthrough marker for an environment."""
    return PASSTHROUGH_PREFIX + re.sub(r"[^A-Za-z0-9]", "_", name)


def export_line(key: str, value: str) -> str:
    return f"export {key}={shlex.quote(value)}"


class PreloadCache:
    """The records of the preload carrier variable, in order."""

    def __init__(self, carrier: str = ""):
        self.records: List[Tuple[str, str]] = []
        for record in (carrier or "").split(";"):
            if not record:
                continue
            name, sep, payload = record.partition(":")
            if not sep:
                log.debug("Ignoring malformed preload record")
                continue
            self.records.append((name, payload))

    def __contains__(self, name: str) -> bool:
        return any(record_name == name for record_name, _ in self.records)

    def names(self) -> List[str]:
        return [name for name, _ in self.records]

    def append(self, name: str, values: dict) -> bool:
        """
        Add an environment's plaintext. The first record for a name wins.

        Returns True if a record was added.
        """
        if name in self:
            return False
        payload = base64.b64encode(codec.serialize(values).encode("utf-8"))
        self.records.append((name, payload.decode("ascii")))
        return True

    def lookup(self, name: str) -> Optional[dict]:
        """Cached values for ``name``, or None on a miss or an unreadable record."""
        for record_name, payload in self.records:
            if record_name != name:
                continue
            try:
                text = base64.b64decode(payload, validate=True).decode("utf-8")
                return codec.parse(text)
            except (ValueError, FormatError) as e:
                log.debug("Preload record for %s is unreadable: %s", name, e)
                return None
        return None

    def encode(self) -> str:
        return ";".join(f"{name}:{payload}" for name, payload in self.records)

    def export_statement(self) -> str:
        return export_line(PRELOAD_VAR, self.encode())


class Session:
    """
    Session state read from the inherited process environment.

    Created once per invocation. Nothing here writes to ``os.environ``,
    changes only reach the shell through printed export statements or a
    child process environment.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = dict(os.environ if environ is None else environ)
        self.preload = PreloadCache(self.environ.get(PRELOAD_VAR, ""))

    def is_materialized(self, name: str) -> bool:
        return marker_name(name) in self.environ

    def passthrough(self, name: str, only: Optional[Iterable[str]] = None) -> Optional[dict]:
        """
        Values of an already materialized environment, read from the ambient
        environment. None when there is no marker or a needed key is missing.
        """
        if not self.is_materialized(name):
            return None

        keys = [key for key in self.environ[marker_name(name)].split(",") if key]
        if only is not None:
            # Keys the environment does not have are dropped, as in filters.apply
            needed = [key for key in dict.fromkeys(only) if key in keys]
        else:
            needed = keys

        missing = [key for key in needed if key not in self.environ]
        if missing:
            log.debug("Passthrough for %s missing %d key(s), decrypting", name, len(missing))
            return None
        return {key: self.environ[key] for key in needed}

    def marker(self, name: str, keys: Iterable[str]) -> Tuple[str, str]:
        """Variable and value that mark ``name`` as materialized with ``keys``."""
        return marker_name(name), ",".join(keys)
