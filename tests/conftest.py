"""Shared fixtures: a store wired to a recording fake of the age binary."""

import base64
import json

import pytest

from age_env.config import StorePaths
from age_env.errors import CipherProcessError
from age_env.session import Session
from age_env.store import EnvironmentStore


def _read_recipients(path):
    lines = path.read_text().splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith("#")]


class FakeCipher:
    """
    Stands in for age. "Ciphertext" is JSON naming its recipients, and an
    identity file decrypts it when one of its lines is such a recipient.
    """

    binary = "age"

    def __init__(self):
        self.calls = []

    def count(self, kind):
        return sum(1 for call in self.calls if call == kind)

    def encrypt(self, plaintext, recipients, output_path):
        self.calls.append("encrypt")
        names = list(recipients.recipients)
        for path in recipients.recipient_files:
            names.extend(_read_recipients(path))
        output_path.write_bytes(json.dumps({
            "recipients": names,
            "payload": base64.b64encode(plaintext).decode("ascii"),
        }).encode("utf-8"))

    def decrypt(self, ciphertext, identity_path):
        self.calls.append("decrypt")
        blob = json.loads(ciphertext)
        identities = _read_recipients(identity_path)
        if not set(identities) & set(blob["recipients"]):
            raise CipherProcessError(
                "age exited with status 1",
                returncode=1,
                stderr="age: error: no identity matched any of the recipients",
            )
        return base64.b64decode(blob["payload"])

    def is_installed(self):
        return True


@pytest.fixture
def cipher():
    return FakeCipher()


@pytest.fixture
def paths(tmp_path):
    paths = StorePaths(tmp_path / "store")
    paths.ensure()
    paths.identities_file.write_text("R1\n")
    return paths


@pytest.fixture
def make_store(paths, cipher):
    """Factory for stores sharing one directory and cipher, one per "invocation"."""

    def factory(environ=None, confirm=None):
        return EnvironmentStore(paths, cipher, session=Session(environ or {}), confirm=confirm)

    return factory


@pytest.fixture
def store(make_store):
    return make_store()
