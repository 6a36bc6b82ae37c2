"""Tests for the age process wrapper."""

import subprocess
from pathlib import Path

import pytest

from age_env.cipher import AgeCipher, RecipientSet
from age_env.errors import CipherProcessError


class Recorder:
    """Replacement for subprocess.run that records the call."""

    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.calls = []

    def __call__(self, command, input=None, capture_output=False, **kwargs):
        self.calls.append((command, input))
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, self.stderr)


class TestRecipientSet:
    """Tests for recipient arguments."""

    def test_empty_is_falsy(self):
        assert not RecipientSet()

    def test_args_order(self):
        recipients = RecipientSet(["age1aaa", "age1bbb"], [Path("team.txt")])
        assert recipients.to_args() == ["-r", "age1aaa", "-r", "age1bbb", "-R", "team.txt"]

    def test_with_file_copies(self):
        recipients = RecipientSet(["age1aaa"])
        extended = recipients.with_file(Path("global"))
        assert extended.recipient_files == [Path("global")]
        assert recipients.recipient_files == []


class TestAgeCipher:
    """Tests for AgeCipher."""

    def test_decrypt_arguments(self, monkeypatch):
        run = Recorder(stdout=b"A=1")
        monkeypatch.setattr(subprocess, "run", run)

        result = AgeCipher().decrypt(b"ciphertext", Path("/store/identities"))

        assert result == b"A=1"
        assert run.calls == [(["age", "-d", "--identity", "/store/identities"], b"ciphertext")]

    def test_encrypt_arguments(self, monkeypatch):
        run = Recorder()
        monkeypatch.setattr(subprocess, "run", run)

        recipients = RecipientSet(["age1aaa"], [Path("/store/recipients")])
        AgeCipher("/opt/bin/age").encrypt(b'A="1"', recipients, Path("/store/envs/svc"))

        assert run.calls == [([
            "/opt/bin/age", "-r", "age1aaa", "-R", "/store/recipients",
            "-o", "/store/envs/svc",
        ], b'A="1"')]

    def test_failure_carries_stderr(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", Recorder(returncode=1, stderr=b"age: error: no identity matched\n"))

        with pytest.raises(CipherProcessError) as info:
            AgeCipher().decrypt(b"x", Path("identities"))

        assert info.value.returncode == 1
        assert info.value.stderr == "age: error: no identity matched"

    def test_missing_binary(self):
        with pytest.raises(CipherProcessError) as info:
            AgeCipher("age-env-test-no-such-binary").decrypt(b"x", Path("identities"))
        assert info.value.returncode == 127

    def test_is_installed_missing_binary(self):
        assert not AgeCipher("age-env-test-no-such-binary").is_installed()
