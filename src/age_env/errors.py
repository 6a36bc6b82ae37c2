"""Exceptions raised by age-env."""


class AgeEnvError(Exception):
    """Base exception for age-env errors."""
    pass


class StoreNotInitialized(AgeEnvError):
    """Identity file missing, nothing can be decrypted."""
    pass


class MissingRecipientsError(AgeEnvError):
    """No recipient source available for an encryption."""
    pass


class EnvironmentNotFound(AgeEnvError):
    """Environment does not exist in the store."""
    pass


class EnvironmentAlreadyExists(AgeEnvError):
    """Environment exists and overwriting was not confirmed."""
    pass


class InvalidEnvironmentName(AgeEnvError):
    """Environment name is not filesystem-safe."""
    pass


class FormatError(AgeEnvError):
    """Malformed KEY=VALUE text."""
    pass


class KeyNotFoundError(AgeEnvError):
    """Secret key not found."""
    pass


class ConfigError(AgeEnvError):
    """Store configuration file could not be read."""
    pass


class CommandNotFound(AgeEnvError):
    """Command to run with an environment could not be started."""
    pass


class AbortedByUser(AgeEnvError):
    """Confirmation prompt declined."""
    pass


class CipherProcessError(AgeEnvError):
    """The age command failed."""

    def __init__(self, message: str, returncode: int = 1, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
