"""
age-env - encrypted environments for the age encryption tool.

Keep named sets of secrets as age-encrypted files and hand them to
commands or shell sessions without leaving plaintext on disk.

Features:
- create: Encrypt a KEY=VALUE env file (or stdin) under a name
- show / show-for-eval: Print an environment, optionally as shell exports
- run-with-env: Run a command with an environment injected
- preload / passthrough: Reuse decrypted material within one shell session

Requires: age (for encryption)
"""

__version__ = "0.1.0"
