"""
Passphrase Module

Obtains the passphrase protecting a private key, either from an environment
variable or from an interactive terminal prompt.
"""

import getpass
import os
from typing import Callable, Mapping, Optional

from .errors import PassphraseMismatch

DEFAULT_PASSWORD_ENV = 'IMAGESIGN_PASSWORD'


class PassphraseProvider:
    """Callable source of key passphrases."""

    def __init__(self,
                 password_env: str = DEFAULT_PASSWORD_ENV,
                 environ: Optional[Mapping[str, str]] = None,
                 prompt: Optional[Callable[[str], str]] = None):
        self.password_env = password_env
        self.environ = environ if environ is not None else os.environ
        self.prompt = prompt or getpass.getpass

    def obtain_passphrase(self, interactive: bool = False, confirm: bool = False) -> bytes:
        """
        Return the key passphrase.

        The environment variable wins when it is set. Otherwise the user is
        prompted when interactive, and an empty passphrase is returned when
        not. With confirm, a typed passphrase must be entered twice.
        """
        if self.password_env in self.environ:
            return self.environ[self.password_env].encode('utf-8')

        if interactive:
            passphrase = self.prompt('Enter password for private key: ')
            if confirm and self.prompt('Enter password for private key again: ') != passphrase:
                raise PassphraseMismatch()
            return passphrase.encode('utf-8')

        return b''

    def __call__(self, interactive: bool = False) -> bytes:
        return self.obtain_passphrase(interactive)
