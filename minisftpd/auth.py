# minisftpd/auth.py
# -*- coding: utf-8 -*-

import hmac

from .util import get_logger

log = get_logger(__name__)


class PasswordValidator:
    """
    Prüft Benutzername und Passwort gegen ein einziges, fest konfiguriertes
    Paar. Verglichen wird bytegenau (UTF-8), ohne Hashing oder Sperren.
    """

    def __init__(self, username, password):
        self.username = username
        self._password = password

    def validate(self, username, password, remote_addr=None):
        # Beide Vergleiche laufen immer, damit die Laufzeit nichts verrät.
        user_ok = hmac.compare_digest(_encode(username), _encode(self.username))
        pass_ok = hmac.compare_digest(_encode(password), _encode(self._password))

        if user_ok and pass_ok:
            log.info(
                "User %s authenticated successfully from %s", username, remote_addr
            )
            return True

        log.warning(
            "Failed authentication attempt for user %s from %s", username, remote_addr
        )
        return False


def _encode(value):
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")
