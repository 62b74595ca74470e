# minisftpd/config.py
# -*- coding: utf-8 -*-

from .dispatch import SFTP_SUBSYSTEM
from .sftp_local import LocalSFTPServer, SFTPSession

DEFAULT_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 2022
DEFAULT_HOST_KEY_PATH = "/keys/host_ed25519_key"
DEFAULT_USERNAME = "testuser"
DEFAULT_PASSWORD = "testpass"


class ServerConfig:
    """
    Prozessweite Konfiguration. Wird einmal beim Start gebaut und danach von
    allen Verbindungs-Threads nur gelesen.

    Ohne eigenen `subsystem_handler` wird SFTPSession mit LocalSFTPServer
    unterhalb von `sftp_root` registriert.
    """

    def __init__(
        self,
        host_key,
        validator,
        address=DEFAULT_ADDRESS,
        port=DEFAULT_PORT,
        sftp_root="/",
        subsystem_handler=None,
        subsystem_args=(),
        subsystem_kwargs=None,
    ):
        self.host_key = host_key
        self.validator = validator
        self.address = address
        self.port = port
        self.sftp_root = sftp_root

        if subsystem_handler is None:
            subsystem_handler = SFTPSession
            subsystem_args = (LocalSFTPServer,)
            subsystem_kwargs = {"root": sftp_root}
        self.subsystem_handler = subsystem_handler
        self.subsystem_args = tuple(subsystem_args)
        self.subsystem_kwargs = dict(subsystem_kwargs or {})

    def install(self, transport):
        """Host-Schlüssel und SFTP-Handler an einem Server-Transport eintragen."""
        transport.add_server_key(self.host_key)
        transport.set_subsystem_handler(
            SFTP_SUBSYSTEM,
            self.subsystem_handler,
            *self.subsystem_args,
            **self.subsystem_kwargs
        )
