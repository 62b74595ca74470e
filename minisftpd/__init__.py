# minisftpd/__init__.py
# -*- coding: utf-8 -*-

"""
Ein minimaler SFTP-Server auf Basis von Paramiko.
"""

from .auth import PasswordValidator
from .config import ServerConfig
from .hostkey import HostKeyError, ensure_host_key
from .server import Acceptor, SessionServer, handle_connection

__version__ = "0.1.0"

__all__ = [
    "Acceptor",
    "HostKeyError",
    "PasswordValidator",
    "ServerConfig",
    "SessionServer",
    "ensure_host_key",
    "handle_connection",
]
