# minisftpd/__main__.py
# -*- coding: utf-8 -*-

"""
Kommandozeile: `python -m minisftpd --port 2022 --hostkey PATH --user U --pass P`
"""

import argparse
import sys

from .auth import PasswordValidator
from .config import (
    DEFAULT_HOST_KEY_PATH,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_USERNAME,
    ServerConfig,
)
from .hostkey import HostKeyError, ensure_host_key
from .server import Acceptor
from .util import get_logger, log_to_stderr

log = get_logger("minisftpd")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="minisftpd", description="Minimal SFTP server with a single user."
    )
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="Port to listen on"
    )
    parser.add_argument(
        "--hostkey", default=DEFAULT_HOST_KEY_PATH, help="Path to host key file"
    )
    parser.add_argument(
        "--user", default=DEFAULT_USERNAME, help="Username for authentication"
    )
    parser.add_argument(
        "--pass",
        dest="password",
        default=DEFAULT_PASSWORD,
        help="Password for authentication",
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Startet den Server. Rückgabewert ist der Exit-Code."""
    args = parse_args(argv)
    log_to_stderr()

    try:
        host_key = ensure_host_key(args.hostkey)
    except HostKeyError as e:
        log.critical("Failed to load or generate host key: %s", e)
        return 1

    config = ServerConfig(
        host_key, PasswordValidator(args.user, args.password), port=args.port
    )
    acceptor = Acceptor(config)
    try:
        acceptor.bind()
    except OSError as e:
        log.critical("Failed to listen on port %d: %s", args.port, e)
        return 1

    log.info("SFTP server listening on port %d", args.port)
    log.info("Username: %s", args.user)

    try:
        acceptor.serve_forever()
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    except OSError as e:
        log.critical("Listening socket failed: %s", e)
        return 1
    finally:
        acceptor.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
