# tests/conftest.py
# -*- coding: utf-8 -*-

import threading

import paramiko
import pytest

from minisftpd.auth import PasswordValidator
from minisftpd.config import ServerConfig
from minisftpd.hostkey import ensure_host_key
from minisftpd.server import Acceptor

from _util import PASS, USER, EchoSubsystem


@pytest.fixture
def host_key(tmp_path):
    return ensure_host_key(str(tmp_path / "host_ed25519_key"))


@pytest.fixture
def start_server(host_key):
    """Startet einen Acceptor auf 127.0.0.1 und gibt dessen Port zurück."""
    acceptors = []

    def start(**kwargs):
        config = ServerConfig(
            host_key,
            PasswordValidator(USER, PASS),
            address="127.0.0.1",
            port=0,
            **kwargs
        )
        acceptor = Acceptor(config, accept_timeout=0.1)
        acceptor.bind()
        thread = threading.Thread(target=acceptor.serve_forever)
        thread.daemon = True
        thread.start()
        acceptors.append((acceptor, thread))
        return acceptor.server_address[1]

    yield start

    for acceptor, thread in acceptors:
        acceptor.close()
        thread.join(timeout=5)


@pytest.fixture
def echo_server(start_server):
    served = []
    port = start_server(subsystem_handler=EchoSubsystem, subsystem_args=(served,))
    return port, served


@pytest.fixture
def connect():
    transports = []

    def connect(port, username=USER, password=PASS):
        t = paramiko.Transport(("127.0.0.1", port))
        transports.append(t)
        t.connect(username=username, password=password)
        return t

    yield connect

    for t in transports:
        t.close()
