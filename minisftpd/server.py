# minisftpd/server.py
# -*- coding: utf-8 -*-

"""
Server-Schnittstelle für Paramiko, Verbindungs-Handler und Accept-Schleife.
"""

import errno
import socket
import threading

import paramiko
from paramiko.common import MSG_CHANNEL_REQUEST, cMSG_CHANNEL_FAILURE
from paramiko.message import Message
from paramiko.ssh_exception import SSHException

from .dispatch import SUBSYSTEM_REQUEST, ChannelDispatcher
from .util import get_logger

log = get_logger(__name__)

# Fehler am Listen-Socket, nach denen accept() nicht mehr sinnvoll ist.
FATAL_ACCEPT_ERRNOS = (errno.EBADF, errno.EINVAL, errno.ENOTSOCK)

# Fehlgeschlagene Passwortversuche, nach denen die Verbindung getrennt wird.
MAX_AUTH_TRIES = 6


class SessionServer(paramiko.ServerInterface):
    """
    Eine Instanz pro Verbindung. Authentifiziert ein einzelnes Passwort-Paar
    und reicht Kanal-Anfragen an den ChannelDispatcher weiter.
    """

    def __init__(self, validator, remote_addr, poll_interval=1.0):
        self.validator = validator
        self.remote_addr = remote_addr
        self.poll_interval = poll_interval
        self.authenticated = False
        self.auth_failures = 0
        self.auth_done = threading.Event()
        self.dispatcher = ChannelDispatcher(
            remote_addr, self._start_subsystem, poll_interval=poll_interval
        )

    def get_allowed_auths(self, username):
        return "password"

    def check_auth_password(self, username, password):
        if self.validator.validate(username, password, self.remote_addr):
            self.authenticated = True
            self.auth_done.set()
            return paramiko.AUTH_SUCCESSFUL
        self.auth_failures += 1
        if self.auth_failures >= MAX_AUTH_TRIES:
            self.auth_done.set()
        return paramiko.AUTH_FAILED

    def wait_for_auth(self, transport):
        """
        Blockiert, bis die Anmeldung gelungen ist, zu oft fehlschlug oder der
        Transport beendet wurde. Gibt zurück, ob angemeldet wurde.
        """
        while transport.is_active() and not self.auth_done.is_set():
            self.auth_done.wait(self.poll_interval)
        return self.authenticated and transport.is_active()

    def check_channel_request(self, kind, chanid):
        return self.dispatcher.check_open(kind, chanid)

    def check_channel_direct_tcpip_request(self, chanid, origin, destination):
        return self.dispatcher.check_open("direct-tcpip", chanid)

    def check_channel_subsystem_request(self, channel, name):
        return self.dispatcher.route(channel, SUBSYSTEM_REQUEST, name)

    def check_channel_shell_request(self, channel):
        return self.dispatcher.route(channel, "shell")

    def check_channel_exec_request(self, channel, command):
        return self.dispatcher.route(channel, "exec")

    def check_channel_pty_request(
        self, channel, term, width, height, pixelwidth, pixelheight, modes
    ):
        return self.dispatcher.route(channel, "pty-req")

    def check_channel_env_request(self, channel, name, value):
        return self.dispatcher.route(channel, "env")

    def check_global_request(self, kind, msg):
        # Keine serverweiten Fähigkeiten: verwerfen.
        log.debug("Discarding global request %r from %s", kind, self.remote_addr)
        return False

    def _start_subsystem(self, channel, name):
        # Paramikos Standardweg: den per set_subsystem_handler registrierten
        # Handler in einem eigenen Thread starten.
        return paramiko.ServerInterface.check_channel_subsystem_request(
            self, channel, name
        )


def _handle_channel_request(chan, m):
    # Paramiko dekodiert Request-Typ und Subsystem-Namen strikt als UTF-8;
    # ein ungültiger String lässt nur diesen Request scheitern.
    start = m.packet.tell()
    kind = m.get_binary()
    want_reply = m.get_boolean()
    m.packet.seek(start)
    try:
        paramiko.Channel._handle_request(chan, m)
    except UnicodeDecodeError as e:
        log.warning(
            "Rejecting undecodable %r request on channel %d: %s",
            kind,
            chan.get_id(),
            e,
        )
        if want_reply:
            reply = Message()
            reply.add_byte(cMSG_CHANNEL_FAILURE)
            reply.add_int(chan.remote_chanid)
            chan.transport._send_user_message(reply)


class SessionTransport(paramiko.Transport):
    """
    Transport, der Kanal-Requests mit ungültig kodierten Strings ablehnt,
    statt die Verbindung abzubrechen.
    """

    _channel_handler_table = dict(paramiko.Transport._channel_handler_table)
    _channel_handler_table[MSG_CHANNEL_REQUEST] = _handle_channel_request


def handle_connection(sock, addr, config, poll_interval=1.0):
    """
    Bedient eine einzelne TCP-Verbindung vom Handshake bis zum Ende.
    Fehler verlassen diese Funktion nicht.
    """
    log.info("New connection from %s", addr)

    transport = None
    try:
        transport = SessionTransport(sock)
        config.install(transport)
        transport.load_server_moduli()

        server = SessionServer(config.validator, addr, poll_interval=poll_interval)
        try:
            transport.start_server(server=server)
        except (SSHException, EOFError, socket.error) as e:
            log.warning("Failed to handshake with %s: %s", addr, e)
            return

        # start_server() kehrt nach dem Schlüsseltausch zurück, die Anmeldung
        # läuft danach noch im Transport-Thread.
        if not server.wait_for_auth(transport):
            log.warning("Failed to handshake with %s: authentication failed", addr)
            return

        log.info(
            "SSH connection established from %s (%s)", addr, transport.remote_version
        )
        count = server.dispatcher.serve(transport)
        log.info("Connection from %s closed after %d channel(s)", addr, count)
    except Exception:
        log.exception("Unexpected error while handling connection from %s", addr)
    finally:
        if transport is not None:
            transport.close()
        sock.close()


class Acceptor:
    """
    Besitzt den Listen-Socket und startet pro Verbindung einen Thread.
    Die Zahl gleichzeitiger Verbindungen ist nicht begrenzt.
    """

    def __init__(self, config, accept_timeout=0.5):
        self.config = config
        self.accept_timeout = accept_timeout
        self.sock = None
        self._closed = threading.Event()

    @property
    def server_address(self):
        return self.sock.getsockname()

    def bind(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.address, self.config.port))
            sock.listen(100)
        except OSError:
            sock.close()
            raise
        sock.settimeout(self.accept_timeout)
        self.sock = sock
        return sock

    def serve_forever(self):
        if self.sock is None:
            self.bind()

        while not self._closed.is_set():
            try:
                client_sock, addr = self.sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._closed.is_set():
                    break
                if e.errno in FATAL_ACCEPT_ERRNOS:
                    raise
                log.warning("Failed to accept connection: %s", e)
                continue

            thread = threading.Thread(
                target=handle_connection,
                args=(client_sock, addr, self.config),
                name="conn-{}:{}".format(*addr[:2]),
            )
            thread.daemon = True
            thread.start()

    def close(self):
        self._closed.set()
        if self.sock is not None:
            self.sock.close()
