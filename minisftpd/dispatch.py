# minisftpd/dispatch.py
# -*- coding: utf-8 -*-

"""
Kanal- und Request-Verteilung innerhalb einer SSH-Verbindung.

Paramiko ruft die Prüfmethoden des ServerInterface im Transport-Thread auf
und sendet die Antwort aus deren Rückgabewert. Jeder Request wird daher genau
einmal beantwortet; hier wird nur entschieden, wie.
"""

import paramiko

from .util import get_logger

log = get_logger(__name__)

SESSION_CHANNEL = "session"
SUBSYSTEM_REQUEST = "subsystem"
SFTP_SUBSYSTEM = "sftp"

# Zustände des SubsystemRouter.
AWAIT_REQUEST = "await-request"
DISPATCHED = "dispatched"


class SubsystemRouter:
    """
    Zustandsautomat eines Session-Kanals: AWAIT_REQUEST -> DISPATCHED.

    `handoff(channel, name)` startet den Protokoll-Handler und gibt zurück,
    ob das geklappt hat. Nach der Übergabe wird jeder weitere Request
    abgelehnt.
    """

    def __init__(self, chanid, handoff):
        self.chanid = chanid
        self.state = AWAIT_REQUEST
        self._handoff = handoff

    def handle(self, channel, kind, name=None):
        if self.state == DISPATCHED:
            log.warning(
                "Rejecting %s request on channel %d: already dispatched",
                kind,
                self.chanid,
            )
            return False

        if kind != SUBSYSTEM_REQUEST:
            log.info("Rejecting %s request on channel %d", kind, self.chanid)
            return False

        if name != SFTP_SUBSYSTEM:
            log.info(
                "Rejecting unknown subsystem %r on channel %d", name, self.chanid
            )
            return False

        if not self._handoff(channel, name):
            log.error(
                "No handler could be started for subsystem %r on channel %d",
                name,
                self.chanid,
            )
            return False

        self.state = DISPATCHED
        log.info("Starting SFTP subsystem on channel %d", self.chanid)
        return True


class ChannelDispatcher:
    """
    Nimmt pro Verbindung nur Kanäle vom Typ "session" an und hält für jeden
    angenommenen Kanal einen SubsystemRouter.
    """

    def __init__(self, remote_addr, handoff, poll_interval=1.0):
        self.remote_addr = remote_addr
        self.poll_interval = poll_interval
        self.routers = {}
        self.channels = []
        self._handoff = handoff

    def check_open(self, kind, chanid):
        if kind != SESSION_CHANNEL:
            log.warning(
                "Rejecting channel %d of unknown type %r from %s",
                chanid,
                kind,
                self.remote_addr,
            )
            return paramiko.OPEN_FAILED_UNKNOWN_CHANNEL_TYPE

        self.routers[chanid] = SubsystemRouter(chanid, self._handoff)
        return paramiko.OPEN_SUCCEEDED

    def route(self, channel, kind, name=None):
        router = self.routers.get(channel.get_id())
        if router is None:
            log.warning(
                "Rejecting %s request on unknown channel %d", kind, channel.get_id()
            )
            return False
        return router.handle(channel, kind, name)

    def serve(self, transport):
        """
        Holt angenommene Kanäle ab, bis der Transport nicht mehr aktiv ist.
        Geschlossene Kanäle werden laufend aussortiert, beim Verlassen werden
        alle noch offenen geschlossen. Rückgabe: Zahl der angenommenen Kanäle.
        """
        accepted = 0
        try:
            while transport.is_active():
                self._forget_closed()
                channel = transport.accept(self.poll_interval)
                if channel is None:
                    continue
                log.info(
                    "Accepted session channel %d from %s",
                    channel.get_id(),
                    self.remote_addr,
                )
                self.channels.append(channel)
                accepted += 1
        finally:
            for channel in self.channels:
                channel.close()
            self.channels = []
            self.routers.clear()
        return accepted

    def _forget_closed(self):
        still_open = []
        for channel in self.channels:
            if channel.closed:
                self.routers.pop(channel.get_id(), None)
            else:
                still_open.append(channel)
        self.channels = still_open
