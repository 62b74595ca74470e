# minisftpd/sftp_local.py
# -*- coding: utf-8 -*-

"""
SFTP-Backend auf dem lokalen Dateisystem. Das Protokoll selbst spricht
paramiko.SFTPServer; hier werden nur Pfade und Dateioperationen abgebildet.
"""

import os

import paramiko
from paramiko import SFTP_OK, SFTPAttributes, SFTPHandle, SFTPServer

from .util import get_logger

log = get_logger(__name__)


class SFTPSession(SFTPServer):
    """paramiko.SFTPServer mit Start- und Ende-Meldung im Log."""

    def start_subsystem(self, name, transport, channel):
        log.info("SFTP session started on channel %d", channel.get_id())
        try:
            super().start_subsystem(name, transport, channel)
        finally:
            log.info("SFTP session ended on channel %d", channel.get_id())


class LocalSFTPHandle(SFTPHandle):
    def stat(self):
        try:
            return SFTPAttributes.from_stat(os.fstat(self.readfile.fileno()))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

    def chattr(self, attr):
        try:
            SFTPServer.set_file_attr(self.filename, attr)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK


class LocalSFTPServer(paramiko.SFTPServerInterface):
    """
    Bildet SFTP-Pfade unterhalb von `root` ab. Mit root="/" ist das gesamte
    Dateisystem sichtbar, mit jedem anderen Verzeichnis kommt man nicht über
    dieses hinaus ("/.." bleibt "/").
    """

    def __init__(self, server, root="/", *args, **kwargs):
        super().__init__(server, *args, **kwargs)
        self.root = os.path.abspath(root)

    def _realpath(self, path):
        return self.root.rstrip("/") + self.canonicalize(path)

    def list_folder(self, path):
        path = self._realpath(path)
        try:
            out = []
            for fname in os.listdir(path):
                attr = SFTPAttributes.from_stat(os.lstat(os.path.join(path, fname)))
                attr.filename = fname
                out.append(attr)
            return out
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

    def stat(self, path):
        try:
            return SFTPAttributes.from_stat(os.stat(self._realpath(path)))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

    def lstat(self, path):
        try:
            return SFTPAttributes.from_stat(os.lstat(self._realpath(path)))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

    def open(self, path, flags, attr):
        path = self._realpath(path)
        try:
            flags |= getattr(os, "O_BINARY", 0)
            mode = getattr(attr, "st_mode", None)
            fd = os.open(path, flags, mode if mode is not None else 0o666)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

        if (flags & os.O_CREAT) and (attr is not None):
            attr._flags &= ~attr.FLAG_PERMISSIONS
            SFTPServer.set_file_attr(path, attr)

        if flags & os.O_WRONLY:
            fstr = "ab" if flags & os.O_APPEND else "wb"
        elif flags & os.O_RDWR:
            fstr = "a+b" if flags & os.O_APPEND else "r+b"
        else:
            fstr = "rb"

        try:
            f = os.fdopen(fd, fstr)
        except OSError as e:
            os.close(fd)
            return SFTPServer.convert_errno(e.errno)

        handle = LocalSFTPHandle(flags)
        handle.filename = path
        handle.readfile = f
        handle.writefile = f
        return handle

    def remove(self, path):
        try:
            os.remove(self._realpath(path))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def rename(self, oldpath, newpath):
        oldpath = self._realpath(oldpath)
        newpath = self._realpath(newpath)
        # SFTPv3: rename überschreibt kein bestehendes Ziel.
        if os.path.lexists(newpath):
            return paramiko.SFTP_FAILURE
        try:
            os.rename(oldpath, newpath)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def posix_rename(self, oldpath, newpath):
        try:
            os.replace(self._realpath(oldpath), self._realpath(newpath))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def mkdir(self, path, attr):
        path = self._realpath(path)
        try:
            os.mkdir(path)
            if attr is not None:
                SFTPServer.set_file_attr(path, attr)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def rmdir(self, path):
        try:
            os.rmdir(self._realpath(path))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def chattr(self, path, attr):
        try:
            SFTPServer.set_file_attr(self._realpath(path), attr)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def symlink(self, target_path, path):
        path = self._realpath(path)
        if len(target_path) > 0 and target_path[0] == "/":
            # absolutes Ziel liegt ebenfalls unterhalb von root
            target_path = self._realpath(target_path)
        try:
            os.symlink(target_path, path)
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)
        return SFTP_OK

    def readlink(self, path):
        try:
            symlink = os.readlink(self._realpath(path))
        except OSError as e:
            return SFTPServer.convert_errno(e.errno)

        root = self.root.rstrip("/")
        if os.path.isabs(symlink) and root:
            if symlink[: len(root) + 1] != root + "/":
                return paramiko.SFTP_NO_SUCH_FILE
            symlink = symlink[len(root):]
        return symlink
