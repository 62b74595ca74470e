# minisftpd/hostkey.py
# -*- coding: utf-8 -*-

"""
Laden, Erzeugen und Speichern des Host-Schlüssels.

Der Schlüssel liegt als unverschlüsselter PKCS#8-PEM-Block ("PRIVATE KEY")
auf der Platte. Paramiko liest Ed25519-Schlüssel nur im OpenSSH-Container,
deshalb wird beim Laden im Speicher umkodiert.
"""

import io
import os

import paramiko
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from paramiko.ssh_exception import SSHException

from .util import get_logger

log = get_logger(__name__)

HOST_KEY_MODE = 0o600


class HostKeyError(SSHException):
    """Host-Schlüssel konnte nicht gelesen, erzeugt oder geparst werden."""


def ensure_host_key(path):
    """
    Gibt den Host-Schlüssel unter `path` zurück. Existiert die Datei nicht,
    wird ein neuer Ed25519-Schlüssel erzeugt und dort abgelegt.
    """
    if os.path.exists(path):
        log.info("Loading existing host key from %s", path)
        return load_host_key(path)

    log.info("Generating new ED25519 host key at %s", path)
    return generate_host_key(path)


def load_host_key(path):
    try:
        with open(path, "rb") as f:
            data = f.read()
    except (IOError, OSError) as e:
        raise HostKeyError("failed to read host key: {}".format(e))

    return parse_host_key(data)


def generate_host_key(path):
    private_key = ed25519.Ed25519PrivateKey.generate()
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )

    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, HOST_KEY_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(pem)
    except (IOError, OSError) as e:
        raise HostKeyError("failed to write host key: {}".format(e))

    log.info("Host key saved to %s", path)

    # Wie beim Laden: die geschriebenen Bytes sind die Quelle der Wahrheit.
    return parse_host_key(pem)


def parse_host_key(data):
    """
    Wandelt die Bytes eines privaten Schlüssels in ein paramiko.PKey um.
    Unterstützt PEM (PKCS#8 / traditionell) und den OpenSSH-Container.
    """
    try:
        private_key = _load_private_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise HostKeyError("failed to parse host key: {}".format(e))

    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        openssh = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.OpenSSH,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return paramiko.Ed25519Key(file_obj=io.StringIO(openssh.decode("ascii")))
    if isinstance(private_key, rsa.RSAPrivateKey):
        return paramiko.RSAKey(key=private_key)
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return paramiko.ECDSAKey(vals=(private_key, private_key.public_key()))

    raise HostKeyError(
        "failed to parse host key: unsupported key type {}".format(
            type(private_key).__name__
        )
    )


def _load_private_key(data):
    if b"OPENSSH PRIVATE KEY" in data:
        return serialization.load_ssh_private_key(data, password=None)
    return serialization.load_pem_private_key(data, password=None)
