"""Writing ZIP archives whose entries may be AES-256 encrypted (WinZip AE-2)."""

from __future__ import annotations

import hashlib
import hmac
import os
import struct
import zlib
from datetime import datetime
from typing import BinaryIO

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_LOCAL = struct.Struct("<4s5H3L2H")
_CENTRAL = struct.Struct("<4s6H3L5H2L")
_END = struct.Struct("<4s4H2LH")
_AES_EXTRA = struct.Struct("<HHH2sBH")

_METHOD_DEFLATE = 8
_METHOD_AES = 99
_FLAG_ENCRYPTED = 0x1
_FLAG_UTF8 = 0x800
_SALT_SIZE = 16
_KEY_SIZE = 32
_AUTH_SIZE = 10


def _dos_datetime(moment: datetime) -> tuple[int, int]:
    if moment.year < 1980:
        moment = datetime(1980, 1, 1)
    date = ((moment.year - 1980) << 9) | (moment.month << 5) | moment.day
    time = (moment.hour << 11) | (moment.minute << 5) | (moment.second // 2)
    return time, date


def _ctr_xor(key: bytes, data: bytes) -> bytes:
    """Apply AES in counter mode with the little-endian counter WinZip uses."""
    if not data:
        return b""
    blocks = (len(data) + 15) // 16
    counters = b"".join(number.to_bytes(16, "little") for number in range(1, blocks + 1))
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    keystream = (encryptor.update(counters) + encryptor.finalize())[: len(data)]
    size = len(data)
    mixed = int.from_bytes(data, "big") ^ int.from_bytes(keystream, "big")
    return mixed.to_bytes(size, "big")


def _encrypt(password: str, compressed: bytes) -> bytes:
    salt = os.urandom(_SALT_SIZE)
    kdf = PBKDF2HMAC(algorithm=hashes.SHA1(), length=2 * _KEY_SIZE + 2, salt=salt, iterations=1000)
    material = kdf.derive(password.encode("utf-8"))
    enc_key = material[:_KEY_SIZE]
    mac_key = material[_KEY_SIZE:2 * _KEY_SIZE]
    verifier = material[2 * _KEY_SIZE:]
    ciphertext = _ctr_xor(enc_key, compressed)
    auth = hmac.new(mac_key, ciphertext, hashlib.sha1).digest()[:_AUTH_SIZE]
    return salt + verifier + ciphertext + auth


class ZipArchiveWriter:
    """Writes deflated entries to a ZIP archive, encrypting those given a password."""

    def __init__(self, target: str | os.PathLike[str] | BinaryIO) -> None:
        if isinstance(target, (str, os.PathLike)):
            self._file: BinaryIO = open(target, "wb")
            self._owns_file = True
        else:
            self._file = target
            self._owns_file = False
        self._offset = 0
        self._central: list[bytes] = []
        self._closed = False

    def _write(self, data: bytes) -> None:
        self._file.write(data)
        self._offset += len(data)

    def add(self, arcname: str, data: bytes, password: str | None = None) -> None:
        """Store *data* under *arcname*; a non-empty *password* encrypts it."""
        if self._closed:
            raise ValueError("archive is closed")
        name = arcname.replace(os.sep, "/").lstrip("/").encode("utf-8")
        compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
        compressed = compressor.compress(data) + compressor.flush()
        flags = _FLAG_UTF8
        if password:
            payload = _encrypt(password, compressed)
            method, crc, version = _METHOD_AES, 0, 51
            extra = _AES_EXTRA.pack(0x9901, 7, 2, b"AE", 3, _METHOD_DEFLATE)
            flags |= _FLAG_ENCRYPTED
        else:
            payload = compressed
            method, crc, version = _METHOD_DEFLATE, zlib.crc32(data), 20
            extra = b""
        time, date = _dos_datetime(datetime.now())
        offset = self._offset
        self._write(
            _LOCAL.pack(
                b"PK\x03\x04", version, flags, method, time, date,
                crc, len(payload), len(data), len(name), len(extra),
            )
        )
        self._write(name + extra + payload)
        self._central.append(
            _CENTRAL.pack(
                b"PK\x01\x02", 20, version, flags, method, time, date,
                crc, len(payload), len(data), len(name), len(extra), 0, 0, 0,
                0o644 << 16, offset,
            )
            + name
            + extra
        )

    def close(self) -> None:
        """Write the central directory and close the file if it was opened here."""
        if self._closed:
            return
        self._closed = True
        start = self._offset
        for record in self._central:
            self._write(record)
        count = len(self._central)
        self._write(_END.pack(b"PK\x05\x06", 0, 0, count, count, self._offset - start, start, 0))
        self._file.flush()
        if self._owns_file:
            self._file.close()

    def __enter__(self) -> ZipArchiveWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()