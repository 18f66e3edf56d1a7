"""
bionet module: storage/records.py

Sequential record stream used by every saved object (networks, behaviors,
random state, morph populations).

Two encodings share one API:
- binary: little-endian struct records
- text: one value per line, floats via repr() so they round-trip exactly
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import IO, Iterator
import struct


class PersistenceError(Exception):
    """Missing file, truncated record, bad value or format mismatch."""


_INT = struct.Struct("<q")
_FLOAT = struct.Struct("<d")
_BOOL = struct.Struct("<?")


class RecordWriter:
    def __init__(self, fp: IO, binary: bool = True):
        self.fp = fp
        self.binary = binary

    def _line(self, text: str) -> None:
        self.fp.write(text + "\n")

    def write_int(self, value: int) -> None:
        if self.binary:
            self.fp.write(_INT.pack(int(value)))
        else:
            self._line(str(int(value)))

    def write_float(self, value: float) -> None:
        if self.binary:
            self.fp.write(_FLOAT.pack(float(value)))
        else:
            self._line(repr(float(value)))

    def write_bool(self, value: bool) -> None:
        if self.binary:
            self.fp.write(_BOOL.pack(bool(value)))
        else:
            self._line("1" if value else "0")

    def write_string(self, value: str) -> None:
        data = value.encode("utf-8")
        if self.binary:
            self.fp.write(_INT.pack(len(data)))
            self.fp.write(data)
        else:
            if "\n" in value:
                raise PersistenceError("text records cannot hold newlines")
            self._line(value)


class RecordReader:
    def __init__(self, fp: IO, binary: bool = True):
        self.fp = fp
        self.binary = binary

    def _take(self, size: int) -> bytes:
        data = self.fp.read(size)
        if len(data) != size:
            raise PersistenceError("truncated record")
        return data

    def _line(self) -> str:
        line = self.fp.readline()
        if not line:
            raise PersistenceError("truncated record")
        return line.rstrip("\n")

    def read_int(self) -> int:
        if self.binary:
            return _INT.unpack(self._take(_INT.size))[0]
        text = self._line()
        try:
            return int(text)
        except ValueError as err:
            raise PersistenceError(f"bad integer record {text!r}") from err

    def read_float(self) -> float:
        if self.binary:
            return _FLOAT.unpack(self._take(_FLOAT.size))[0]
        text = self._line()
        try:
            return float(text)
        except ValueError as err:
            raise PersistenceError(f"bad float record {text!r}") from err

    def read_bool(self) -> bool:
        if self.binary:
            return _BOOL.unpack(self._take(_BOOL.size))[0]
        text = self._line()
        if text not in ("0", "1"):
            raise PersistenceError(f"bad boolean record {text!r}")
        return text == "1"

    def read_string(self) -> str:
        if self.binary:
            size = self.read_int()
            if size < 0:
                raise PersistenceError("negative string length")
            return self._take(size).decode("utf-8")
        return self._line()


def expect_format(reader: RecordReader, expected: int, what: str) -> None:
    found = reader.read_int()
    if found != expected:
        raise PersistenceError(f"{what} format {found} does not match expected {expected}")


@contextmanager
def open_records(path: str, mode: str = "r", binary: bool = True) -> Iterator:
    """
    Open `path` as a RecordReader (mode "r") or RecordWriter (mode "w").
    """
    if mode not in ("r", "w"):
        raise ValueError(f"mode must be 'r' or 'w', not {mode!r}")
    file_mode = mode + ("b" if binary else "")
    try:
        fp = open(path, file_mode) if binary else open(path, file_mode, encoding="utf-8", newline="\n")
    except OSError as err:
        raise PersistenceError(f"cannot open {path}: {err}") from err
    with fp:
        if mode == "r":
            yield RecordReader(fp, binary)
        else:
            yield RecordWriter(fp, binary)
