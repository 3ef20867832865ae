"""A fixed-size ring of binary log records, dumped as JSON on demand.

Each record takes the same number of bytes: a 32-bit log point index, a
64-bit timestamp in nanoseconds, then the logged values packed little-endian.
Values that do not fit in the record are dropped.
"""

from __future__ import annotations

import json
import struct
import threading
import time
from dataclasses import dataclass, field
from typing import BinaryIO

MAX_DEBUGS = 16
"""Number of values per log point whose sizes are kept for decoding."""

_HEADER = struct.Struct("<IQ")
_VALUE_SIZES = (1, 2, 4, 8)


@dataclass(eq=False)
class LogEntry:
    """A logging point: a format string and the byte width of each value."""

    format: str
    sizes: tuple[int, ...] = ()
    index: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self.sizes = tuple(self.sizes)
        for size in self.sizes:
            if size not in _VALUE_SIZES:
                raise ValueError(f"bad value size {size}")


class Logger:
    """A ring buffer of ``entry_count`` records of ``entry_size`` bytes each."""

    def __init__(self, name: str, entry_size: int, entry_count: int) -> None:
        if entry_size < _HEADER.size:
            raise ValueError(f"entry size must be at least {_HEADER.size}")
        if entry_count <= 0:
            raise ValueError("entry count must be positive")
        self.name = name
        self.entry_size = entry_size
        self.entry_count = entry_count
        self._buf = bytearray(entry_size * entry_count)
        self._stopped = False
        self._next = 0
        self._next_index = 1
        self._entries: dict[int, LogEntry] = {}
        self._lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        """True once logging has been stopped."""
        return self._stopped

    def stop(self) -> None:
        """Stop logging; later calls to log() record nothing."""
        self._stopped = True

    def _entry_index(self, entry: LogEntry) -> int:
        with self._lock:
            if entry.index == 0:
                entry.index = self._next_index
                self._next_index += 1
            self._entries.setdefault(entry.index, entry)
            return entry.index

    def log(self, entry: LogEntry, *args: int) -> None:
        """Record the values of one log point in the next record, wrapping around."""
        if len(args) != len(entry.sizes):
            raise ValueError(
                f"log point takes {len(entry.sizes)} values, got {len(args)}"
            )
        try:
            encoded = [
                int(value).to_bytes(size, "little")
                for value, size in zip(args, entry.sizes)
            ]
        except OverflowError as exc:
            raise ValueError("value does not fit its size") from exc
        if self._stopped:
            return
        slot = self._next % self.entry_count
        self._next += 1
        base = slot * self.entry_size
        _HEADER.pack_into(self._buf, base, self._entry_index(entry), time.time_ns())
        offset = _HEADER.size
        for data in encoded:
            end = offset + len(data)
            if end <= self.entry_size:
                self._buf[base + offset : base + end] = data
            offset = end

    def raw_entry(self, slot: int) -> bytes:
        """Return the bytes of record ``slot``."""
        if not 0 <= slot < self.entry_count:
            raise IndexError(f"slot {slot} out of range")
        base = slot * self.entry_size
        return bytes(self._buf[base : base + self.entry_size])

    def _decode(self, slot: int) -> str | None:
        raw = self.raw_entry(slot)
        index, timestamp = _HEADER.unpack_from(raw, 0)
        if index == 0:
            return None
        with self._lock:
            entry = self._entries[index]
        vals = []
        offset = _HEADER.size
        for size in entry.sizes[:MAX_DEBUGS]:
            if offset + size > self.entry_size:
                break
            vals.append(int.from_bytes(raw[offset : offset + size], "little"))
            offset += size
        return (
            f'{{ "index": {index}, "format": {json.dumps(entry.format)}, '
            f'"timestamp": {timestamp}, "vals": [{",".join(map(str, vals))}]}}'
        )

    def serialize(self, file: BinaryIO) -> None:
        """Write all records, oldest first, to a binary file as JSON."""
        file.write(b'{"logs":[\n')
        start = self._next % self.entry_count
        slot = start
        while True:
            record = self._decode(slot)
            if record is not None:
                file.write(record.encode())
            slot = (slot + 1) % self.entry_count
            if slot == start:
                break
            if record is not None:
                file.write(b",\n")
        file.write(b"\n]}")