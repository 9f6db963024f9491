"""
Побитовая запись и чтение.
Биты упаковываются в байты начиная со старшего бита.
"""

from typing import BinaryIO


class BitWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.bits_written = 0
        self._buffer = 0
        self._count = 0
        self._closed = False

    def __enter__(self) -> 'BitWriter':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def write_bit(self, bit: int):
        self.write_bits(1 if bit else 0, 1)

    def write_bits(self, value: int, width: int):
        if self._closed:
            raise ValueError("write to closed BitWriter")
        if width < 0:
            raise ValueError(f"Invalid bit width: {width}")
        if value < 0 or value >> width:
            raise ValueError(f"Value {value} does not fit in {width} bits")

        for shift in range(width - 1, -1, -1):
            self._buffer = (self._buffer << 1) | ((value >> shift) & 1)
            self._count += 1

            if self._count == 8:
                self.stream.write(bytes((self._buffer,)))
                self._buffer = 0
                self._count = 0

        self.bits_written += width

    @property
    def padding(self) -> int:
        return (8 - self.bits_written % 8) % 8

    def close(self):
        if self._closed:
            return

        if self._count:
            self.stream.write(bytes((self._buffer << (8 - self._count),)))
            self._buffer = 0
            self._count = 0

        self._closed = True


class BitReader:
    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    @property
    def bits_remaining(self) -> int:
        return len(self.data) * 8 - self.pos

    def read_bit(self) -> int:
        if self.pos >= len(self.data) * 8:
            raise EOFError("Unexpected end of bitstream")

        byte = self.data[self.pos >> 3]
        bit = (byte >> (7 - (self.pos & 7))) & 1
        self.pos += 1
        return bit

    def read_bits(self, width: int) -> int:
        value = 0
        for _ in range(width):
            value = (value << 1) | self.read_bit()
        return value
