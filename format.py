"""
Определяет заголовок сжатого файла и методы чтения/записи.
"""

import struct
import zlib
from dataclasses import dataclass


MAGIC = b'HUFF'
FORMAT_VERSION = 1
MAX_SYMBOLS = 256

HEADER_FORMAT = '<4sBBHQI'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)


@dataclass
class FileHeader:
    symbol_count: int
    original_size: int
    crc32: int
    padding: int = 0
    version: int = FORMAT_VERSION

    def serialize(self) -> bytes:
        return struct.pack(HEADER_FORMAT, MAGIC, self.version, self.padding,
                           self.symbol_count, self.original_size, self.crc32)

    @staticmethod
    def deserialize(data: bytes) -> 'FileHeader':
        if len(data) < HEADER_SIZE:
            raise ValueError("File too small for header")

        magic, version, padding, symbol_count, original_size, crc32 = \
            struct.unpack_from(HEADER_FORMAT, data, 0)

        if magic != MAGIC:
            raise ValueError("Invalid file magic")

        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported version: {version}")

        if padding > 7:
            raise ValueError(f"Invalid padding: {padding}")

        if symbol_count > MAX_SYMBOLS:
            raise ValueError(f"Invalid symbol count: {symbol_count}")

        if original_size and not symbol_count:
            raise ValueError("Corrupted header: data without symbols")

        return FileHeader(
            symbol_count=symbol_count,
            original_size=original_size,
            crc32=crc32,
            padding=padding,
            version=version
        )


def calculate_crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xffffffff
