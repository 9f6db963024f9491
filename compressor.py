"""
Главный класс для сжатия файлов кодом Хаффмана.
"""

import io
import os
import tempfile
from dataclasses import dataclass
from typing import List, Optional

from bitio import BitReader, BitWriter
from format import FileHeader, HEADER_SIZE, calculate_crc32
from frequency import distinct_symbols, frequency_table, read_source
from huffman import (build_tree, encoding_table, make_huffman_queue,
                     read_tree, write_payload, write_tree)


COMPRESSED_SUFFIX = '.huff'


@dataclass
class CompressionResult:
    source_path: str
    output_path: str
    original_size: int
    compressed_size: int
    symbol_count: int

    @property
    def ratio(self) -> float:
        return (self.compressed_size / self.original_size * 100) if self.original_size > 0 else 0


def compress_data(data: bytes, frequencies: Optional[List[int]] = None) -> bytes:
    if frequencies is None:
        frequencies = frequency_table(data)
    root = build_tree(make_huffman_queue(frequencies))
    table = encoding_table(root)

    body = io.BytesIO()
    with BitWriter(body) as writer:
        write_tree(root, writer)
        write_payload(data, table, writer)

    header = FileHeader(
        symbol_count=distinct_symbols(frequencies),
        original_size=len(data),
        crc32=calculate_crc32(data),
        padding=writer.padding
    )

    return header.serialize() + body.getvalue()


def _default_file_mode() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def _write_atomic(output_path: str, data: bytes):
    directory = os.path.dirname(os.path.abspath(output_path))
    fd, temp_path = tempfile.mkstemp(prefix='.', suffix='.tmp', dir=directory)

    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        # mkstemp creates 0600; match what open() would have produced
        os.chmod(temp_path, _default_file_mode())
        os.replace(temp_path, output_path)
    except Exception:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


def _symbol_label(char: int) -> str:
    if 0x21 <= char < 0x7f:
        return f"'{chr(char)}'"
    return f"0x{char:02x}"


class HuffmanCompressor:
    def __init__(self, suffix: str = COMPRESSED_SUFFIX):
        self.suffix = suffix

    def output_path_for(self, file_path: str) -> str:
        return file_path + self.suffix

    def compress_file(self, file_path: str, output_path: Optional[str] = None) -> CompressionResult:
        data = read_source(file_path)

        if output_path is None:
            output_path = self.output_path_for(file_path)

        frequencies = frequency_table(data)
        compressed = compress_data(data, frequencies)
        _write_atomic(output_path, compressed)

        return CompressionResult(
            source_path=file_path,
            output_path=output_path,
            original_size=len(data),
            compressed_size=len(compressed),
            symbol_count=distinct_symbols(frequencies)
        )

    def compress_files(self, file_paths: List[str]) -> List[CompressionResult]:
        results = []

        for file_path in file_paths:
            if not os.path.isfile(file_path):
                print(f"Warning: {file_path} not found, skipping")
                continue

            print(f"Compressing {file_path}...", end=" ")
            result = self.compress_file(file_path)
            results.append(result)
            print(f"OK ({result.ratio:.1f}%)")

        if not results:
            print("No files to compress")
            return results

        total_original = sum(r.original_size for r in results)
        total_compressed = sum(r.compressed_size for r in results)
        total_ratio = (total_compressed / total_original * 100) if total_original > 0 else 0

        print(f"\nTotal: {total_original} -> {total_compressed} bytes ({total_ratio:.1f}%)")

        return results

    def describe(self, file_path: str) -> bool:
        if not os.path.isfile(file_path):
            print(f"Error: {file_path} not found")
            return False

        with open(file_path, 'rb') as f:
            data = f.read()

        try:
            header = FileHeader.deserialize(data)
            root = read_tree(BitReader(data[HEADER_SIZE:]), header.symbol_count)
        except ValueError as e:
            print(f"Error reading {file_path}: {e}")
            return False

        ratio = (len(data) / header.original_size * 100) if header.original_size > 0 else 0

        print(f"File:            {file_path}")
        print(f"Format version:  {header.version}")
        print(f"Original size:   {header.original_size} bytes")
        print(f"Compressed size: {len(data)} bytes ({ratio:.1f}%)")
        print(f"CRC32:           {header.crc32:08x}")
        print(f"Symbols:         {header.symbol_count}")

        if root is None:
            return True

        print(f"\n{'Symbol':<10} {'Length':>6}  Code")
        print("-" * 40)

        table = encoding_table(root)
        for char, code in enumerate(table):
            if code.length:
                print(f"{_symbol_label(char):<10} {code.length:>6}  {code}")

        return True
