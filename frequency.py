"""
Подсчёт частот байтов входного файла.
"""

from collections import Counter
from typing import List, Sequence

ALPHABET_SIZE = 256


class SourceReadError(Exception):
    def __init__(self, path: str, cause: OSError):
        super().__init__(f"Cannot read {path}: {cause.strerror or cause}")
        self.path = path
        self.cause = cause


def read_source(path: str) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise SourceReadError(path, e) from e


def frequency_table(data: bytes) -> List[int]:
    table = [0] * ALPHABET_SIZE
    for byte, count in Counter(data).items():
        table[byte] = count
    return table


def count_frequencies(path: str) -> List[int]:
    return frequency_table(read_source(path))


def distinct_symbols(frequencies: Sequence[int]) -> int:
    return sum(1 for count in frequencies if count > 0)
