"""
Построение дерева Хаффмана и таблицы кодов.
Частые байты получают более короткие коды.

Порядок в очереди при равных частотах: листья раньше объединённых узлов,
листья по возрастанию значения байта, объединённые узлы в порядке создания.
Поэтому одни и те же частоты всегда дают одно и то же дерево.

Дерево записывается обходом в обратном порядке: 0 для внутреннего узла,
1 и значение байта для листа. По одному этому потоку нельзя понять,
где кончается дерево из одного листа, поэтому при чтении нужно
количество листьев из заголовка файла.
"""

import heapq
import itertools
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from bitio import BitReader, BitWriter
from frequency import ALPHABET_SIZE


class HuffmanError(Exception):
    pass


class AllocationError(HuffmanError):
    pass


class EmptyQueueError(HuffmanError):
    pass


class HuffmanNode:
    def __init__(self, character: int = 0, frequency: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None):
        if (left is None) != (right is None):
            raise ValueError("Node must have either two children or none")

        self.character = character
        self.frequency = frequency
        self.left = left
        self.right = right

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def __repr__(self):
        if self.is_leaf:
            return f"Leaf({self.character:02x}, freq={self.frequency})"
        return f"Cluster(freq={self.frequency})"


@dataclass(frozen=True)
class BitCode:
    bits: int = 0
    length: int = 0

    def __str__(self):
        return format(self.bits, f'0{self.length}b') if self.length else ''


EMPTY_CODE = BitCode()


def huffman_order(node: HuffmanNode) -> Tuple[int, ...]:
    if node.is_leaf:
        return (node.frequency, 0, node.character)
    # clusters with equal frequency fall back to insertion order
    return (node.frequency, 1)


class PriorityQueue:
    def __init__(self, key: Callable[[HuffmanNode], tuple] = huffman_order):
        self.key = key
        self._heap: List[Tuple[tuple, int, HuffmanNode]] = []
        self._sequence = itertools.count()

    def __len__(self):
        return len(self._heap)

    def __bool__(self):
        return bool(self._heap)

    def enqueue(self, node: HuffmanNode):
        try:
            heapq.heappush(self._heap, (self.key(node), next(self._sequence), node))
        except MemoryError as e:
            raise AllocationError("Cannot grow priority queue") from e

    def dequeue(self) -> HuffmanNode:
        if not self._heap:
            raise EmptyQueueError("dequeue from empty priority queue")
        return heapq.heappop(self._heap)[2]


def make_huffman_queue(frequencies: Sequence[int]) -> PriorityQueue:
    queue = PriorityQueue()

    for char in range(ALPHABET_SIZE):
        if frequencies[char] > 0:
            queue.enqueue(HuffmanNode(character=char, frequency=frequencies[char]))

    return queue


def build_tree(queue: PriorityQueue) -> Optional[HuffmanNode]:
    if not queue:
        return None

    while len(queue) > 1:
        left = queue.dequeue()
        right = queue.dequeue()

        try:
            parent = HuffmanNode(frequency=left.frequency + right.frequency,
                                 left=left, right=right)
        except MemoryError as e:
            raise AllocationError("Cannot allocate tree node") from e

        queue.enqueue(parent)

    return queue.dequeue()


def iter_postorder(root: Optional[HuffmanNode]) -> Iterator[HuffmanNode]:
    if root is None:
        return

    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()

        if expanded or node.is_leaf:
            yield node
            continue

        stack.append((node, True))
        stack.append((node.right, False))
        stack.append((node.left, False))


def write_tree(root: Optional[HuffmanNode], writer: BitWriter):
    for node in iter_postorder(root):
        if node.is_leaf:
            writer.write_bits(1, 1)
            writer.write_bits(node.character, 8)
        else:
            writer.write_bits(0, 1)


def read_tree(reader: BitReader, symbol_count: int) -> Optional[HuffmanNode]:
    if symbol_count == 0:
        return None

    stack: List[HuffmanNode] = []
    seen = set()

    try:
        while len(seen) < symbol_count or len(stack) > 1:
            if reader.read_bit():
                if len(seen) == symbol_count:
                    raise ValueError("Corrupted tree: too many leaves")

                char = reader.read_bits(8)
                if char in seen:
                    raise ValueError(f"Corrupted tree: duplicate symbol {char:02x}")
                seen.add(char)
                stack.append(HuffmanNode(character=char))
            else:
                if len(stack) < 2:
                    raise ValueError("Corrupted tree: unexpected internal node")

                right = stack.pop()
                left = stack.pop()
                stack.append(HuffmanNode(left=left, right=right))
    except EOFError as e:
        raise ValueError("Corrupted tree: truncated bitstream") from e

    return stack[0]


def encoding_table(root: Optional[HuffmanNode]) -> List[BitCode]:
    table = [EMPTY_CODE] * ALPHABET_SIZE

    if root is None:
        return table

    stack = [(root, 0, 0)]
    while stack:
        node, bits, length = stack.pop()

        if node.is_leaf:
            # a lone root leaf would otherwise get an unusable 0-bit code
            table[node.character] = BitCode(bits, length) if length else BitCode(0, 1)
            continue

        stack.append((node.right, (bits << 1) | 1, length + 1))
        stack.append((node.left, bits << 1, length + 1))

    return table


def write_payload(data: bytes, table: Sequence[BitCode], writer: BitWriter):
    for byte in data:
        code = table[byte]
        if not code.length:
            raise ValueError(f"No code for byte {byte:02x}")
        writer.write_bits(code.bits, code.length)


def encoded_bit_length(frequencies: Sequence[int], table: Sequence[BitCode]) -> int:
    return sum(count * table[char].length for char, count in enumerate(frequencies))
