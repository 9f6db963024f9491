import contextlib
import heapq
import io
import os
import random
import shutil
import stat
import sys
import tempfile
import unittest
from unittest import mock

from bitio import BitReader, BitWriter
from compressor import HuffmanCompressor, compress_data
from format import FileHeader, HEADER_SIZE, MAGIC, calculate_crc32
from frequency import SourceReadError, count_frequencies, distinct_symbols, frequency_table
from huffman import (AllocationError, BitCode, EmptyQueueError, HuffmanNode,
                     PriorityQueue, build_tree, encoded_bit_length, encoding_table,
                     iter_postorder, make_huffman_queue, read_tree,
                     write_payload, write_tree)
import main


CLRS_FREQUENCIES = {'a': 5, 'b': 9, 'c': 12, 'd': 13, 'e': 16, 'f': 45}


def table_from(counts):
    table = [0] * 256
    for char, count in counts.items():
        table[ord(char)] = count
    return table


def tree_for(data):
    return build_tree(make_huffman_queue(frequency_table(data)))


def shape(node):
    if node is None:
        return None
    if node.is_leaf:
        return node.character
    return (shape(node.left), shape(node.right))


def optimal_cost(frequencies):
    heap = [count for count in frequencies if count > 0]
    heapq.heapify(heap)
    cost = 0
    while len(heap) > 1:
        merged = heapq.heappop(heap) + heapq.heappop(heap)
        cost += merged
        heapq.heappush(heap, merged)
    return cost


def serialize_tree(root):
    output = io.BytesIO()
    with BitWriter(output) as writer:
        write_tree(root, writer)
    return output.getvalue(), writer.bits_written


class TestBitWriter(unittest.TestCase):
    def test_packs_msb_first(self):
        output = io.BytesIO()
        with BitWriter(output) as writer:
            writer.write_bits(0b101, 3)
            writer.write_bits(0b11111, 5)
        self.assertEqual(output.getvalue(), b'\xbf')
        self.assertEqual(writer.padding, 0)

    def test_partial_byte_flushed_on_close(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bit(1)
        self.assertEqual(output.getvalue(), b'')
        writer.close()
        writer.close()
        self.assertEqual(output.getvalue(), b'\x80')
        self.assertEqual(writer.padding, 7)

    def test_wide_values(self):
        output = io.BytesIO()
        with BitWriter(output) as writer:
            writer.write_bits(0xABC, 12)
            writer.write_bits(0, 0)
        self.assertEqual(output.getvalue(), b'\xab\xc0')
        self.assertEqual(writer.bits_written, 12)

    def test_rejects_value_wider_than_width(self):
        writer = BitWriter(io.BytesIO())
        with self.assertRaises(ValueError):
            writer.write_bits(4, 2)

    def test_write_after_close(self):
        writer = BitWriter(io.BytesIO())
        writer.close()
        with self.assertRaises(ValueError):
            writer.write_bits(1, 1)


class TestBitReader(unittest.TestCase):
    def test_reads_msb_first(self):
        reader = BitReader(b'\xa5')
        self.assertEqual(reader.read_bits(4), 0xA)
        self.assertEqual([reader.read_bit() for _ in range(4)], [0, 1, 0, 1])

    def test_end_of_stream(self):
        reader = BitReader(b'\x00')
        reader.read_bits(8)
        self.assertEqual(reader.bits_remaining, 0)
        with self.assertRaises(EOFError):
            reader.read_bit()


class TestFrequency(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_frequency_table(self):
        table = frequency_table(b"abca")
        self.assertEqual(len(table), 256)
        self.assertEqual(table[ord('a')], 2)
        self.assertEqual(table[ord('b')], 1)
        self.assertEqual(sum(table), 4)
        self.assertEqual(distinct_symbols(table), 3)

    def test_count_frequencies_from_file(self):
        path = os.path.join(self.temp_dir, "input.bin")
        with open(path, 'wb') as f:
            f.write(b"\x00\x00\xff")
        table = count_frequencies(path)
        self.assertEqual(table[0], 2)
        self.assertEqual(table[255], 1)

    def test_unreadable_source(self):
        path = os.path.join(self.temp_dir, "missing.bin")
        with self.assertRaises(SourceReadError) as ctx:
            count_frequencies(path)
        self.assertEqual(ctx.exception.path, path)
        self.assertIsInstance(ctx.exception.cause, OSError)


class TestPriorityQueue(unittest.TestCase):
    def test_orders_by_frequency(self):
        queue = PriorityQueue()
        for char, freq in ((1, 3), (2, 1), (3, 2)):
            queue.enqueue(HuffmanNode(character=char, frequency=freq))
        self.assertEqual([queue.dequeue().frequency for _ in range(3)], [1, 2, 3])
        self.assertFalse(queue)

    def test_tie_break_leaves_before_clusters(self):
        queue = PriorityQueue()
        cluster = HuffmanNode(frequency=2, left=HuffmanNode(character=1, frequency=1),
                              right=HuffmanNode(character=2, frequency=1))
        queue.enqueue(cluster)
        queue.enqueue(HuffmanNode(character=66, frequency=2))
        queue.enqueue(HuffmanNode(character=65, frequency=2))

        self.assertEqual(queue.dequeue().character, 65)
        self.assertEqual(queue.dequeue().character, 66)
        self.assertIs(queue.dequeue(), cluster)

    def test_equal_clusters_keep_insertion_order(self):
        queue = PriorityQueue()
        first = HuffmanNode(frequency=4, left=HuffmanNode(), right=HuffmanNode())
        second = HuffmanNode(frequency=4, left=HuffmanNode(), right=HuffmanNode())
        queue.enqueue(first)
        queue.enqueue(second)
        self.assertIs(queue.dequeue(), first)
        self.assertIs(queue.dequeue(), second)

    def test_dequeue_empty(self):
        with self.assertRaises(EmptyQueueError):
            PriorityQueue().dequeue()

    def test_node_with_one_child(self):
        with self.assertRaises(ValueError):
            HuffmanNode(frequency=1, left=HuffmanNode())

    def test_enqueue_out_of_memory(self):
        queue = PriorityQueue()
        with mock.patch('huffman.heapq.heappush', side_effect=MemoryError):
            with self.assertRaises(AllocationError):
                queue.enqueue(HuffmanNode(character=65, frequency=1))
        self.assertFalse(queue)

    def test_build_tree_out_of_memory(self):
        queue = make_huffman_queue(frequency_table(b"abc"))
        with mock.patch('huffman.heapq.heappush', side_effect=MemoryError):
            with self.assertRaises(AllocationError) as ctx:
                build_tree(queue)
        self.assertIsInstance(ctx.exception.__cause__, MemoryError)


class TestHuffmanTree(unittest.TestCase):
    def test_empty_input(self):
        self.assertIsNone(tree_for(b""))
        self.assertTrue(all(code.length == 0 for code in encoding_table(None)))
        self.assertEqual(serialize_tree(None), (b'', 0))

    def test_single_symbol(self):
        root = tree_for(b"aaaa")
        self.assertTrue(root.is_leaf)
        self.assertEqual(root.character, ord('a'))
        self.assertEqual(root.frequency, 4)
        self.assertEqual(encoding_table(root)[ord('a')], BitCode(0, 1))

    def test_node_counts(self):
        data = b"the quick brown fox jumps over the lazy dog"
        root = tree_for(data)
        nodes = list(iter_postorder(root))
        leaves = [n for n in nodes if n.is_leaf]
        symbols = distinct_symbols(frequency_table(data))

        self.assertEqual(len(leaves), symbols)
        self.assertEqual(len(nodes) - len(leaves), symbols - 1)
        self.assertEqual(root.frequency, len(data))

    def test_reference_example(self):
        frequencies = table_from(CLRS_FREQUENCIES)
        table = encoding_table(build_tree(make_huffman_queue(frequencies)))
        codes = {char: str(table[ord(char)]) for char in CLRS_FREQUENCIES}

        self.assertEqual(codes, {
            'f': '0', 'c': '100', 'd': '101',
            'a': '1100', 'b': '1101', 'e': '111',
        })
        self.assertEqual(encoded_bit_length(frequencies, table), 224)

    def test_codes_are_prefix_free(self):
        data = bytes(random.Random(7).choice(b"aaaabbbccdefgh\x00\xff") for _ in range(500))
        table = encoding_table(tree_for(data))
        codes = [str(code) for code in table if code.length]

        self.assertEqual(len(codes), distinct_symbols(frequency_table(data)))
        for i, code in enumerate(codes):
            for j, other in enumerate(codes):
                if i != j:
                    self.assertFalse(other.startswith(code), f"{code} is a prefix of {other}")

    def test_weighted_length_is_optimal(self):
        rng = random.Random(42)
        for _ in range(20):
            frequencies = [rng.choice((0, 0, 1, 2, 3, 50, 1000)) for _ in range(256)]
            root = build_tree(make_huffman_queue(frequencies))
            table = encoding_table(root)
            self.assertEqual(encoded_bit_length(frequencies, table), optimal_cost(frequencies))

    def test_deterministic(self):
        data = bytes(range(256)) * 3 + b"abc"
        self.assertEqual(shape(tree_for(data)), shape(tree_for(data)))


class TestTreeSerialization(unittest.TestCase):
    def test_two_leaves(self):
        data, bits = serialize_tree(tree_for(b"ab"))
        self.assertEqual(bits, 19)
        self.assertEqual(data, b'\xb0\xd8\x80')

    def test_marker_counts(self):
        root = build_tree(make_huffman_queue(table_from(CLRS_FREQUENCIES)))
        _, bits = serialize_tree(root)
        self.assertEqual(bits, 6 * 9 + 5)

    def test_round_trip(self):
        for data in (b"a", b"ab", b"abracadabra", bytes(range(256))):
            root = tree_for(data)
            serialized, _ = serialize_tree(root)
            symbols = distinct_symbols(frequency_table(data))
            restored = read_tree(BitReader(serialized), symbols)
            self.assertEqual(shape(restored), shape(root))

    def test_read_empty(self):
        self.assertIsNone(read_tree(BitReader(b''), 0))

    def test_read_corrupted(self):
        with self.assertRaises(ValueError):
            read_tree(BitReader(b'\x00'), 2)
        with self.assertRaises(ValueError):
            read_tree(BitReader(b'\x80'), 2)


class TestPayload(unittest.TestCase):
    def test_payload_bits(self):
        root = build_tree(make_huffman_queue(table_from(CLRS_FREQUENCIES)))
        table = encoding_table(root)
        output = io.BytesIO()
        with BitWriter(output) as writer:
            write_payload(b"fab", table, writer)
        # 0 1100 1101
        self.assertEqual(writer.bits_written, 9)
        self.assertEqual(output.getvalue(), b'\x66\x80')

    def test_missing_code(self):
        table = encoding_table(tree_for(b"a"))
        with self.assertRaises(ValueError):
            write_payload(b"b", table, BitWriter(io.BytesIO()))


class TestFileHeader(unittest.TestCase):
    def test_serialize_and_read(self):
        header = FileHeader(symbol_count=256, original_size=1 << 40, crc32=0xdeadbeef, padding=5)
        data = header.serialize()
        self.assertEqual(len(data), HEADER_SIZE)
        self.assertTrue(data.startswith(MAGIC))
        self.assertEqual(FileHeader.deserialize(data), header)

    def test_invalid_headers(self):
        good = FileHeader(symbol_count=2, original_size=10, crc32=0).serialize()

        with self.assertRaises(ValueError):
            FileHeader.deserialize(good[:-1])
        with self.assertRaises(ValueError):
            FileHeader.deserialize(b'ABCD' + good[4:])
        with self.assertRaises(ValueError):
            FileHeader.deserialize(good[:4] + b'\x09' + good[5:])
        with self.assertRaises(ValueError):
            FileHeader.deserialize(good[:5] + b'\x08' + good[6:])
        with self.assertRaises(ValueError):
            FileHeader.deserialize(FileHeader(symbol_count=300, original_size=10, crc32=0).serialize())
        with self.assertRaises(ValueError):
            FileHeader.deserialize(FileHeader(symbol_count=0, original_size=10, crc32=0).serialize())


class TestCompressData(unittest.TestCase):
    def test_empty(self):
        compressed = compress_data(b"")
        self.assertEqual(len(compressed), HEADER_SIZE)
        header = FileHeader.deserialize(compressed)
        self.assertEqual((header.symbol_count, header.original_size, header.padding), (0, 0, 0))

    def test_single_symbol(self):
        compressed = compress_data(b"aaaa")
        header = FileHeader.deserialize(compressed)
        self.assertEqual(header.symbol_count, 1)
        self.assertEqual(header.original_size, 4)
        self.assertEqual(header.padding, 3)
        self.assertEqual(compressed[HEADER_SIZE:], b'\xb0\x80')

    def test_two_symbols(self):
        compressed = compress_data(b"ab")
        header = FileHeader.deserialize(compressed)
        self.assertEqual(header.symbol_count, 2)
        self.assertEqual(header.crc32, calculate_crc32(b"ab"))
        self.assertEqual(header.padding, 3)
        self.assertEqual(compressed[HEADER_SIZE:], b'\xb0\xd8\x88')

    def test_reproducible(self):
        data = b"Lorem ipsum dolor sit amet " * 200
        self.assertEqual(compress_data(data), compress_data(data))
        self.assertLess(len(compress_data(data)), len(data))


class TestHuffmanCompressor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.compressor = HuffmanCompressor()
        self.source = os.path.join(self.temp_dir, "test.txt")
        with open(self.source, 'wb') as f:
            f.write(b"Hello World! " * 100)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_file(self):
        result = self.compressor.compress_file(self.source)

        self.assertEqual(result.output_path, self.source + ".huff")
        self.assertEqual(result.original_size, 1300)
        self.assertEqual(result.symbol_count, len(set(b"Hello World! ")))
        self.assertLess(result.compressed_size, result.original_size)

        with open(result.output_path, 'rb') as f:
            written = f.read()
        self.assertEqual(written, compress_data(b"Hello World! " * 100))
        self.assertEqual(sorted(os.listdir(self.temp_dir)), ["test.txt", "test.txt.huff"])

    def test_custom_output_and_suffix(self):
        output = os.path.join(self.temp_dir, "out.bin")
        result = self.compressor.compress_file(self.source, output)
        self.assertEqual(result.output_path, output)
        self.assertTrue(os.path.isfile(output))

        result = HuffmanCompressor(suffix=".hz").compress_file(self.source)
        self.assertTrue(result.output_path.endswith("test.txt.hz"))

    def test_unreadable_source_writes_nothing(self):
        missing = os.path.join(self.temp_dir, "missing.txt")
        with self.assertRaises(SourceReadError):
            self.compressor.compress_file(missing)
        self.assertEqual(os.listdir(self.temp_dir), ["test.txt"])

    def test_output_mode_follows_umask(self):
        old_mask = os.umask(0o027)
        try:
            reference = os.path.join(self.temp_dir, "reference.bin")
            with open(reference, 'wb') as f:
                f.write(b"x")
            result = self.compressor.compress_file(self.source)
        finally:
            os.umask(old_mask)

        output_mode = stat.S_IMODE(os.stat(result.output_path).st_mode)
        self.assertEqual(output_mode, stat.S_IMODE(os.stat(reference).st_mode))
        self.assertEqual(output_mode, 0o640)

    def test_symbol_count_of_empty_file(self):
        empty = os.path.join(self.temp_dir, "empty.txt")
        open(empty, 'wb').close()
        result = self.compressor.compress_file(empty)
        self.assertEqual(result.symbol_count, 0)
        self.assertEqual(result.compressed_size, HEADER_SIZE)

    def test_failed_write_leaves_no_partial_file(self):
        with mock.patch('compressor.os.replace', side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self.compressor.compress_file(self.source)
        self.assertEqual(os.listdir(self.temp_dir), ["test.txt"])

    def test_compress_files_skips_missing(self):
        missing = os.path.join(self.temp_dir, "missing.txt")
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            results = self.compressor.compress_files([self.source, missing])

        self.assertEqual(len(results), 1)
        self.assertIn("Warning", output.getvalue())
        self.assertTrue(os.path.isfile(self.source + ".huff"))

    def test_describe(self):
        result = self.compressor.compress_file(self.source)
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            self.assertTrue(self.compressor.describe(result.output_path))

        text = output.getvalue()
        self.assertIn("Original size:   1300 bytes", text)
        self.assertIn("'H'", text)

    def test_describe_invalid_file(self):
        with contextlib.redirect_stdout(io.StringIO()):
            self.assertFalse(self.compressor.describe(self.source))
            self.assertFalse(self.compressor.describe(self.source + ".nope"))


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.source = os.path.join(self.temp_dir, "file1.txt")
        with open(self.source, 'wb') as f:
            f.write(b"Content of file 1\n" * 50)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_main(self, *args):
        output = io.StringIO()
        with mock.patch.object(sys, 'argv', ['main.py'] + list(args)), \
                contextlib.redirect_stdout(output):
            main.main()
        return output.getvalue()

    def test_compress_and_info(self):
        self.run_main('compress', self.source)
        self.assertTrue(os.path.isfile(self.source + ".huff"))

        text = self.run_main('info', self.source + ".huff")
        self.assertIn("Symbols:", text)

    def test_missing_file_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main('info', os.path.join(self.temp_dir, 'missing.huff'))
        self.assertEqual(ctx.exception.code, 1)

    def test_compress_with_output_and_suffix(self):
        output = os.path.join(self.temp_dir, "custom.bin")
        text = self.run_main('compress', self.source, '-o', output)
        self.assertTrue(os.path.isfile(output))
        self.assertIn("->", text)

        self.run_main('compress', self.source, '--suffix', '.hz')
        self.assertTrue(os.path.isfile(self.source + ".hz"))

    def test_unreadable_source_exits(self):
        missing = os.path.join(self.temp_dir, "missing.txt")
        errors = io.StringIO()
        with self.assertRaises(SystemExit) as ctx, contextlib.redirect_stderr(errors):
            self.run_main('compress', missing, '-o', os.path.join(self.temp_dir, "x.huff"))
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Error: Cannot read", errors.getvalue())


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestBitWriter, TestBitReader, TestFrequency, TestPriorityQueue,
                 TestHuffmanTree, TestTreeSerialization, TestPayload, TestFileHeader,
                 TestCompressData, TestHuffmanCompressor, TestCommandLine):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
