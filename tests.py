import unittest
import tempfile
import os
import io
import sys
import struct
import random
import shutil
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from bitstream import BitReader, BitWriter
from errors import (CodeTableError, CorruptHeaderError, FormatError,
                    HuffmanError, TruncatedPayloadError)
from format import (PSEUDO_EOF, deserialize_frequency_table, header_size,
                    read_frequency_table, serialize_frequency_table)
from huffman import (HuffmanTree, build_frequency_table, compress, compress_stream,
                     decode_data, decompress, decompress_stream, encode_data)
from archiver import Archiver, CompressionStats
from main import main


def pack_header(entries):
    data = struct.pack('<H', len(entries))
    for symbol, count in entries:
        data += struct.pack('<HQ', symbol, count)
    return data


def random_tables():
    rng = random.Random(2024)
    tables = []
    for size in (1, 2, 17, 100, 256):
        symbols = rng.sample(range(256), size)
        table = {sym: rng.randint(0, 5000) for sym in symbols}
        table[PSEUDO_EOF] = 1
        tables.append(table)

    full = {sym: rng.choice((0, 1, 2 ** 33)) for sym in range(256)}
    full[PSEUDO_EOF] = 1
    tables.append(full)
    return tables


class TestBitStream(unittest.TestCase):
    def test_write_partial_byte(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits('101')
        self.assertEqual(output.getvalue(), b'')

        writer.flush()
        self.assertEqual(output.getvalue(), b'\xa0')
        self.assertEqual(writer.bits_written, 3)

    def test_write_full_byte(self):
        output = io.BytesIO()
        writer = BitWriter(output)
        writer.write_bits('10000001')
        self.assertEqual(output.getvalue(), b'\x81')

        writer.flush()
        self.assertEqual(output.getvalue(), b'\x81')

    def test_read_bits_msb_first(self):
        reader = BitReader(b'\xa0\x01')
        self.assertEqual(reader.bits_remaining(), 16)

        bits = [reader.read_bit() for _ in range(16)]
        self.assertEqual(bits, [1, 0, 1, 0, 0, 0, 0, 0,
                                0, 0, 0, 0, 0, 0, 0, 1])
        self.assertEqual(reader.bits_remaining(), 0)

        with self.assertRaises(EOFError):
            reader.read_bit()

    def test_read_from_offset(self):
        reader = BitReader(b'\x00\xff', offset=1)
        self.assertEqual(reader.bits_remaining(), 8)
        self.assertEqual(reader.read_bit(), 1)
        self.assertEqual(reader.bits_remaining(), 7)


class TestFrequencyTable(unittest.TestCase):
    def test_counts_bytes_and_marker(self):
        table = build_frequency_table(io.BytesIO(b"abca"))
        self.assertEqual(dict(table), {97: 2, 98: 1, 99: 1, PSEUDO_EOF: 1})

    def test_empty_input(self):
        table = build_frequency_table(io.BytesIO(b""))
        self.assertEqual(dict(table), {PSEUDO_EOF: 1})

    def test_consumes_stream(self):
        stream = io.BytesIO(b"hello world")
        build_frequency_table(stream)
        self.assertEqual(stream.tell(), 11)


class TestHuffmanTree(unittest.TestCase):
    def test_empty_table(self):
        tree = HuffmanTree.build({})
        self.assertIsNone(tree.root)
        self.assertEqual(tree.code_table(), {})

    def test_single_leaf_root(self):
        tree = HuffmanTree.build({PSEUDO_EOF: 1})
        self.assertEqual(len(tree), 1)
        self.assertTrue(tree.is_leaf(tree.root))
        self.assertEqual(tree.symbols[tree.root], PSEUDO_EOF)
        self.assertEqual(tree.code_table(), {PSEUDO_EOF: ''})

    def test_internal_weights(self):
        frequencies = build_frequency_table(io.BytesIO(b"abracadabra"))
        tree = HuffmanTree.build(frequencies)

        self.assertEqual(tree.weights[tree.root], sum(frequencies.values()))
        self.assertEqual(len(tree), 2 * len(frequencies) - 1)

        for node in range(len(tree)):
            if tree.is_leaf(node):
                self.assertEqual(tree.one[node], -1)
                self.assertIn(tree.symbols[node], frequencies)
            else:
                self.assertNotEqual(tree.one[node], -1)
                self.assertEqual(tree.symbols[node], -1)
                self.assertEqual(tree.weights[node],
                                 tree.weights[tree.zero[node]] + tree.weights[tree.one[node]])

    def test_known_codes(self):
        frequencies = build_frequency_table(io.BytesIO(b"aaaaaaaaab"))
        codes = HuffmanTree.build(frequencies).code_table()
        self.assertEqual(codes, {97: '1', 98: '00', PSEUDO_EOF: '01'})

    def test_frequent_symbol_not_longer(self):
        frequencies = build_frequency_table(io.BytesIO(b"aaaaaaaaab"))
        codes = HuffmanTree.build(frequencies).code_table()
        self.assertLessEqual(len(codes[ord('a')]), len(codes[ord('b')]))

    def test_tie_break_ignores_insertion_order(self):
        forward = {sym: 3 for sym in range(10)}
        forward[PSEUDO_EOF] = 1
        backward = dict(reversed(list(forward.items())))

        tree1 = HuffmanTree.build(forward)
        tree2 = HuffmanTree.build(backward)

        self.assertEqual(tree1.code_table(), tree2.code_table())
        self.assertEqual(tree1.zero, tree2.zero)
        self.assertEqual(tree1.one, tree2.one)

    def test_prefix_free(self):
        for frequencies in random_tables():
            with self.subTest(entries=len(frequencies)):
                codes = list(HuffmanTree.build(frequencies).code_table().values())
                self.assertEqual(len(codes), len(frequencies))

                for i, a in enumerate(codes):
                    self.assertTrue(a)
                    for j, b in enumerate(codes):
                        if i != j:
                            self.assertFalse(b.startswith(a), f"{a} is a prefix of {b}")

    def test_depth(self):
        frequencies = build_frequency_table(io.BytesIO(b"aaaaaaaaab"))
        self.assertEqual(HuffmanTree.build(frequencies).depth(), 2)


class TestFormat(unittest.TestCase):
    def test_header_round_trip(self):
        table = {0: 5, 97: 1000, 255: 2 ** 40, PSEUDO_EOF: 1}
        data = serialize_frequency_table(table)

        self.assertEqual(len(data), header_size(4))
        restored, pos = deserialize_frequency_table(data)
        self.assertEqual(restored, table)
        self.assertEqual(pos, len(data))

    def test_header_round_trip_random_tables(self):
        for table in random_tables():
            with self.subTest(entries=len(table)):
                data = serialize_frequency_table(table)
                self.assertEqual(len(data), header_size(len(table)))

                restored, pos = deserialize_frequency_table(data)
                self.assertEqual(restored, table)
                self.assertEqual(pos, len(data))

    def test_header_layout(self):
        data = serialize_frequency_table({PSEUDO_EOF: 1, 97: 4})
        self.assertEqual(data, pack_header([(97, 4), (PSEUDO_EOF, 1)]))

    def test_deserialize_with_offset(self):
        header = serialize_frequency_table({65: 3, PSEUDO_EOF: 1})
        table, pos = deserialize_frequency_table(b'xyz' + header + b'\xff', offset=3)
        self.assertEqual(table, {65: 3, PSEUDO_EOF: 1})
        self.assertEqual(pos, 3 + len(header))

    def test_read_from_stream_leaves_payload(self):
        stream = io.BytesIO(serialize_frequency_table({65: 3, PSEUDO_EOF: 1}) + b'\xf0')
        self.assertEqual(read_frequency_table(stream), {65: 3, PSEUDO_EOF: 1})
        self.assertEqual(stream.read(), b'\xf0')

    def test_serialize_rejects_bad_symbol(self):
        with self.assertRaises(ValueError):
            serialize_frequency_table({300: 1})

    def test_corrupt_headers(self):
        cases = {
            'empty data': b'',
            'short count': b'\x01',
            'zero entries': pack_header([]),
            'too many entries': struct.pack('<H', 300),
            'missing entries': pack_header([(97, 1), (PSEUDO_EOF, 1)])[:-4],
            'symbol out of range': pack_header([(257, 1), (PSEUDO_EOF, 1)]),
            'duplicate symbol': pack_header([(97, 1), (97, 2), (PSEUDO_EOF, 1)]),
            'no end marker': pack_header([(97, 1)]),
        }
        for name, data in cases.items():
            with self.subTest(name):
                with self.assertRaises(CorruptHeaderError):
                    deserialize_frequency_table(data)
                with self.assertRaises(CorruptHeaderError):
                    decompress(data)

    def test_error_hierarchy(self):
        self.assertTrue(issubclass(CorruptHeaderError, FormatError))
        self.assertTrue(issubclass(TruncatedPayloadError, FormatError))
        self.assertTrue(issubclass(FormatError, ValueError))
        self.assertTrue(issubclass(CodeTableError, HuffmanError))
        self.assertFalse(issubclass(CodeTableError, FormatError))


class TestHuffmanCodec(unittest.TestCase):
    def assertRoundTrip(self, data):
        self.assertEqual(decompress(compress(data)), data)

    def test_empty(self):
        compressed = compress(b"")
        self.assertEqual(compressed, pack_header([(PSEUDO_EOF, 1)]))
        self.assertEqual(decompress(compressed), b"")

    def test_single_byte(self):
        self.assertRoundTrip(b"A")

    def test_single_symbol(self):
        compressed = compress(b"aaaa")
        expected = pack_header([(97, 4), (PSEUDO_EOF, 1)]) + b'\xf0'
        self.assertEqual(compressed, expected)
        self.assertEqual(decompress(compressed), b"aaaa")

    def test_all_bytes(self):
        self.assertRoundTrip(bytes(range(256)))
        self.assertRoundTrip(bytes(range(256)) * 10)

    def test_random_data(self):
        rng = random.Random(42)
        self.assertRoundTrip(bytes(rng.getrandbits(8) for _ in range(10 * 1024)))

    def test_text(self):
        self.assertRoundTrip(b"The quick brown fox jumps over the lazy dog")
        self.assertRoundTrip("Съешь же ещё этих мягких французских булок".encode('utf-8'))

    def test_large_repetitive(self):
        data = b"Lorem ipsum dolor sit amet " * 200
        compressed = compress(data)
        self.assertLess(len(compressed), len(data))
        self.assertEqual(decompress(compressed), data)

    def test_deterministic(self):
        data = b"abracadabra, abracadabra!"
        self.assertEqual(compress(data), compress(data))

    def test_stream_compresses_from_current_position(self):
        source = io.BytesIO(b"PREFIX:" + b"banana bandana")
        source.seek(7)

        compressed = io.BytesIO()
        frequencies = compress_stream(source, compressed)
        self.assertNotIn(ord('P'), frequencies)
        self.assertEqual(frequencies[ord('b')], 2)

        compressed.seek(0)
        restored = io.BytesIO()
        self.assertEqual(decompress_stream(compressed, restored), 14)
        self.assertEqual(restored.getvalue(), b"banana bandana")

    def test_trailing_bytes_ignored(self):
        data = b"mississippi"
        self.assertEqual(decompress(compress(data) + b'\xff\xff'), data)

    def test_skewed_size(self):
        compressed = compress(b"aaaaaaaaab")
        stats = CompressionStats.from_frequencies(build_frequency_table(io.BytesIO(b"aaaaaaaaab")))
        self.assertEqual(stats.payload_bits, 13)
        self.assertEqual(len(compressed), stats.compressed_size)
        self.assertEqual(len(compressed), 34)


class TestCorruptPayload(unittest.TestCase):
    def test_missing_payload(self):
        truncated = compress(b"aaaa")[:-1]
        with self.assertRaises(TruncatedPayloadError):
            decompress(truncated)

    def test_missing_payload_lenient(self):
        truncated = compress(b"aaaa")[:-1]
        self.assertEqual(decompress(truncated, strict=False), b"")

    def test_truncated_tail(self):
        data = b"This is a test" * 100
        truncated = compress(data)[:-3]
        with self.assertRaises(TruncatedPayloadError) as ctx:
            decompress(truncated)
        self.assertLess(ctx.exception.decoded, len(data))

    def test_truncated_tail_lenient(self):
        data = b"This is a test" * 100
        partial = decompress(compress(data)[:-3], strict=False)
        self.assertLess(len(partial), len(data))
        self.assertTrue(data.startswith(partial))

    def test_encoder_missing_code(self):
        writer = BitWriter(io.BytesIO())
        with self.assertRaises(CodeTableError) as ctx:
            encode_data(io.BytesIO(b"abc"), {97: '0', PSEUDO_EOF: '1'}, writer)
        self.assertEqual(ctx.exception.symbol, 98)

    def test_decoder_single_leaf_ignores_bits(self):
        tree = HuffmanTree.build({PSEUDO_EOF: 1})
        output = io.BytesIO()
        self.assertEqual(decode_data(BitReader(b'\xff'), tree, output), 0)
        self.assertEqual(output.getvalue(), b"")

    def test_decoder_single_leaf_without_marker(self):
        tree = HuffmanTree.build({97: 3})
        output = io.BytesIO()
        with self.assertRaises(CorruptHeaderError):
            decode_data(BitReader(b'\xff'), tree, output)
        self.assertEqual(output.getvalue(), b"")


class TestArchiver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = Archiver(verbose=False)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_compress_decompress_file(self):
        data = b"Hello World! " * 100
        src = self._write("test.txt", data)

        stats = self.archiver.compress_file(src)
        compressed_path = src + '.huf'
        self.assertTrue(os.path.isfile(compressed_path))
        self.assertEqual(stats.original_size, len(data))
        self.assertEqual(stats.compressed_size, os.path.getsize(compressed_path))
        self.assertLess(stats.compressed_size, stats.original_size)

        os.remove(src)
        size = self.archiver.decompress_file(compressed_path)
        self.assertEqual(size, len(data))

        with open(src, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_explicit_output_paths(self):
        src = self._write("empty.bin", b"")
        packed = os.path.join(self.temp_dir, "packed.bin")
        restored = os.path.join(self.temp_dir, "restored.bin")

        self.archiver.compress_file(src, packed)
        self.archiver.decompress_file(packed, restored)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), b"")

    def test_default_output_paths(self):
        self.assertEqual(Archiver.default_output_path("a.txt", compressing=True), "a.txt.huf")
        self.assertEqual(Archiver.default_output_path("a.txt.huf", compressing=False), "a.txt")
        self.assertEqual(Archiver.default_output_path("a.bin", compressing=False), "a.bin.out")

    def test_missing_source(self):
        with self.assertRaises(FileNotFoundError):
            self.archiver.compress_file(os.path.join(self.temp_dir, "nope.txt"))

    def test_truncated_file_leaves_no_output(self):
        src = self._write("data.huf", compress(b"This is a test" * 100)[:-3])
        dst = os.path.join(self.temp_dir, "data")

        with self.assertRaises(TruncatedPayloadError):
            self.archiver.decompress_file(src, dst)
        self.assertFalse(os.path.exists(dst))
        self.assertEqual(os.listdir(self.temp_dir), ["data.huf"])

    def test_truncated_file_lenient(self):
        src = self._write("data.huf", compress(b"This is a test" * 100)[:-3])
        dst = os.path.join(self.temp_dir, "data")

        size = Archiver(strict=False, verbose=False).decompress_file(src, dst)
        self.assertGreater(size, 0)
        self.assertEqual(os.path.getsize(dst), size)

    def test_describe_file(self):
        src = self._write("skewed.huf", compress(b"aaaaaaaaab"))
        stats = self.archiver.describe_file(src)

        self.assertEqual(stats.original_size, 10)
        self.assertEqual(stats.distinct_symbols, 2)
        self.assertEqual(stats.codes, {97: '1', 98: '00', PSEUDO_EOF: '01'})
        self.assertEqual(stats.compressed_size, 34)
        self.assertEqual(stats.max_code_length, 2)

    def test_source_with_tmp_suffix_survives(self):
        data = b"keep me " * 40
        src = self._write("notes.tmp", compress(data))
        dst = os.path.join(self.temp_dir, "notes")

        self.assertEqual(self.archiver.decompress_file(src, dst), len(data))

        with open(src, 'rb') as f:
            self.assertEqual(f.read(), compress(data))
        with open(dst, 'rb') as f:
            self.assertEqual(f.read(), data)
        self.assertEqual(sorted(os.listdir(self.temp_dir)), ["notes", "notes.tmp"])

    def test_existing_tmp_file_untouched(self):
        src = self._write("a.txt", b"payload " * 20)
        user_file = self._write("a.txt.huf.tmp", b"user data")

        self.archiver.compress_file(src)
        with self.assertRaises(CorruptHeaderError):
            self.archiver.decompress_file(user_file, os.path.join(self.temp_dir, "restored"))

        with open(user_file, 'rb') as f:
            self.assertEqual(f.read(), b"user data")
        self.assertEqual(sorted(os.listdir(self.temp_dir)),
                         ["a.txt", "a.txt.huf", "a.txt.huf.tmp"])

    def test_compress_failure_reported(self):
        src = self._write("input.txt", b"abc")
        dst = os.path.join(self.temp_dir, "input.huf")

        output = io.StringIO()
        with mock.patch('archiver.compress_stream', side_effect=OSError("disk full")):
            with redirect_stdout(output):
                with self.assertRaises(OSError):
                    Archiver(verbose=True).compress_file(src, dst)

        self.assertTrue(output.getvalue().endswith("FAILED\n"))
        self.assertEqual(os.listdir(self.temp_dir), ["input.txt"])


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_compress_decompress(self):
        src = os.path.join(self.temp_dir, "notes.txt")
        restored = os.path.join(self.temp_dir, "restored.txt")
        with open(src, 'wb') as f:
            f.write(b"Content of file 1\n" * 50)

        self.assertEqual(main(['-q', 'compress', src]), 0)
        self.assertEqual(main(['-q', 'info', src + '.huf']), 0)
        self.assertEqual(main(['-q', 'decompress', src + '.huf', '-o', restored]), 0)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), b"Content of file 1\n" * 50)

    def test_error_exit_code(self):
        bad = os.path.join(self.temp_dir, "bad.huf")
        with open(bad, 'wb') as f:
            f.write(b'\x00\x00')

        with redirect_stderr(io.StringIO()) as err:
            self.assertEqual(main(['-q', 'decompress', bad]), 1)
        self.assertIn("Error:", err.getvalue())


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestFrequencyTable))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanCodec))
    suite.addTests(loader.loadTestsFromTestCase(TestCorruptPayload))
    suite.addTests(loader.loadTestsFromTestCase(TestArchiver))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
