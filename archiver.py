"""
Главный класс для сжатия и разжатия файлов.
"""

import os
import tempfile
from typing import BinaryIO, Callable, Dict, Optional, TypeVar

from format import PSEUDO_EOF, header_size, read_frequency_table
from huffman import HuffmanTree, compress_stream, decompress_stream


DEFAULT_SUFFIX = '.huf'
RESTORED_SUFFIX = '.out'

T = TypeVar('T')


class CompressionStats:
    def __init__(self, frequencies: Dict[int, int], codes: Dict[int, str],
                 compressed_size: Optional[int] = None,
                 max_code_length: Optional[int] = None):
        self.frequencies = frequencies
        self.codes = codes

        if max_code_length is None:
            max_code_length = max((len(code) for code in codes.values()), default=0)
        self.max_code_length = max_code_length

        self.original_size = sum(
            count for symbol, count in frequencies.items() if symbol != PSEUDO_EOF
        )
        self.distinct_symbols = len(frequencies) - (1 if PSEUDO_EOF in frequencies else 0)
        self.header_size = header_size(len(frequencies))

        self.payload_bits = sum(
            count * len(codes[symbol]) for symbol, count in frequencies.items()
        )
        self.payload_size = (self.payload_bits + 7) // 8

        if compressed_size is None:
            compressed_size = self.header_size + self.payload_size
        self.compressed_size = compressed_size

        self.average_code_length = (
            (self.payload_bits - len(codes.get(PSEUDO_EOF, ''))) / self.original_size
            if self.original_size > 0 else 0
        )

        self.compression_ratio = (
            self.compressed_size / self.original_size * 100
            if self.original_size > 0 else 0
        )

    @classmethod
    def from_frequencies(cls, frequencies: Dict[int, int],
                         compressed_size: Optional[int] = None) -> 'CompressionStats':
        tree = HuffmanTree.build(frequencies)
        return cls(frequencies, tree.code_table(), compressed_size, tree.depth())

    def print_stats(self):
        print(f"Huffman Compression Statistics:")
        print(f"  Original size:       {self.original_size} bytes")
        print(f"  Distinct bytes:      {self.distinct_symbols}")
        print(f"  Header size:         {self.header_size} bytes")
        print(f"  Payload:             {self.payload_bits} bits ({self.payload_size} bytes)")
        print(f"  Compressed size:     {self.compressed_size} bytes")
        if self.original_size > 0:
            print(f"  Avg code length:     {self.average_code_length:.2f} bits")
            print(f"  Max code length:     {self.max_code_length} bits")
            print(f"  Ratio:               {self.compression_ratio:.1f}%")


def _symbol_label(symbol: int) -> str:
    if symbol == PSEUDO_EOF:
        return 'EOF'
    if 0x20 < symbol < 0x7f:
        return repr(chr(symbol))
    return f"0x{symbol:02x}"


class Archiver:
    def __init__(self, strict: bool = True, verbose: bool = True):
        self.strict = strict
        self.verbose = verbose

    def _report(self, message: str = '', end: str = '\n'):
        if self.verbose:
            print(message, end=end, flush=True)

    @staticmethod
    def default_output_path(src: str, compressing: bool) -> str:
        if compressing:
            return src + DEFAULT_SUFFIX
        if src.endswith(DEFAULT_SUFFIX) and len(src) > len(DEFAULT_SUFFIX):
            return src[:-len(DEFAULT_SUFFIX)]
        return src + RESTORED_SUFFIX

    def _check_paths(self, src: str, dst: str):
        if not os.path.isfile(src):
            raise FileNotFoundError(f"File {src} not found")
        if os.path.abspath(src) == os.path.abspath(dst):
            raise ValueError(f"Output path is the same as input: {dst}")

    def _convert(self, src: str, dst: str,
                 convert: Callable[[BinaryIO, BinaryIO], T]) -> T:
        """
        Пишет результат convert в новый временный файл рядом с dst и
        переименовывает его в dst только после успешного завершения.
        """
        fd, tmp_path = tempfile.mkstemp(
            dir=os.path.dirname(os.path.abspath(dst)), suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'wb') as fout, open(src, 'rb') as fin:
                result = convert(fin, fout)
            os.replace(tmp_path, dst)
        except Exception:
            self._report("FAILED")
            raise
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        return result

    def compress_file(self, src: str, dst: Optional[str] = None) -> CompressionStats:
        dst = dst or self.default_output_path(src, compressing=True)
        self._check_paths(src, dst)

        self._report(f"Compressing {src}...", end=" ")
        frequencies = self._convert(src, dst, compress_stream)

        stats = CompressionStats.from_frequencies(frequencies, os.path.getsize(dst))
        self._report(f"OK ({stats.compression_ratio:.1f}%, max code {stats.max_code_length} bits)")
        self._report(f"Written: {dst}")
        return stats

    def decompress_file(self, src: str, dst: Optional[str] = None) -> int:
        dst = dst or self.default_output_path(src, compressing=False)
        self._check_paths(src, dst)

        self._report(f"Decompressing {src}...", end=" ")
        size = self._convert(
            src, dst, lambda fin, fout: decompress_stream(fin, fout, strict=self.strict)
        )

        self._report(f"OK ({size} bytes)")
        self._report(f"Written: {dst}")
        return size

    def describe_file(self, path: str) -> CompressionStats:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"File {path} not found")

        with open(path, 'rb') as f:
            frequencies = read_frequency_table(f)

        stats = CompressionStats.from_frequencies(frequencies, os.path.getsize(path))

        self._report(f"{'Symbol':<10} {'Count':>12} {'Bits':>6}  Code")
        self._report("-" * 60)
        for symbol in sorted(frequencies, key=lambda s: (-frequencies[s], s)):
            code = stats.codes[symbol]
            self._report(f"{_symbol_label(symbol):<10} {frequencies[symbol]:>12} "
                         f"{len(code):>6}  {code}")
        self._report("-" * 60)

        if self.verbose:
            stats.print_stats()
        return stats
