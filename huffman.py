"""
Реализует кодирование Хаффмана для сжатия потока байтов.
Использует переменную длину кодов: частые байты кодируются короче.
"""

import io
import heapq
from typing import BinaryIO, Dict, List, Optional
from collections import Counter

from bitstream import BitReader, BitWriter
from errors import CodeTableError, CorruptHeaderError, TruncatedPayloadError
from format import PSEUDO_EOF, read_frequency_table, serialize_frequency_table


NOT_A_SYMBOL = -1
NO_CHILD = -1
CHUNK_SIZE = 64 * 1024


def build_frequency_table(stream: BinaryIO) -> Dict[int, int]:
    frequencies: Dict[int, int] = Counter()

    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        frequencies.update(chunk)

    frequencies[PSEUDO_EOF] += 1
    return frequencies


class HuffmanTree:
    """
    Дерево Хаффмана, хранящееся в массивах узлов.

    Узел задаётся индексом; у листа нет детей, у внутреннего узла
    нет символа. Освобождение дерева сводится к удалению объекта.
    """

    def __init__(self):
        self.weights: List[int] = []
        self.symbols: List[int] = []
        self.zero: List[int] = []
        self.one: List[int] = []
        self.root: Optional[int] = None

    def __len__(self):
        return len(self.weights)

    def _add_node(self, weight: int, symbol: int = NOT_A_SYMBOL,
                  zero: int = NO_CHILD, one: int = NO_CHILD) -> int:
        self.weights.append(weight)
        self.symbols.append(symbol)
        self.zero.append(zero)
        self.one.append(one)
        return len(self.weights) - 1

    def is_leaf(self, node: int) -> bool:
        return self.zero[node] == NO_CHILD

    @staticmethod
    def build(frequencies: Dict[int, int]) -> 'HuffmanTree':
        tree = HuffmanTree()

        # Листья создаются по возрастанию символа, а индекс узла растёт
        # в порядке добавления в очередь: пара (вес, индекс) даёт
        # FIFO среди равных весов и одно и то же дерево для одной таблицы.
        heap = []
        for symbol in sorted(frequencies):
            node = tree._add_node(frequencies[symbol], symbol)
            heap.append((frequencies[symbol], node))

        if not heap:
            return tree

        heapq.heapify(heap)

        while len(heap) > 1:
            first_weight, first = heapq.heappop(heap)
            second_weight, second = heapq.heappop(heap)

            weight = first_weight + second_weight
            parent = tree._add_node(weight, zero=first, one=second)
            heapq.heappush(heap, (weight, parent))

        tree.root = heap[0][1]
        return tree

    def code_table(self) -> Dict[int, str]:
        codes: Dict[int, str] = {}

        if self.root is None:
            return codes

        def traverse(node: int, code: str):
            if self.is_leaf(node):
                codes[self.symbols[node]] = code
                return

            traverse(self.zero[node], code + '0')
            traverse(self.one[node], code + '1')

        traverse(self.root, '')
        return codes

    def depth(self) -> int:
        codes = self.code_table()
        return max((len(code) for code in codes.values()), default=0)


def encode_data(stream: BinaryIO, codes: Dict[int, str], writer: BitWriter):
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break

        for byte in chunk:
            code = codes.get(byte)
            if code is None:
                raise CodeTableError(byte)
            writer.write_bits(code)

    if PSEUDO_EOF not in codes:
        raise CodeTableError(PSEUDO_EOF)
    writer.write_bits(codes[PSEUDO_EOF])


def decode_data(reader: BitReader, tree: HuffmanTree, output: BinaryIO,
                strict: bool = True) -> int:
    """
    Декодирует биты из reader в output, пока не встретится PSEUDO_EOF.

    Если биты закончились раньше, при strict выбрасывается
    TruncatedPayloadError, иначе сохраняется уже декодированная часть.
    Возвращает число записанных байтов.
    """
    root = tree.root
    if root is None:
        return 0

    if tree.is_leaf(root):
        if tree.symbols[root] == PSEUDO_EOF:
            return 0
        raise CorruptHeaderError("Tree has no end-of-data leaf")

    decoded = bytearray()
    node = root

    while reader.bits_remaining() > 0:
        if reader.read_bit():
            node = tree.one[node]
        else:
            node = tree.zero[node]

        if not tree.is_leaf(node):
            continue

        symbol = tree.symbols[node]
        if symbol == PSEUDO_EOF:
            output.write(decoded)
            return len(decoded)

        decoded.append(symbol)
        node = root

    if strict:
        raise TruncatedPayloadError(len(decoded))

    output.write(decoded)
    return len(decoded)


def compress_stream(input_stream: BinaryIO, output_stream: BinaryIO) -> Dict[int, int]:
    start = input_stream.tell()
    frequencies = build_frequency_table(input_stream)
    input_stream.seek(start)

    output_stream.write(serialize_frequency_table(frequencies))

    tree = HuffmanTree.build(frequencies)
    codes = tree.code_table()

    writer = BitWriter(output_stream)
    encode_data(input_stream, codes, writer)
    writer.flush()

    return frequencies


def decompress_stream(input_stream: BinaryIO, output_stream: BinaryIO,
                      strict: bool = True) -> int:
    frequencies = read_frequency_table(input_stream)
    tree = HuffmanTree.build(frequencies)

    reader = BitReader(input_stream.read())
    return decode_data(reader, tree, output_stream, strict)


def compress(data: bytes) -> bytes:
    output = io.BytesIO()
    compress_stream(io.BytesIO(data), output)
    return output.getvalue()


def decompress(data: bytes, strict: bool = True) -> bytes:
    output = io.BytesIO()
    decompress_stream(io.BytesIO(data), output, strict)
    return output.getvalue()
