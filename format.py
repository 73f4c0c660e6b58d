"""
Определяет формат сжатого файла: заголовок с таблицей частот и упакованные биты.

    uint16  количество записей n
    n x (uint16 символ, uint64 частота), символы по возрастанию
    упакованные биты, завершённые кодом PSEUDO_EOF
"""

import struct
import io
from typing import BinaryIO, Dict, Tuple

from errors import CorruptHeaderError


PSEUDO_EOF = 256
MAX_SYMBOLS = PSEUDO_EOF + 1

HEADER_COUNT_FMT = '<H'
HEADER_ENTRY_FMT = '<HQ'
HEADER_COUNT_SIZE = struct.calcsize(HEADER_COUNT_FMT)
HEADER_ENTRY_SIZE = struct.calcsize(HEADER_ENTRY_FMT)
MAX_COUNT = 0xFFFFFFFFFFFFFFFF


def header_size(entry_count: int) -> int:
    return HEADER_COUNT_SIZE + entry_count * HEADER_ENTRY_SIZE


def serialize_frequency_table(table: Dict[int, int]) -> bytes:
    output = io.BytesIO()
    output.write(struct.pack(HEADER_COUNT_FMT, len(table)))

    for symbol in sorted(table):
        count = table[symbol]
        if not 0 <= symbol <= PSEUDO_EOF:
            raise ValueError(f"Symbol out of range: {symbol}")
        if not 0 <= count <= MAX_COUNT:
            raise ValueError(f"Count out of range for symbol {symbol}: {count}")
        output.write(struct.pack(HEADER_ENTRY_FMT, symbol, count))

    return output.getvalue()


def deserialize_frequency_table(data: bytes, offset: int = 0) -> Tuple[Dict[int, int], int]:
    """
    Читает таблицу частот из data начиная с offset.

    Возвращает таблицу и позицию первого байта полезной нагрузки.
    """
    pos = offset

    if pos + HEADER_COUNT_SIZE > len(data):
        raise CorruptHeaderError("Header too short: missing entry count")

    count = struct.unpack_from(HEADER_COUNT_FMT, data, pos)[0]
    pos += HEADER_COUNT_SIZE

    if count == 0:
        raise CorruptHeaderError("Frequency table is empty")
    if count > MAX_SYMBOLS:
        raise CorruptHeaderError(f"Too many entries in frequency table: {count}")
    if pos + count * HEADER_ENTRY_SIZE > len(data):
        raise CorruptHeaderError(
            f"Header declares {count} entries but only "
            f"{len(data) - pos} bytes follow"
        )

    table: Dict[int, int] = {}
    for _ in range(count):
        symbol, freq = struct.unpack_from(HEADER_ENTRY_FMT, data, pos)
        pos += HEADER_ENTRY_SIZE

        if symbol > PSEUDO_EOF:
            raise CorruptHeaderError(f"Invalid symbol in header: {symbol}")
        if symbol in table:
            raise CorruptHeaderError(f"Duplicate symbol in header: {symbol}")
        table[symbol] = freq

    if PSEUDO_EOF not in table:
        raise CorruptHeaderError("Frequency table has no end-of-data entry")

    return table, pos


def read_frequency_table(stream: BinaryIO) -> Dict[int, int]:
    prefix = stream.read(HEADER_COUNT_SIZE)
    if len(prefix) < HEADER_COUNT_SIZE:
        raise CorruptHeaderError("Header too short: missing entry count")

    count = struct.unpack(HEADER_COUNT_FMT, prefix)[0]
    # при count > MAX_SYMBOLS читаем только префикс, ошибку выдаст разбор
    body = stream.read(min(count, MAX_SYMBOLS) * HEADER_ENTRY_SIZE)

    table, _ = deserialize_frequency_table(prefix + body)
    return table
