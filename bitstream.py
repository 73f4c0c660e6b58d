"""
Побитовый ввод/вывод: биты упаковываются в байты, старший бит первым.
"""

import struct
from typing import BinaryIO


class BitWriter:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.bits_written = 0
        self._cur = 0
        self._nbits = 0

    def write_bit(self, bit: int):
        self._cur = (self._cur << 1) | (1 if bit else 0)
        self._nbits += 1
        self.bits_written += 1

        if self._nbits == 8:
            self.stream.write(struct.pack('B', self._cur))
            self._cur = 0
            self._nbits = 0

    def write_bits(self, code: str):
        for bit in code:
            self.write_bit(bit == '1')

    def flush(self):
        """Дописывает неполный байт, дополняя его нулевыми битами."""
        if self._nbits > 0:
            padding = 8 - self._nbits
            self.stream.write(struct.pack('B', self._cur << padding))
            self._cur = 0
            self._nbits = 0


class BitReader:
    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.pos = offset
        self.bit = 0

    def read_bit(self) -> int:
        if self.pos >= len(self.data):
            raise EOFError("Unexpected end of bitstream")

        b = (self.data[self.pos] >> (7 - self.bit)) & 1
        self.bit += 1
        if self.bit == 8:
            self.bit = 0
            self.pos += 1
        return b

    def bits_remaining(self) -> int:
        return max(0, (len(self.data) - self.pos) * 8 - self.bit)
