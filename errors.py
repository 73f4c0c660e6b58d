"""
Исключения кодека Хаффмана.
"""


class HuffmanError(Exception):
    pass


class FormatError(HuffmanError, ValueError):
    """Сжатые данные повреждены или имеют неверный формат"""


class CorruptHeaderError(FormatError):
    pass


class TruncatedPayloadError(FormatError):
    def __init__(self, decoded: int):
        super().__init__(
            f"Payload ended before end-of-data marker ({decoded} bytes decoded)"
        )
        self.decoded = decoded


class CodeTableError(HuffmanError, RuntimeError):
    """Символ входных данных отсутствует в таблице кодов"""

    def __init__(self, symbol: int):
        super().__init__(f"No code for symbol {symbol}")
        self.symbol = symbol
