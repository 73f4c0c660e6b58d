"""
Командная строка для сжатия файлов кодом Хаффмана.
"""

import argparse
import sys
from archiver import Archiver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Huffman file compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress notes.txt
  python main.py compress notes.txt -o notes.huf
  python main.py decompress notes.txt.huf -o restored.txt
  python main.py info notes.txt.huf
        """
    )
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress file')
    compress_parser.add_argument('file', help='File to compress')
    compress_parser.add_argument('-o', '--output', help='Output path (default: FILE.huf)')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress file')
    decompress_parser.add_argument('file', help='Compressed file')
    decompress_parser.add_argument('-o', '--output', help='Output path (default: FILE without .huf)')
    decompress_parser.add_argument('--lenient', action='store_true',
                                   help='Keep partial output of a truncated file instead of failing')

    info_parser = subparsers.add_parser('info', help='Show frequency and code tables')
    info_parser.add_argument('file', help='Compressed file')

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    strict = not getattr(args, 'lenient', False)
    archiver = Archiver(strict=strict, verbose=not args.quiet)

    try:
        if args.command == 'compress':
            archiver.compress_file(args.file, args.output)

        elif args.command == 'decompress':
            archiver.decompress_file(args.file, args.output)

        elif args.command == 'info':
            archiver.describe_file(args.file)

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
