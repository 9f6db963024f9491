"""
Командная строка для компрессора.
"""

import argparse
import sys
from compressor import COMPRESSED_SUFFIX, HuffmanCompressor


def main():
    parser = argparse.ArgumentParser(
        description='Huffman file compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress file1.txt file2.txt
  python main.py compress file1.txt -o file1.bin
  python main.py info file1.txt.huff
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress files')
    compress_parser.add_argument('files', nargs='+', help='Files to compress')
    compress_parser.add_argument('-o', '--output', help='Output path (single file only)')
    compress_parser.add_argument('--suffix', default=COMPRESSED_SUFFIX,
                                 help=f'Suffix for output files (default: {COMPRESSED_SUFFIX})')

    info_parser = subparsers.add_parser('info', help='Show compressed file header and codes')
    info_parser.add_argument('file', help='Compressed file path')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    compressor = HuffmanCompressor(suffix=getattr(args, 'suffix', COMPRESSED_SUFFIX))

    try:
        if args.command == 'compress':
            if args.output:
                if len(args.files) != 1:
                    parser.error('--output requires exactly one input file')
                result = compressor.compress_file(args.files[0], args.output)
                print(f"{result.source_path} -> {result.output_path} "
                      f"({result.original_size} -> {result.compressed_size} bytes, {result.ratio:.1f}%)")
            else:
                compressor.compress_files(args.files)

        elif args.command == 'info':
            if not compressor.describe(args.file):
                sys.exit(1)

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
