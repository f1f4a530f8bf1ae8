import argparse
import logging
import os
import stat
import sys
import tempfile
from collections import namedtuple

import huff_format
from huffman_core import HuffmanError, calculate_frequency, huffman_decoding, huffman_encoding

logger = logging.getLogger(__name__)

HUFF_EXTENSION = ".huff"

CompressionStats = namedtuple(
    "CompressionStats",
    ["original_size", "compressed_size", "distinct_bytes", "encoded_bits", "saved", "saved_percent"],
)
CompressedFile = namedtuple("CompressedFile", ["stats", "huffman_codes", "encoded", "frequency"])


def compression_stats(original_size, compressed_size, distinct_bytes, encoded_bits):
    saved = original_size - compressed_size
    saved_percent = round(saved / original_size * 100, 2) if original_size else 0
    return CompressionStats(original_size, compressed_size, distinct_bytes, encoded_bits, saved, saved_percent)


### IN-MEMORY PIPELINE ###
def compress_bytes(data):
    """Returns (huff_blob, huffman_codes, encoded) for raw input bytes."""
    huffman_codes, encoded = huffman_encoding(data)
    return huff_format.serialize(huffman_codes, encoded), huffman_codes, encoded


def decompress_bytes(blob, strict=False):
    """Parses .huff bytes and decodes them back to the original data."""
    archive = huff_format.parse(blob, strict=strict)
    return huffman_decoding(archive.encoded, archive.codes)


### FILE HELPERS ###
def _read_input(input_path):
    with open(input_path, "rb") as f:
        return f.read()


def _output_mode(output_path):
    """Mode a plain open() would give: the existing file's, else 0666 minus the umask."""
    try:
        return stat.S_IMODE(os.stat(output_path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _write_output(output_path, data):
    """Writes data next to output_path first and moves it into place once complete."""
    directory = os.path.dirname(os.path.abspath(output_path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".filezipper-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates 0600 files
        os.chmod(tmp_path, _output_mode(output_path))
        os.replace(tmp_path, output_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


### FILE COMPRESSION ###
def compress_file(input_path, output_path):
    """
    Compresses input_path into the .huff text format at output_path.
    Returns a CompressedFile with the stats, the code table, the encoded
    bitstring and the byte frequencies.
    """
    data = _read_input(input_path)
    blob, huffman_codes, encoded = compress_bytes(data)
    _write_output(output_path, blob)

    logger.info("compressed %s -> %s (%d -> %d bytes)", input_path, output_path, len(data), len(blob))
    stats = compression_stats(len(data), len(blob), len(huffman_codes), len(encoded))
    return CompressedFile(stats, huffman_codes, encoded, calculate_frequency(data))


def decompress_file(input_path, output_path, strict=False):
    """
    Restores the original file from a .huff file.
    Nothing is written to output_path unless decoding succeeds.
    """
    blob = _read_input(input_path)
    data = decompress_bytes(blob, strict=strict)
    _write_output(output_path, data)

    logger.info("decompressed %s -> %s (%d bytes)", input_path, output_path, len(data))
    return output_path


### CONSOLE REPORT ###
def _printable(byte):
    char = chr(byte)
    return char if char.isprintable() and byte < 128 else f"\\x{byte:02x}"


def print_report(result, show_bitstring=True):
    print("\nHuffman Codes:")
    for byte in sorted(result.huffman_codes):
        print(f"'{_printable(byte)}': {result.huffman_codes[byte]}")

    print("\nCharacter frequencies:")
    for byte in sorted(result.frequency):
        print(f"'{_printable(byte)}' ({byte}): {result.frequency[byte]} times")

    if show_bitstring:
        print(f"\nEncoded Bitstring:\n{result.encoded}")

    stats = result.stats
    print(f"\nOriginal Size: {stats.original_size} bytes")
    print(f"Compressed Size: {stats.compressed_size} bytes")
    if stats.original_size:
        print(f"Compression achieved: {stats.saved_percent:.2f}% reduction.")


### COMMAND LINE ###
def build_parser():
    parser = argparse.ArgumentParser(
        prog="filezipper",
        description="Huffman file compressor (text CODES:/DATA: format)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="mode", metavar="{compress,decompress}")
    subparsers.required = True

    compress = subparsers.add_parser("compress", aliases=["zip"], help="Compress a file")
    compress.add_argument("input_file")
    compress.add_argument("output_file")
    compress.add_argument("--quiet", action="store_true", help="Do not print codes, frequencies and bitstring")

    decompress = subparsers.add_parser("decompress", aliases=["unzip"], help="Decompress a .huff file")
    decompress.add_argument("input_file")
    decompress.add_argument("output_file")
    decompress.add_argument("--strict", action="store_true", help="Treat malformed code table lines as errors")
    return parser


def _report_os_error(e, args):
    if e.filename == args.input_file:
        print(f"Error: Cannot open input file '{args.input_file}': {e.strerror or e}", file=sys.stderr)
    else:
        print(f"Error: Cannot write output file '{args.output_file}': {e.strerror or e}", file=sys.stderr)
    return 1


def _run_compress(args):
    print(f"Zipping file: {args.input_file}")
    try:
        result = compress_file(args.input_file, args.output_file)
    except OSError as e:
        return _report_os_error(e, args)

    if args.quiet:
        print(f"Compressed {result.stats.original_size} -> {result.stats.compressed_size} bytes")
    else:
        print_report(result)
    return 0


def _run_decompress(args):
    print(f"Unzipping file: {args.input_file}")
    try:
        decompress_file(args.input_file, args.output_file, strict=args.strict)
    except OSError as e:
        return _report_os_error(e, args)
    except HuffmanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Decompression completed. Decoded file written to: {args.output_file}")
    return 0


def main(argv=None):
    """Command-line entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.mode in ("compress", "zip"):
        return _run_compress(args)
    return _run_decompress(args)


if __name__ == "__main__":
    sys.exit(main())
