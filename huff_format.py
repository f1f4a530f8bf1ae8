"""
Reader and writer for the .huff text layout.

    CODES:
    <byte>:<codeword>
    ...
    DATA:
    <encoded bitstring>

The byte on an entry line is stored raw. Entry lines are read by position
(byte at offset 0, ':' at offset 1, codeword up to the next newline), which
keeps newline and other control bytes readable even though the layout is
line-oriented. A consequence for hand-edited files: an empty line followed by
a line starting with ':' is read as one entry for the byte b"\\n", where a
plain line splitter would skip both lines.

Header, separator, entry and data lines all tolerate a trailing b"\\r", so
files that went through a CRLF conversion still parse.
"""

import logging
from collections import namedtuple

from huffman_core import HuffFormatError

logger = logging.getLogger(__name__)

# --- CONSTANTS ---
HEADER = b"CODES:"
SEPARATOR = b"DATA:"
DELIMITER = ord(":")
NEWLINE = b"\n"
# Shortest valid entry: one byte, the delimiter, one codeword digit
MIN_ENTRY_LENGTH = 3

ENTRY = "entry"
SKIP = "skip"

ParsedEntry = namedtuple("ParsedEntry", ["status", "byte", "codeword"])
HuffArchive = namedtuple("HuffArchive", ["codes", "encoded", "skipped"])


### WRITING ###
def serialize(huffman_codes, encoded):
    """Renders a code table and an encoded bitstring into .huff bytes."""
    parts = [HEADER, NEWLINE]
    for byte in sorted(huffman_codes):
        parts.append(bytes([byte]))
        parts.append(b":")
        parts.append(huffman_codes[byte].encode("ascii"))
        parts.append(NEWLINE)
    parts += [SEPARATOR, NEWLINE, encoded.encode("ascii"), NEWLINE]
    return b"".join(parts)


### READING ###
def parse_entry(line):
    """
    Classifies one code-table line.

    Returns ParsedEntry(ENTRY, byte, codeword) for a usable line and
    ParsedEntry(SKIP, None, None) for a line too short to hold the delimiter
    and a codeword. A codeword made of anything but '0'/'1' raises.
    """
    if len(line) < MIN_ENTRY_LENGTH or line[1] != DELIMITER:
        return ParsedEntry(SKIP, None, None)

    codeword = line[2:]
    if codeword.strip(b"01"):
        raise HuffFormatError(f"codeword for byte {line[0]} has non-binary digits: {codeword!r}")
    return ParsedEntry(ENTRY, line[0], codeword.decode("ascii"))


def _strip_cr(line):
    # Entry lines always hold at least byte and delimiter, so offset 0 is never cut
    if line.endswith(b"\r"):
        return line[:-1]
    return line


def _read_line(blob, pos):
    """Returns (line, next_pos) for the line starting at pos, without its line ending."""
    end = blob.find(NEWLINE, pos)
    if end == -1:
        return _strip_cr(blob[pos:]), len(blob)
    return _strip_cr(blob[pos:end]), end + 1


def _read_entry_line(blob, pos):
    # The newline search starts after the raw byte so that byte may itself be b"\n"
    end = blob.find(NEWLINE, pos + 2)
    if end == -1:
        return _strip_cr(blob[pos:]), len(blob)
    return _strip_cr(blob[pos:end]), end + 1


def parse(blob, strict=False):
    """
    Parses .huff bytes into a HuffArchive.

    Malformed short lines in the code table are skipped and counted, unless
    strict is set, in which case they raise HuffFormatError like every other
    format problem.
    """
    blob = bytes(blob)

    header, pos = _read_line(blob, 0)
    if header != HEADER:
        raise HuffFormatError("Invalid file format: missing CODES section")

    huffman_codes = {}
    skipped = 0
    line_number = 1
    while True:
        if pos >= len(blob):
            raise HuffFormatError("Invalid file format: missing DATA section")
        line_number += 1

        if pos + 1 < len(blob) and blob[pos + 1] == DELIMITER:
            line, pos = _read_entry_line(blob, pos)
        else:
            line, pos = _read_line(blob, pos)
            if line == SEPARATOR:
                break

        entry = parse_entry(line)
        if entry.status == SKIP:
            if strict:
                raise HuffFormatError(f"malformed code table line {line_number}: {line!r}")
            logger.warning("skipping malformed code table line %d: %r", line_number, line)
            skipped += 1
            continue

        if entry.byte in huffman_codes:
            raise HuffFormatError(f"byte {entry.byte} appears twice in the code table")
        huffman_codes[entry.byte] = entry.codeword

    data_line, pos = _read_line(blob, pos)
    if strict and blob[pos:].strip():
        raise HuffFormatError("unexpected content after the DATA line")

    logger.debug("parsed %d codes, %d encoded bits, %d skipped lines",
                 len(huffman_codes), len(data_line), skipped)
    # latin-1 maps every byte to one character; the decoder rejects non-digits
    return HuffArchive(huffman_codes, data_line.decode("latin-1"), skipped)
