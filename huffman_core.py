import heapq
import itertools
import logging
from collections import Counter

logger = logging.getLogger(__name__)


### ERRORS ###
class HuffmanError(Exception):
    """Base class for every error raised by the Huffman engine."""


class HuffFormatError(HuffmanError, ValueError):
    """The code table or the .huff text layout is malformed."""


class CorruptStreamError(HuffmanError, ValueError):
    """The encoded bitstring is truncated or contains garbage."""


class HuffmanInvariantError(HuffmanError, RuntimeError):
    """An internal invariant was broken. This is a bug, not bad input."""


### HUFFMAN NODE CLASS ###
class HuffmanNode:
    """Leaf (one byte value) or merged internal node of the code tree."""
    def __init__(self, byte=None, freq=0, left=None, right=None):
        # leaves carry a byte value, merged nodes leave it as None
        self.byte = byte
        # occurrence count, summed over both subtrees for merged nodes
        self.freq = freq
        self.left = left
        self.right = right

    def is_leaf(self):
        return self.left is None and self.right is None

    def __repr__(self):
        if self.is_leaf():
            return f"HuffmanNode(byte={self.byte!r}, freq={self.freq})"
        return f"HuffmanNode(freq={self.freq})"


### FREQUENCY COUNTING ###
def calculate_frequency(data):
    """Counts how many times each byte value (0-255) occurs in data."""
    # Counter only keeps the values that actually occur, so an empty input gives {}
    return dict(Counter(bytes(data)))


### TREE CONSTRUCTION ###
def build_huffman_tree(frequency):
    """
    Builds the Huffman tree from a non-empty frequency table and returns its root.

    Ties between equal frequencies go to the node that entered the heap first:
    leaves are pushed in ascending byte order, merged nodes get the next
    sequence number. The first node popped becomes the left child.
    """
    if not frequency:
        raise ValueError("cannot build a Huffman tree from an empty frequency table")

    sequence = itertools.count()
    priority_queue = []
    for byte in sorted(frequency):
        freq = frequency[byte]
        if freq <= 0:
            raise ValueError(f"frequency of byte {byte} must be positive, got {freq}")
        heapq.heappush(priority_queue, (freq, next(sequence), HuffmanNode(byte=byte, freq=freq)))

    merges = 0
    while len(priority_queue) > 1:
        left_freq, _, left = heapq.heappop(priority_queue)
        right_freq, _, right = heapq.heappop(priority_queue)

        parent = HuffmanNode(freq=left_freq + right_freq, left=left, right=right)
        heapq.heappush(priority_queue, (parent.freq, next(sequence), parent))
        merges += 1

    logger.debug("built Huffman tree: %d leaves, %d merges", len(frequency), merges)
    return priority_queue[0][2]


### CODE GENERATION ###
def generate_codes(root):
    """Walks the tree and returns a {byte: codeword} table."""
    if root is None:
        return {}

    # A lone leaf has an empty path; give it a one-digit codeword instead
    if root.is_leaf():
        return {root.byte: "0"}

    huffman_codes = {}
    stack = [(root, "")]
    while stack:
        node, current_code = stack.pop()
        if node.is_leaf():
            huffman_codes[node.byte] = current_code
            continue
        if node.left is None or node.right is None:
            raise HuffmanInvariantError("internal Huffman node with a single child")
        # Right goes on first so the left branch is visited first
        stack.append((node.right, current_code + "1"))
        stack.append((node.left, current_code + "0"))

    return huffman_codes


### ENCODING ###
def encode_data(data, huffman_codes):
    """Maps every byte of data through the code table and joins the codewords."""
    try:
        return "".join([huffman_codes[byte] for byte in bytes(data)])
    except KeyError as e:
        raise HuffmanInvariantError(f"no codeword for byte {e.args[0]}") from None


def huffman_encoding(data):
    """
    Runs the whole compression pipeline over data.
    Returns (huffman_codes, encoded) where encoded is a string of '0'/'1'.
    """
    frequency = calculate_frequency(data)
    if not frequency:
        return {}, ""

    root = build_huffman_tree(frequency)
    huffman_codes = generate_codes(root)
    return huffman_codes, encode_data(data, huffman_codes)


### DECODING ###
def invert_codes(huffman_codes):
    """
    Turns {byte: codeword} into {codeword: byte}.
    Rejects tables that could not have come out of a Huffman tree.
    """
    reverse_codes = {}
    for byte, code in huffman_codes.items():
        if not code:
            raise HuffFormatError(f"empty codeword for byte {byte}")
        if code in reverse_codes:
            raise HuffFormatError(
                f"codeword {code!r} assigned to both byte {reverse_codes[code]} and byte {byte}"
            )
        reverse_codes[code] = byte

    # Sorted codewords put any prefix right before a word that extends it
    ordered = sorted(reverse_codes)
    for shorter, longer in zip(ordered, ordered[1:]):
        if longer.startswith(shorter):
            raise HuffFormatError(f"code table is not prefix-free: {shorter!r} prefixes {longer!r}")

    return reverse_codes


def huffman_decoding(encoded, huffman_codes):
    """Decodes a '0'/'1' string back into bytes using a {byte: codeword} table."""
    reverse_codes = invert_codes(huffman_codes)
    longest = max((len(code) for code in reverse_codes), default=0)

    out = bytearray()
    current_code = ""
    for position, bit in enumerate(encoded):
        if bit not in "01":
            raise CorruptStreamError(f"invalid digit {bit!r} at position {position}")
        current_code += bit
        if current_code in reverse_codes:
            out.append(reverse_codes[current_code])
            current_code = ""
        elif len(current_code) >= longest:
            raise CorruptStreamError(
                f"bits {current_code!r} ending at position {position} match no codeword"
            )

    if current_code:
        raise CorruptStreamError(
            f"encoded stream ends inside a codeword ({len(current_code)} dangling bits)"
        )

    return bytes(out)
