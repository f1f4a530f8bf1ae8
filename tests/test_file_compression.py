import logging
import os
import random
import stat

import pytest

import File_Compression
from File_Compression import (
    compress_bytes,
    compress_file,
    compression_stats,
    decompress_bytes,
    decompress_file,
    main,
)
from huffman_core import CorruptStreamError, HuffFormatError


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.txt"
    path.write_bytes(b"Hello World\n" * 50)
    return path


def test_compress_bytes_scenario():
    blob, codes, encoded = compress_bytes(b"aaab")
    assert blob == b"CODES:\na:1\nb:0\nDATA:\n1110\n"
    assert decompress_bytes(blob) == b"aaab"


def test_compress_bytes_empty():
    blob, codes, encoded = compress_bytes(b"")
    assert (codes, encoded) == ({}, "")
    assert decompress_bytes(blob) == b""


def test_file_roundtrip(tmp_path, sample_file):
    huff = tmp_path / "sample.txt.huff"
    restored = tmp_path / "restored.txt"

    result = compress_file(str(sample_file), str(huff))
    stats = result.stats
    assert stats.original_size == 600
    assert stats.compressed_size == huff.stat().st_size
    assert stats.distinct_bytes == len(set(sample_file.read_bytes()))

    assert decompress_file(str(huff), str(restored)) == str(restored)
    assert restored.read_bytes() == sample_file.read_bytes()


def test_binary_file_roundtrip(tmp_path):
    rng = random.Random(7)
    data = bytes(range(256)) + bytes(rng.getrandbits(8) for _ in range(10 * 1024))
    src = tmp_path / "blob.bin"
    src.write_bytes(data)

    compress_file(str(src), str(tmp_path / "blob.huff"))
    decompress_file(str(tmp_path / "blob.huff"), str(tmp_path / "blob.out"))
    assert (tmp_path / "blob.out").read_bytes() == data


def test_missing_header_writes_nothing(tmp_path):
    bad = tmp_path / "bad.huff"
    bad.write_bytes(b"a:0\nDATA:\n0\n")
    out = tmp_path / "out.bin"

    with pytest.raises(HuffFormatError):
        decompress_file(str(bad), str(out))
    assert not out.exists()
    assert os.listdir(tmp_path) == ["bad.huff"]


def test_truncated_stream_keeps_existing_output(tmp_path, sample_file):
    huff = tmp_path / "sample.huff"
    compress_file(str(sample_file), str(huff))
    blob = huff.read_bytes()
    # chop the last digit off the data line
    huff.write_bytes(blob[:-2] + b"\n")

    out = tmp_path / "out.txt"
    out.write_bytes(b"previous")
    with pytest.raises(CorruptStreamError):
        decompress_file(str(huff), str(out))
    assert out.read_bytes() == b"previous"


def test_missing_input_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        compress_file(str(tmp_path / "nope.txt"), str(tmp_path / "nope.huff"))


def test_compression_stats_handles_empty_input():
    stats = compression_stats(0, 14, 0, 0)
    assert stats.saved_percent == 0
    assert stats.saved == -14


def test_cli_compress_and_decompress(tmp_path, sample_file, capsys):
    huff = tmp_path / "out.huff"
    restored = tmp_path / "restored.txt"

    assert main(["compress", str(sample_file), str(huff)]) == 0
    out = capsys.readouterr().out
    assert "Zipping file:" in out
    assert "Huffman Codes:" in out
    assert "Character frequencies:" in out
    assert "Encoded Bitstring:" in out

    assert main(["decompress", str(huff), str(restored)]) == 0
    assert "Decompression completed" in capsys.readouterr().out
    assert restored.read_bytes() == sample_file.read_bytes()


def test_cli_accepts_zip_aliases(tmp_path, sample_file, capsys):
    huff = tmp_path / "out.huff"
    assert main(["zip", "--quiet", str(sample_file), str(huff)]) == 0
    assert "Huffman Codes:" not in capsys.readouterr().out
    assert main(["unzip", "--strict", str(huff), str(tmp_path / "back.txt")]) == 0


def test_cli_missing_header_exits_non_zero(tmp_path, capsys):
    bad = tmp_path / "bad.huff"
    bad.write_bytes(b"garbage\n")
    out = tmp_path / "out.bin"

    assert main(["decompress", str(bad), str(out)]) == 1
    assert "missing CODES section" in capsys.readouterr().err
    assert not out.exists()


def test_cli_unopenable_input(tmp_path, capsys):
    assert main(["compress", str(tmp_path / "missing.txt"), str(tmp_path / "x.huff")]) == 1
    assert "Cannot open input file" in capsys.readouterr().err


def test_cli_unwritable_output(tmp_path, sample_file, capsys):
    target = tmp_path / "no_such_dir" / "x.huff"
    assert main(["compress", str(sample_file), str(target)]) == 1
    assert "Cannot write output file" in capsys.readouterr().err


@pytest.mark.parametrize("argv", [[], ["compress"], ["compress", "a"], ["shrink", "a", "b"]])
def test_cli_usage_errors(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code != 0
    assert "usage" in capsys.readouterr().err


def test_huff_extension():
    assert File_Compression.HUFF_EXTENSION == ".huff"


@pytest.fixture
def umask_022():
    previous = os.umask(0o022)
    yield
    os.umask(previous)


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_output_files_follow_the_umask(tmp_path, sample_file, umask_022):
    huff = tmp_path / "sample.huff"
    restored = tmp_path / "restored.txt"
    compress_file(str(sample_file), str(huff))
    decompress_file(str(huff), str(restored))

    plain = tmp_path / "plain.txt"
    plain.write_bytes(b"x")
    assert stat.S_IMODE(plain.stat().st_mode) == 0o644
    assert stat.S_IMODE(huff.stat().st_mode) == 0o644
    assert stat.S_IMODE(restored.stat().st_mode) == 0o644


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_overwrite_keeps_existing_mode(tmp_path, sample_file, umask_022):
    huff = tmp_path / "sample.huff"
    compress_file(str(sample_file), str(huff))
    restored = tmp_path / "restored.txt"
    restored.write_bytes(b"old")
    os.chmod(restored, 0o640)

    decompress_file(str(huff), str(restored))
    assert stat.S_IMODE(restored.stat().st_mode) == 0o640
    assert restored.read_bytes() == sample_file.read_bytes()


def test_compress_file_returns_report_data(tmp_path):
    src = tmp_path / "four.txt"
    src.write_bytes(b"aaab")
    result = compress_file(str(src), str(tmp_path / "four.huff"))
    assert result.huffman_codes == {ord("a"): "1", ord("b"): "0"}
    assert result.encoded == "1110"
    assert result.frequency == {ord("a"): 3, ord("b"): 1}


def test_cli_compress_goes_through_compress_file(tmp_path, sample_file, caplog):
    caplog.set_level(logging.INFO, logger="File_Compression")
    huff = tmp_path / "out.huff"
    assert main(["compress", "--quiet", str(sample_file), str(huff)]) == 0
    assert any(r.getMessage().startswith("compressed ") for r in caplog.records)
