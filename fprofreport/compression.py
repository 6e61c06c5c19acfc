# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Loading of fprof analysis dumps.

Dumps from long profiling runs are often archived with Zstd; compression is
detected from the file's magic number, not its extension. fprof writes its
analysis through an Erlang file opened with the default latin-1 encoding,
while Elixir and newer OTP tooling write UTF-8, so text is decoded as UTF-8
first and as latin-1 when that fails.
"""

import logging
from pathlib import Path
from typing import Union

import zstandard as zstd

logger = logging.getLogger(__name__)

# Zstd magic number (little-endian): 0xFD2FB528
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"


def detect_compression(filepath: Union[str, Path]) -> str:
    """
    Detect compression format of a file.

    Returns:
        Compression type: "zstd" or "none"

    Raises:
        FileNotFoundError: If file does not exist
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    with open(filepath, "rb") as f:
        if f.read(4) == ZSTD_MAGIC:
            return "zstd"

    return "none"


def read_analysis_bytes(filepath: Union[str, Path]) -> bytes:
    """
    Read the raw bytes of an analysis dump, decompressing Zstd dumps.

    Concatenated Zstd frames (e.g. dumps appended to one archive) are read
    back as one buffer.

    Raises:
        FileNotFoundError: If file does not exist
        zstandard.ZstdError: If a Zstd dump is corrupt
    """
    filepath = Path(filepath)
    if detect_compression(filepath) == "none":
        return filepath.read_bytes()

    dctx = zstd.ZstdDecompressor()
    with open(filepath, "rb") as binary_file:
        with dctx.stream_reader(binary_file, read_across_frames=True) as reader:
            return reader.read()


def decode_analysis_bytes(data: bytes) -> str:
    """Decode analysis bytes as UTF-8, or as latin-1 if they are not UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.debug("Analysis is not UTF-8 (%s); decoding as latin-1", e.reason)
        return data.decode("latin-1")


def read_analysis_text(filepath: Union[str, Path]) -> str:
    """
    Read a whole analysis dump as text, plain or Zstd-compressed.

    Example:
        >>> text = read_analysis_text("fprof.analysis.zst")
        >>> decoder = decode_report(text)
    """
    return decode_analysis_bytes(read_analysis_bytes(filepath))
