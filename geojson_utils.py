"""Byte-size helpers for reporting how much a reduction saved."""

import gzip
import json
import os
from typing import Any, Optional, Union

Number = Union[int, float]


def format_file_size(size: Number) -> str:
    """Format a byte count with decimal (SI) units: B, KB, MB, GB."""
    if size < 10 ** 3:
        return f"{size} B"
    elif size < 10 ** 6:
        return f"{size / 10 ** 3:.2f} KB"
    elif size < 10 ** 9:
        return f"{size / 10 ** 6:.2f} MB"
    else:
        return f"{size / 10 ** 9:.2f} GB"


def calculate_percentage_reduction(original_size: Optional[Number],
                                   reduced_size: Optional[Number]) -> Optional[float]:
    """
    Percentage of the original size saved by the reduction.

    Returns None when either size is unknown or the original size is zero.
    """
    if original_size is None or reduced_size is None or original_size == 0:
        return None
    return (original_size - reduced_size) / original_size * 100


def encode_compact_json(data: Any) -> bytes:
    """
    Encode `data` as compact UTF-8 JSON.

    Raises ValueError for NaN or Infinity values, which strict JSON cannot hold.
    """
    json_str = json.dumps(data, separators=(',', ':'), ensure_ascii=False, allow_nan=False)
    return json_str.encode('utf-8')


def serialized_size(data: Any) -> int:
    """Size in bytes of the compact UTF-8 JSON encoding of `data`."""
    return len(encode_compact_json(data))


def get_file_size(filepath: str) -> int:
    return os.path.getsize(filepath)


def get_gzipped_size(filepath: str) -> int:
    with open(filepath, 'rb') as f_in:
        gzipped = gzip.compress(f_in.read())
    return len(gzipped)
