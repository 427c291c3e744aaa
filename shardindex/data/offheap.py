"""
Partitioned, memory-mapped index map store.

A store for one feature shard is `num_partitions` files named
`<shard_id>-partition-<p>.idx`. A key lives in partition
`key_hash(key) % num_partitions`; partition `p` owns the global index range
`[index_offset, index_offset + num_entries)`, and the offsets of consecutive
partitions are contiguous, so indices run densely from 0 across the store.

File layout (little-endian)::

    header          HEADER_DTYPE, 48 bytes
    hashes          u8[n]   key hashes, ascending
    indices         i8[n]   global index of each record
    key_offsets     u8[n]   byte offset of each key inside the blob
    key_lengths     u4[n]   byte length of each key, padded to 8 bytes
    by_local_index  i8[n]   record position for local index 0..n-1
    blob            utf-8 key bytes

Records are sorted by hash so a lookup is a binary search over `hashes`
followed by a byte comparison against the blob. Nothing besides the header is
read eagerly.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
from loguru import logger

from shardindex.errors import ConfigurationError, CorruptStoreError, StoreNotFoundError

from .feature_keys import INTERCEPT_KEY
from .indexers import IndexMap

MAGIC = b"SIDX"
FORMAT_VERSION = 1

HEADER_DTYPE = np.dtype(
    [
        ("magic", "S4"),
        ("version", "<u4"),
        ("partition_id", "<u4"),
        ("num_partitions", "<u4"),
        ("num_entries", "<u8"),
        ("index_offset", "<u8"),
        ("blob_bytes", "<u8"),
        ("reserved", "<u8"),
    ]
)


def key_hash(key_bytes: bytes) -> int:
    """Stable 64-bit hash of an encoded feature key."""
    return int.from_bytes(hashlib.blake2b(key_bytes, digest_size=8).digest(), "little")


def partition_for_key(key: str, num_partitions: int) -> int:
    return key_hash(key.encode("utf-8")) % num_partitions


def partition_filename(shard_id: str, partition_id: int) -> str:
    return f"{shard_id}-partition-{partition_id}.idx"


def _check_store_args(num_partitions: int, shard_id: str) -> None:
    if num_partitions < 1:
        raise ConfigurationError(
            f"Off-heap index maps need at least one partition, got {num_partitions}"
        )
    if not shard_id or "/" in shard_id or "\\" in shard_id:
        raise ConfigurationError(f"Invalid feature shard id for off-heap store: {shard_id!r}")


def _padding(num_bytes: int) -> int:
    return (-num_bytes) % 8


def _expected_file_size(num_entries: int, blob_bytes: int) -> int:
    length_bytes = 4 * num_entries
    return (
        HEADER_DTYPE.itemsize
        + 8 * num_entries * 4
        + length_bytes
        + _padding(length_bytes)
        + blob_bytes
    )


def write_off_heap_store(
    keys: Iterable[str],
    directory: Path,
    num_partitions: int,
    shard_id: str,
    *,
    add_intercept: bool = False,
) -> list[Path]:
    """
    Partition `keys` and write one store file per partition.

    Inside a partition, local indices follow ascending key order; global
    indices add the partition's offset. Returns the written paths in
    partition order.
    """
    _check_store_args(num_partitions, shard_id)
    distinct = set(keys)
    if add_intercept:
        distinct.add(INTERCEPT_KEY)

    buckets: list[list[bytes]] = [[] for _ in range(num_partitions)]
    for key in sorted(distinct):
        encoded = key.encode("utf-8")
        buckets[key_hash(encoded) % num_partitions].append(encoded)

    directory.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    index_offset = 0
    for partition_id, bucket in enumerate(buckets):
        path = directory / partition_filename(shard_id, partition_id)
        _write_partition(path, bucket, partition_id, num_partitions, index_offset)
        paths.append(path)
        index_offset += len(bucket)

    logger.info(
        "Wrote off-heap index map for shard '{}' with {} features across {} partitions to {}",
        shard_id,
        index_offset,
        num_partitions,
        directory,
    )
    return paths


def _write_partition(
    path: Path,
    sorted_keys: list[bytes],
    partition_id: int,
    num_partitions: int,
    index_offset: int,
) -> None:
    num_entries = len(sorted_keys)
    hashes = np.fromiter((key_hash(key) for key in sorted_keys), dtype="<u8", count=num_entries)
    lengths = np.fromiter((len(key) for key in sorted_keys), dtype="<u4", count=num_entries)
    offsets = np.zeros(num_entries, dtype="<u8")
    if num_entries:
        offsets[1:] = np.cumsum(lengths[:-1], dtype="<u8")

    # Local index i is the i-th key in sorted order; records are stored by hash.
    order = np.argsort(hashes, kind="stable")
    local_indices = np.arange(num_entries, dtype="<i8")
    by_local_index = np.empty(num_entries, dtype="<i8")
    by_local_index[order] = local_indices

    blob = b"".join(sorted_keys)
    header = np.zeros(1, dtype=HEADER_DTYPE)
    header["magic"] = MAGIC
    header["version"] = FORMAT_VERSION
    header["partition_id"] = partition_id
    header["num_partitions"] = num_partitions
    header["num_entries"] = num_entries
    header["index_offset"] = index_offset
    header["blob_bytes"] = len(blob)

    with path.open("wb") as handle:
        handle.write(header.tobytes())
        handle.write(hashes[order].tobytes())
        handle.write((local_indices[order] + index_offset).astype("<i8").tobytes())
        handle.write(offsets[order].tobytes())
        length_bytes = lengths[order].tobytes()
        handle.write(length_bytes)
        handle.write(b"\x00" * _padding(len(length_bytes)))
        handle.write(by_local_index.tobytes())
        handle.write(blob)


@dataclass(frozen=True)
class _Partition:
    path: Path
    index_offset: int
    hashes: np.ndarray
    indices: np.ndarray
    key_offsets: np.ndarray
    key_lengths: np.ndarray
    by_local_index: np.ndarray
    blob: np.ndarray

    @property
    def num_entries(self) -> int:
        return int(self.hashes.shape[0])

    def key_at(self, position: int) -> bytes:
        start = int(self.key_offsets[position])
        return bytes(self.blob[start : start + int(self.key_lengths[position])])

    def lookup(self, hashed: int, key_bytes: bytes) -> Optional[int]:
        target = np.uint64(hashed)
        lo = int(np.searchsorted(self.hashes, target, side="left"))
        hi = int(np.searchsorted(self.hashes, target, side="right"))
        for position in range(lo, hi):
            if self.key_at(position) == key_bytes:
                return int(self.indices[position])
        return None

    def key_for_local_index(self, local_index: int) -> str:
        return self.key_at(int(self.by_local_index[local_index])).decode("utf-8")


def _open_partition(path: Path, partition_id: int, num_partitions: int) -> _Partition:
    if not path.is_file():
        raise StoreNotFoundError(f"Off-heap index map partition not found: {path}")

    try:
        raw = np.memmap(path, dtype=np.uint8, mode="r")
    except (OSError, ValueError) as exc:
        raise CorruptStoreError(f"Unable to memory-map {path}: {exc}") from exc

    if raw.shape[0] < HEADER_DTYPE.itemsize:
        raise CorruptStoreError(f"{path} is too short to hold a store header")
    header = raw[: HEADER_DTYPE.itemsize].view(HEADER_DTYPE)[0]
    if bytes(header["magic"]) != MAGIC:
        raise CorruptStoreError(f"{path} is not an off-heap index map partition")
    if int(header["version"]) != FORMAT_VERSION:
        raise CorruptStoreError(
            f"{path} has unsupported format version {int(header['version'])}"
        )
    if int(header["partition_id"]) != partition_id or int(header["num_partitions"]) != num_partitions:
        raise CorruptStoreError(
            f"{path} was written as partition {int(header['partition_id'])} of "
            f"{int(header['num_partitions'])}, expected partition {partition_id} of {num_partitions}"
        )

    num_entries = int(header["num_entries"])
    blob_bytes = int(header["blob_bytes"])
    if raw.shape[0] != _expected_file_size(num_entries, blob_bytes):
        raise CorruptStoreError(
            f"{path} is {raw.shape[0]} bytes, expected "
            f"{_expected_file_size(num_entries, blob_bytes)} for {num_entries} entries"
        )

    cursor = HEADER_DTYPE.itemsize

    def take(dtype: str, count: int) -> np.ndarray:
        nonlocal cursor
        width = np.dtype(dtype).itemsize * count
        view = raw[cursor : cursor + width].view(dtype)
        cursor += width + _padding(width)
        return view

    return _Partition(
        path=path,
        index_offset=int(header["index_offset"]),
        hashes=take("<u8", num_entries),
        indices=take("<i8", num_entries),
        key_offsets=take("<u8", num_entries),
        key_lengths=take("<u4", num_entries),
        by_local_index=take("<i8", num_entries),
        blob=raw[cursor : cursor + blob_bytes],
    )


class OffHeapIndexMap(IndexMap):
    """
    Index map served from memory-mapped partition files.

    Instances are read-only once opened and can be shared between threads.
    """

    def __init__(self, shard_id: str, partitions: list[_Partition]) -> None:
        self.shard_id = shard_id
        self._partitions = partitions
        self._num_partitions = len(partitions)
        self._offsets = np.array([part.index_offset for part in partitions], dtype=np.int64)
        self._size = sum(part.num_entries for part in partitions)
        self._closed = False

    @classmethod
    def open(cls, directory: Path, num_partitions: int, shard_id: str) -> "OffHeapIndexMap":
        _check_store_args(num_partitions, shard_id)
        partitions = [
            _open_partition(directory / partition_filename(shard_id, pid), pid, num_partitions)
            for pid in range(num_partitions)
        ]

        expected_offset = 0
        for part in partitions:
            if part.index_offset != expected_offset:
                raise CorruptStoreError(
                    f"{part.path} starts at index {part.index_offset}, expected {expected_offset}"
                )
            expected_offset += part.num_entries

        logger.debug(
            "Opened off-heap index map for shard '{}' ({} features, {} partitions)",
            shard_id,
            expected_offset,
            num_partitions,
        )
        return cls(shard_id, partitions)

    @property
    def num_partitions(self) -> int:
        return self._num_partitions

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Drop every reference to the partition memory maps.

        The pages are unmapped once no lookup still holds a view. Must not be
        called while other threads are reading.
        """
        if not self._closed:
            self._partitions = []
            self._closed = True
            logger.debug("Closed off-heap index map for shard '{}'", self.shard_id)

    def __enter__(self) -> "OffHeapIndexMap":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError(f"Off-heap index map for shard '{self.shard_id}' is closed")

    def get(self, key: str) -> Optional[int]:
        self._check_open()
        encoded = key.encode("utf-8")
        hashed = key_hash(encoded)
        return self._partitions[hashed % self._num_partitions].lookup(hashed, encoded)

    def get_feature_name(self, index: int) -> Optional[str]:
        self._check_open()
        if not 0 <= index < self._size:
            return None
        # Empty partitions share an offset with their successor; take the last match.
        partition_id = int(np.searchsorted(self._offsets, index, side="right")) - 1
        part = self._partitions[partition_id]
        return part.key_for_local_index(index - part.index_offset)

    def size(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return (
            f"OffHeapIndexMap(shard_id={self.shard_id!r}, size={self._size}, "
            f"num_partitions={self.num_partitions})"
        )
