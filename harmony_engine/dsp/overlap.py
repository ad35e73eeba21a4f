"""
Overlapping chunk iterator over any sliceable sequence (list, ndarray, tensor).
Each chunk starts (chunk_size - overlap) elements after the previous one; the
last chunk is the unpadded remainder.
overlap=0 behaves like plain fixed-size chunking, overlap=chunk_size-1 like a
sliding window advancing by one element.
"""
from typing import Sequence


class OverlapChunks:
    """
    Lazy iterator of sub-slices. Restart by constructing a new one.

    >>> [''.join(c) for c in OverlapChunks(list("lorem"), 3, 1)]
    ['lor', 'rem']
    """

    def __init__(self, seq: Sequence, chunk_size: int, overlap: int = 0):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be less than chunk size")
        self._seq = seq
        self._chunk_size = chunk_size
        self._step = chunk_size - overlap
        self._offset = 0
        self._remaining = len(seq)

    def __iter__(self) -> "OverlapChunks":
        return self

    def __next__(self):
        if self._remaining <= 0:
            raise StopIteration
        start = self._offset
        if self._remaining <= self._chunk_size:
            chunk = self._seq[start:start + self._remaining]
            self._remaining = 0
            return chunk
        chunk = self._seq[start:start + self._chunk_size]
        self._offset += self._step
        self._remaining -= self._step
        return chunk

    def __len__(self) -> int:
        """Number of chunks still to be produced."""
        if self._remaining <= 0:
            return 0
        overlapped = max(self._remaining - self._chunk_size, 0)
        full, rest = divmod(overlapped, self._step)
        return full + 1 if rest == 0 else full + 2


def overlap_chunks(seq: Sequence, chunk_size: int, overlap: int = 0) -> OverlapChunks:
    """Iterate seq in chunk_size pieces, each overlapping the previous by overlap elements."""
    return OverlapChunks(seq, chunk_size, overlap)
