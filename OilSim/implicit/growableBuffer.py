# -- Growable Buffer -- #

'''
Append-only typed array with amortized capacity doubling.

Backs the value and column-index storage of the sparse matrix
builder: appends are O(1) amortized, and the filled prefix is always
available as a contiguous NumPy view without copying.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


class GrowableBuffer:
    '''
    Contiguous typed buffer that doubles its capacity when full.

    Parameters:
    -----------
    dtype : np.dtype | type
        Element type
    initialCapacity : int
        Number of elements allocated up front (at least 1)
    name : str
        Label used in growth log messages
    '''

    def __init__(self, dtype: np.dtype | type, initialCapacity: int = 1024, name: str = 'buffer') -> None:
        self._data = np.zeros(max(int(initialCapacity), 1), dtype=dtype)
        self._size = 0
        self._growCount = 0
        self._name = name

    def __len__(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        '''Allocated number of elements.'''
        return len(self._data)

    @property
    def growCount(self) -> int:
        '''How many times the storage was reallocated.'''
        return self._growCount

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def nbytes(self) -> int:
        '''Bytes held by the allocation (not only the filled part).'''
        return self._data.nbytes

    def view(self) -> np.ndarray:
        '''Filled prefix as a view into the storage.'''
        return self._data[:self._size]

    def append(self, value: float) -> None:
        '''Append one element, doubling the storage if it is full.'''
        if self._size >= len(self._data):
            self.reserve(self._size + 1)
        self._data[self._size] = value
        self._size += 1

    def extend(self, values: np.ndarray) -> None:
        '''Append a block of elements.'''
        values = np.asarray(values)
        count = len(values)
        if count == 0:
            return
        if self._size + count > len(self._data):
            self.reserve(self._size + count)
        self._data[self._size:self._size + count] = values
        self._size += count

    def reserve(self, required: int) -> None:
        '''
        Ensure room for `required` elements by repeated doubling.

        Parameters:
        -----------
        required : int
            Minimum capacity after the call
        '''
        capacity = len(self._data)
        if required <= capacity:
            return

        while capacity < required:
            capacity *= 2

        grown = np.zeros(capacity, dtype=self._data.dtype)
        grown[:self._size] = self._data[:self._size]
        self._data = grown
        self._growCount += 1
        logger.debug('%s grown to capacity %d', self._name, capacity)

    def clear(self) -> None:
        '''Drop all elements but keep the allocation.'''
        self._size = 0
