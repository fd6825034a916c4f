# -- Compressed Sparse Row Matrix Builder -- #

'''
Row-sequential CSR matrix for the implicit velocity system.

The matrix is assembled once per solve: rows are opened strictly in
order with beginRow, filled with addEntry/addEntries, and locked with
finalize. After that it is immutable and supports y = A x, entry
lookup, and diagonal / 2x2 block extraction for preconditioning.

Storage:
    values[]      non-zero entries (float32)
    colIndices[]  column of each entry (int32)
    rowPtr[]      start offset of every row in values[], length size + 1

Values and columns live in GrowableBuffers, so appends are amortized
O(1) with capacity doubling.

Entries smaller than dropTolerance in magnitude are skipped. Repeated
entries for the same (row, col) are stored separately by default and
act as a sum in every read (multiply, get, diagonal, blocks); with
mergeDuplicates=True they are accumulated into one stored entry.

Structural misuse (rows out of order, writes after finalize, reads
before finalize, incomplete rows) raises RuntimeError; mismatched
vector sizes raise ValueError.

Sean Bowman [10/19/2026]
'''

from __future__ import annotations

import logging

import numpy as np
from scipy.sparse import csr_matrix

from OilSim import constants as const
from OilSim.implicit.growableBuffer import GrowableBuffer

logger = logging.getLogger(__name__)


class SparseMatrix:
    '''
    Square CSR matrix built one row at a time.

    Parameters:
    -----------
    size : int
        Matrix dimension (2 * particleCount for the velocity system)
    estimatedNonZeros : int
        Initial capacity of the value and column buffers
    mergeDuplicates : bool
        Accumulate repeated (row, col) entries instead of storing each
    dropTolerance : float
        Entries with |value| below this are not stored
    '''

    def __init__(
        self,
        size: int,
        estimatedNonZeros: int = 1000,
        mergeDuplicates: bool = False,
        dropTolerance: float = const.sparseDropTolerance,
    ) -> None:
        if size < 0:
            raise ValueError(f'Matrix size must be non-negative, got {size}')

        self._size = int(size)
        self._values = GrowableBuffer(np.float32, estimatedNonZeros, name='Sparse matrix values')
        self._colIndices = GrowableBuffer(np.int32, estimatedNonZeros, name='Sparse matrix columns')
        self._rowPtr = np.zeros(self._size + 1, dtype=np.int64)
        self._mergeDuplicates = mergeDuplicates
        self._dropTolerance = dropTolerance

        self._currentRow = -1
        self._built = False
        self._rowColumns: dict[int, int] = {}
        self._rowOfEntry: np.ndarray | None = None

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def size(self) -> int:
        return self._size

    @property
    def nnz(self) -> int:
        '''Number of stored entries.'''
        return len(self._values)

    @property
    def isFinalized(self) -> bool:
        return self._built

    @property
    def capacity(self) -> int:
        '''Allocated entry capacity.'''
        return self._values.capacity

    @property
    def values(self) -> np.ndarray:
        '''Stored values (view).'''
        return self._values.view()

    @property
    def colIndices(self) -> np.ndarray:
        '''Column of every stored value (view).'''
        return self._colIndices.view()

    @property
    def rowPtr(self) -> np.ndarray:
        '''Row start offsets, length size + 1.'''
        return self._rowPtr

    ######################################################################
    # -- Assembly -- #
    ######################################################################

    def beginRow(self, rowIndex: int) -> None:
        '''
        Open the next row.

        Parameters:
        -----------
        rowIndex : int
            Must equal the previous row index + 1

        Raises:
        -------
        RuntimeError : If the matrix is finalized or rows are out of order
        '''
        if self._built:
            raise RuntimeError('Matrix already finalized; cannot modify')
        if rowIndex != self._currentRow + 1:
            raise RuntimeError(
                f'Rows must be added sequentially. Expected {self._currentRow + 1}, got {rowIndex}'
            )
        if rowIndex >= self._size:
            raise RuntimeError(f'Row {rowIndex} is out of range for size {self._size}')

        self._currentRow = rowIndex
        self._rowPtr[rowIndex] = len(self._values)
        self._rowColumns.clear()

    def addEntry(self, colIndex: int, value: float) -> None:
        '''
        Append an entry to the open row.

        Parameters:
        -----------
        colIndex : int
            Column index in [0, size)
        value : float
            Entry value (dropped when |value| < dropTolerance)
        '''
        self._checkWritable()
        if not 0 <= colIndex < self._size:
            raise IndexError(f'Column {colIndex} is out of range for size {self._size}')
        if abs(value) < self._dropTolerance:
            return

        if self._mergeDuplicates:
            position = self._rowColumns.get(colIndex)
            if position is not None:
                self._values.view()[position] += value
                return
            self._rowColumns[colIndex] = len(self._values)

        self._values.append(value)
        self._colIndices.append(colIndex)

    def addEntries(self, colIndices: np.ndarray, values: np.ndarray) -> None:
        '''
        Append a block of entries to the open row.

        Equivalent to calling addEntry for every (col, value) in order.

        Parameters:
        -----------
        colIndices : np.ndarray
            Column indices
        values : np.ndarray
            Entry values, same length as colIndices
        '''
        self._checkWritable()
        colIndices = np.asarray(colIndices)
        values = np.asarray(values)
        if colIndices.shape != values.shape:
            raise ValueError(
                f'colIndices and values differ in shape: {colIndices.shape} vs {values.shape}'
            )
        if len(colIndices) == 0:
            return
        if colIndices.min() < 0 or colIndices.max() >= self._size:
            raise IndexError(f'Column index out of range for size {self._size}')

        if self._mergeDuplicates:
            for col, value in zip(colIndices.tolist(), values.tolist()):
                self.addEntry(col, value)
            return

        keep = np.abs(values) >= self._dropTolerance
        self._values.extend(values[keep].astype(np.float32))
        self._colIndices.extend(colIndices[keep].astype(np.int32))

    def finalize(self) -> None:
        '''
        Close the last row and lock the structure.

        Raises:
        -------
        RuntimeError : If already finalized or not every row was started
        '''
        if self._built:
            raise RuntimeError('Matrix already finalized')
        if self._currentRow != self._size - 1:
            raise RuntimeError(
                f'Not all rows added. Expected {self._size}, got {self._currentRow + 1}'
            )

        self._rowPtr[self._size] = len(self._values)
        self._rowOfEntry = np.repeat(np.arange(self._size), np.diff(self._rowPtr))
        self._built = True

        logger.debug(
            'Sparse matrix built: %dx%d, %d non-zeros (%.2f%% dense)',
            self._size, self._size, self.nnz, self.density,
        )

    ######################################################################
    # -- Products and Lookup -- #
    ######################################################################

    def multiply(self, x: np.ndarray, y: np.ndarray | None = None) -> np.ndarray:
        '''
        Matrix-vector product y = A x in O(nnz).

        Parameters:
        -----------
        x : np.ndarray
            Input vector, length size
        y : np.ndarray | None
            Output vector, length size; overwritten when given

        Returns:
        --------
        np.ndarray : y (float32)
        '''
        self._checkBuilt()
        if len(x) != self._size or (y is not None and len(y) != self._size):
            raise ValueError(
                f'Vector size mismatch. Expected {self._size}, got x={len(x)}, '
                f'y={len(y) if y is not None else None}'
            )

        products = self.values * np.asarray(x, dtype=np.float32)[self.colIndices]
        result = np.bincount(self._rowOfEntry, weights=products, minlength=self._size)

        if y is None:
            return result.astype(np.float32)
        y[:] = result
        return y

    def get(self, row: int, col: int) -> float:
        '''
        Value at (row, col) by a linear scan of the row.

        Repeated entries are summed; an absent entry reads as 0.
        '''
        self._checkBuilt()
        if not (0 <= row < self._size and 0 <= col < self._size):
            raise IndexError(f'Entry ({row}, {col}) is out of range for size {self._size}')

        start, end = self._rowPtr[row], self._rowPtr[row + 1]
        match = self.colIndices[start:end] == col
        return float(np.sum(self.values[start:end][match], dtype=np.float64))

    def getDiagonal(self, i: int) -> float:
        '''Diagonal entry A[i, i].'''
        return self.get(i, i)

    def diagonal(self) -> np.ndarray:
        '''All diagonal entries, shape (size,), float32.'''
        self._checkBuilt()
        onDiagonal = self.colIndices == self._rowOfEntry
        diag = np.zeros(self._size, dtype=np.float64)
        np.add.at(diag, self._rowOfEntry[onDiagonal], self.values[onDiagonal])
        return diag.astype(np.float32)

    def blockDiagonal(self, blockSize: int = 2) -> np.ndarray:
        '''
        Diagonal blocks of a block-structured matrix.

        Entry (r, c) belongs to block k when r // blockSize ==
        c // blockSize == k. A trailing partial block (size not a
        multiple of blockSize) is not included.

        Parameters:
        -----------
        blockSize : int
            Edge length of the square blocks

        Returns:
        --------
        np.ndarray : Blocks, shape (size // blockSize, blockSize, blockSize)
        '''
        self._checkBuilt()
        nBlocks = self._size // blockSize
        rows = self._rowOfEntry
        cols = self.colIndices.astype(np.int64)

        inBlock = (rows // blockSize == cols // blockSize) & (rows < nBlocks * blockSize)
        blocks = np.zeros((nBlocks, blockSize, blockSize), dtype=np.float64)
        np.add.at(
            blocks,
            (rows[inBlock] // blockSize, rows[inBlock] % blockSize, cols[inBlock] % blockSize),
            self.values[inBlock],
        )
        return blocks.astype(np.float32)

    def toScipy(self) -> csr_matrix:
        '''Copy as a scipy.sparse CSR matrix (duplicates are summed by scipy).'''
        self._checkBuilt()
        return csr_matrix(
            (self.values.copy(), self.colIndices.copy(), self._rowPtr.copy()),
            shape=(self._size, self._size),
        )

    def toDense(self) -> np.ndarray:
        '''Dense float32 copy; intended for small matrices and tests.'''
        return self.toScipy().toarray()

    ######################################################################
    # -- Diagnostics -- #
    ######################################################################

    @property
    def density(self) -> float:
        '''Stored entries as a percentage of size^2.'''
        if self._size == 0:
            return 0.0
        return 100.0 * self.nnz / (self._size * self._size)

    def getMemoryUsage(self) -> float:
        '''Allocated bytes of values, columns, and row pointers in MB.'''
        total = self._values.nbytes + self._colIndices.nbytes + self._rowPtr.nbytes
        return total / (1024.0 * 1024.0)

    def getStats(self) -> dict:
        '''
        Size and sparsity statistics.

        Returns:
        --------
        dict : size, nonZeros, avgPerRow, density (%), memoryMB
        '''
        return {
            'size': self._size,
            'nonZeros': self.nnz,
            'avgPerRow': self.nnz / self._size if self._size > 0 else 0.0,
            'density': self.density,
            'memoryMB': self.getMemoryUsage(),
        }

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _checkWritable(self) -> None:
        if self._built:
            raise RuntimeError('Matrix already finalized; cannot modify')
        if self._currentRow == -1:
            raise RuntimeError('beginRow() must be called before adding entries')

    def _checkBuilt(self) -> None:
        if not self._built:
            raise RuntimeError('Matrix not finalized')
