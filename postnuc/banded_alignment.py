"""
Banded Alignment Module

Gapped dynamic programming used by the extension engine. The table is
filled one reference column at a time with affine gap penalties (match,
gap-in-query and gap-in-reference matrices) and traced back to an
operation string:

    'M'  reference base aligned to query base
    'I'  reference base aligned to a gap in the query
    'D'  query base aligned to a gap in the reference

Three fills are offered:
- align_global: end-to-end alignment of two gap segments between matches
- extend: free-end extension that gives up after break_length columns
  without improving the best score
- align_to_end: alignment that must consume all of one sequence

With band > 0 only cells within band diagonals of the straight line from
the origin (to the far corner, for align_global) are computed.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import ScoringScheme


NEG_INF = float('-inf')

# Matrix indexes
_M, _X, _Y = 0, 1, 2
_OPS = ('M', 'I', 'D')

# Fill modes
_GLOBAL = 'global'
_EXTEND = 'extend'
_FORCE = 'force'


@dataclass
class AlignmentPath:
    """Result of one fill: the operations and the bases they consume."""
    ops: str
    ref_consumed: int
    qry_consumed: int
    score: float = 0.0

    @classmethod
    def empty(cls) -> 'AlignmentPath':
        return cls('', 0, 0, 0.0)

    def then(self, other: 'AlignmentPath') -> 'AlignmentPath':
        """Concatenate a path that starts where this one ends."""
        return AlignmentPath(
            self.ops + other.ops,
            self.ref_consumed + other.ref_consumed,
            self.qry_consumed + other.qry_consumed,
            self.score + other.score,
        )

    def reversed(self) -> 'AlignmentPath':
        return AlignmentPath(self.ops[::-1], self.ref_consumed, self.qry_consumed, self.score)


class _Column:
    """Computed cells of one reference column, rows lo..hi."""
    __slots__ = ('lo', 'scores', 'trace')

    def __init__(self, lo: int):
        self.lo = lo
        self.scores = ([], [], [])
        self.trace = ([], [], [])

    @property
    def hi(self) -> int:
        return self.lo + len(self.scores[_M]) - 1

    def get(self, j: int, state: int) -> float:
        k = j - self.lo
        if 0 <= k < len(self.scores[state]):
            return self.scores[state][k]
        return NEG_INF

    def best_at(self, j: int) -> Tuple[float, int]:
        """Best score over the three matrices at row j (ties prefer M, then I, then D)."""
        k = j - self.lo
        if not 0 <= k < len(self.scores[_M]):
            return NEG_INF, _M
        best, state = self.scores[_M][k], _M
        if self.scores[_X][k] > best:
            best, state = self.scores[_X][k], _X
        if self.scores[_Y][k] > best:
            best, state = self.scores[_Y][k], _Y
        return best, state


def _pick(candidates) -> Tuple[float, int]:
    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate[0] > best[0]:
            best = candidate
    return best


class BandedAligner:
    """
    Banded affine-gap aligner.

    Attributes:
        scoring (ScoringScheme): Match, mismatch and gap scores
        band (int): Diagonal band half-width (0 = no restriction)
        break_length (int): Columns without improvement before extend gives up
    """

    def __init__(self, scoring: Optional[ScoringScheme] = None,
                 band: int = 0, break_length: int = 200):
        if band < 0:
            raise ValueError("band cannot be negative")
        if break_length < 1:
            raise ValueError("break_length must be at least 1")
        self.scoring = scoring or ScoringScheme()
        self.band = band
        self.break_length = break_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def align_global(self, ref: str, qry: str) -> AlignmentPath:
        """Align ref and qry end to end."""
        n, m = len(ref), len(qry)
        if n == 0 or m == 0:
            return self._gap_only(n, m)
        columns, end = self._fill(ref, qry, _GLOBAL)
        score, i, j, state = end
        return AlignmentPath(self._traceback(columns, i, j, state), i, j, score)

    def extend(self, ref: str, qry: str) -> AlignmentPath:
        """
        Extend an alignment anchored at the start of both strings.

        Stops at the end of either string, after break_length reference
        columns without improving the best score, or when every cell of a
        column has dropped too far below the best. Returns the path to the
        best-scoring cell.
        """
        if not ref or not qry:
            return AlignmentPath.empty()
        columns, end = self._fill(ref, qry, _EXTEND)
        score, i, j, state = end
        return AlignmentPath(self._traceback(columns, i, j, state), i, j, score)

    def align_to_end(self, ref: str, qry: str, end_on_ref: bool) -> Optional[AlignmentPath]:
        """
        Align from the start of both strings until all of ref (end_on_ref)
        or all of qry is consumed, whatever the score.

        Returns None if the band leaves no way to reach that end.
        """
        n, m = len(ref), len(qry)
        if (end_on_ref and n == 0) or (not end_on_ref and m == 0):
            return AlignmentPath.empty()
        if n == 0 or m == 0:
            return self._gap_only(n, m)
        columns, end = self._fill(ref, qry, _FORCE, end_on_ref=end_on_ref)
        if end is None:
            return None
        score, i, j, state = end
        return AlignmentPath(self._traceback(columns, i, j, state), i, j, score)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _gap_only(self, n: int, m: int) -> AlignmentPath:
        length = n + m
        score = self.scoring.gap_open + length * self.scoring.gap_extend if length else 0
        return AlignmentPath('I' * n + 'D' * m, n, m, score)

    def _rows(self, i: int, n: int, m: int, mode: str,
              prev: Optional[_Column], alive: Tuple[int, int]) -> Tuple[int, int, int]:
        """
        Row range for column i.

        Returns (lo, hi, limit): rows lo..hi are always computed; in extend
        mode rows past hi up to limit are computed while they stay alive.
        """
        band = self.band
        if mode == _GLOBAL:
            if not band:
                return 0, m, m
            diagonal = (i * m + n // 2) // n
            lo = max(0, diagonal - band)
            hi = min(m, diagonal + band)
            if prev is not None:
                # keep consecutive columns connected when the line is steep
                lo = min(lo, prev.hi)
            return lo, hi, hi

        if mode == _FORCE:
            lo = max(0, i - band) if band else 0
            hi = min(m, i + band) if band else m
            return lo, hi, hi

        limit = min(m, i + band) if band else m
        if prev is None:
            lo, hi = 0, 0
        else:
            lo, hi = alive[0], min(m, alive[1] + 1)
        if band:
            lo = max(lo, i - band)
        return lo, min(hi, limit), limit

    def _compute_cell(self, i: int, j: int, ref: str, qry: str,
                      prev: Optional[_Column], col: _Column) -> None:
        gap_first = self.scoring.gap_open + self.scoring.gap_extend
        gap_next = self.scoring.gap_extend

        if i == 0 and j == 0:
            m_cell = (0, _M)
        elif i > 0 and j > 0 and prev is not None:
            diagonal, source = prev.best_at(j - 1)
            m_cell = (diagonal + self.scoring.score(ref[i - 1], qry[j - 1]), source)
        else:
            m_cell = (NEG_INF, _M)

        if i > 0 and prev is not None:
            x_cell = _pick((
                (prev.get(j, _M) + gap_first, _M),
                (prev.get(j, _X) + gap_next, _X),
                (prev.get(j, _Y) + gap_first, _Y),
            ))
        else:
            x_cell = (NEG_INF, _M)

        if j > 0:
            y_cell = _pick((
                (col.get(j - 1, _M) + gap_first, _M),
                (col.get(j - 1, _Y) + gap_next, _Y),
                (col.get(j - 1, _X) + gap_first, _X),
            ))
        else:
            y_cell = (NEG_INF, _M)

        for state, (score, source) in ((_M, m_cell), (_X, x_cell), (_Y, y_cell)):
            col.scores[state].append(score)
            col.trace[state].append(source)

    def _fill(self, ref: str, qry: str, mode: str,
              end_on_ref: bool = True) -> Tuple[List[_Column], Optional[Tuple[float, int, int, int]]]:
        """
        Fill the table column by column.

        Returns the columns and the end cell (score, i, j, state) chosen for
        the mode, or None when no admissible end cell was computed.
        """
        n, m = len(ref), len(qry)
        drop = self.scoring.match * self.break_length
        columns: List[_Column] = []
        best: Tuple[float, int, int, int] = (0.0, 0, 0, _M)
        force_end: Optional[Tuple[float, int, int, int]] = None
        stall = 0
        alive = (0, 0)
        prev: Optional[_Column] = None

        for i in range(n + 1):
            lo, hi, limit = self._rows(i, n, m, mode, prev, alive)
            if lo > limit:
                break
            col = _Column(lo)
            floor = best[0] - drop

            j = lo
            while j <= limit:
                self._compute_cell(i, j, ref, qry, prev, col)
                if mode == _EXTEND and j >= hi and col.best_at(j)[0] < floor:
                    break
                j += 1
            columns.append(col)

            column_best: Optional[Tuple[float, int, int, int]] = None
            alive_lo = alive_hi = None
            for row in range(col.lo, col.hi + 1):
                score, state = col.best_at(row)
                if column_best is None or score > column_best[0]:
                    column_best = (score, i, row, state)
                if score >= floor:
                    if alive_lo is None:
                        alive_lo = row
                    alive_hi = row
                if mode == _FORCE and not end_on_ref and row == m and score > NEG_INF:
                    if force_end is None or score > force_end[0]:
                        force_end = (score, i, row, state)

            if mode == _FORCE and end_on_ref and i == n and column_best is not None \
                    and column_best[0] > NEG_INF:
                force_end = column_best

            if mode == _EXTEND:
                if alive_lo is None:
                    break
                alive = (alive_lo, alive_hi)
                if i > 0:
                    if column_best[0] > best[0]:
                        best = column_best
                        stall = 0
                    else:
                        stall += 1
                        if stall >= self.break_length:
                            break
            prev = col

        if mode == _GLOBAL:
            score, state = columns[n].best_at(m)
            return columns, (score, n, m, state)
        if mode == _FORCE:
            return columns, force_end
        return columns, best

    def _traceback(self, columns: List[_Column], i: int, j: int, state: int) -> str:
        ops = []
        while i > 0 or j > 0:
            col = columns[i]
            k = j - col.lo
            ops.append(_OPS[state])
            source = col.trace[state][k]
            if state == _M:
                i -= 1
                j -= 1
            elif state == _X:
                i -= 1
            else:
                j -= 1
            state = source
        ops.reverse()
        return ''.join(ops)
