"""
Precomputed binding-probability table for the singly → doubly transition.

A free head tethered by a harmonic spring of rest length r0 to a bound
head sees a target segment whose carrier line passes at perpendicular
distance y from the bound head. The expected number of binding sites
between the foot of the perpendicular and axial offset a is

    T(a, y) = ∫_0^a exp(-α (sqrt(s^2 + y^2) - r0)^2) ds
    α = k (1 - barrier_weight) / (2 kT)

which has no closed form. The table stores T on a uniform (a, y) grid,
built once with scipy quadrature, and supports bilinear lookup and
inversion along either axis.

Grid extent:
    a_cut = erfinv(1 - 4 sqrt(α/π) ε_table) / sqrt(α) + r0
    y_cut = r0 + sqrt(2kT / ((1 - bw) k) * ln(ε_eff L_max / ε_cut * sqrt(2kT / k)))
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import integrate, special

from .exceptions import TableInversionError
from .units import DEFAULT_BIN_SIZE, DEFAULT_CUTOFF_EPS, DEFAULT_TABLE_EPS, DEFAULT_TEMPERATURE
from .utils.logger import Logger


@dataclass(frozen=True)
class TableParams:
    """
    Physical and numerical parameters of the table.

    Attributes:
        k_spring: Tether spring constant.
        rest_length: Tether rest length r0.
        barrier_weight: Fraction of the stretch energy assigned to unbinding.
        concentration_1_2: Sum of per-head 1 → 2 concentrations (ε_eff).
        max_length: Longest filament segment length (L_max).
        temperature: kT.
        bin_size: Grid spacing along both axes.
        table_eps: Tail probability used to place a_cut.
        cutoff_eps: Expected-binding threshold used to place y_cut.
    """
    k_spring: float
    rest_length: float
    barrier_weight: float = 0.0
    concentration_1_2: float = 1.0
    max_length: float = 1.0
    temperature: float = DEFAULT_TEMPERATURE
    bin_size: float = DEFAULT_BIN_SIZE
    table_eps: float = DEFAULT_TABLE_EPS
    cutoff_eps: float = DEFAULT_CUTOFF_EPS

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.k_spring <= 0:
            return False, "k_spring must be positive to build a binding table"
        if self.rest_length < 0:
            return False, "rest_length must be non-negative"
        if not 0 <= self.barrier_weight < 1:
            return False, "barrier_weight must be in [0, 1)"
        if self.temperature <= 0:
            return False, "temperature must be positive"
        if self.bin_size <= 0:
            return False, "bin_size must be positive"
        if not 0 < self.table_eps < 1:
            return False, "table_eps must be in (0, 1)"
        if self.cutoff_eps <= 0:
            return False, "cutoff_eps must be positive"
        if self.max_length <= 0:
            return False, "max_length must be positive"
        return True, None

    @property
    def alpha(self) -> float:
        return self.k_spring * (1.0 - self.barrier_weight) / (2.0 * self.temperature)


def axial_cutoff(params: TableParams) -> float:
    """Axial offset beyond which the remaining integral is below table_eps."""
    alpha = params.alpha
    arg = 1.0 - 4.0 * math.sqrt(alpha / math.pi) * params.table_eps
    # Very stiff tethers push the argument below zero; the tail is then negligible at r0
    arg = min(max(arg, 0.0), 1.0 - 1e-16)
    a_cut = float(special.erfinv(arg)) / math.sqrt(alpha) + params.rest_length
    return max(a_cut, params.bin_size)


def neighbor_cutoff(params: TableParams) -> float:
    """
    Perpendicular distance beyond which a 1 → 2 candidate is ignored.

    Also the radial extent y_cut of the table. A negative logarithm
    argument (NaN root) falls back to the rest length.
    """
    kT = params.temperature
    k = params.k_spring
    log_arg = params.concentration_1_2 * params.max_length / params.cutoff_eps * math.sqrt(2.0 * kT / k)
    if log_arg <= 0:
        return params.rest_length
    radicand = 2.0 * kT / ((1.0 - params.barrier_weight) * k) * math.log(log_arg)
    if not radicand >= 0:
        return params.rest_length
    return params.rest_length + math.sqrt(radicand)


class BindingProbabilityTable:
    """
    Immutable 2-D table of T(a, y) with uniform spacing.

    Shared read-only by every crosslink of a species; safe to read from
    several threads during the prepare pass.
    """

    def __init__(self, a_grid: np.ndarray, y_grid: np.ndarray, values: np.ndarray,
                 y_cut: Optional[float] = None, params: Optional[TableParams] = None):
        """
        Args:
            a_grid: Axial grid, uniform spacing starting at 0.
            y_grid: Radial grid, same spacing, starting at 0.
            values: T on the grid, shape (len(a_grid), len(y_grid)).
            y_cut: Radial cutoff (defaults to the last y grid point).
            params: Parameters the table was built from, if any.
        """
        self._a = np.asarray(a_grid, dtype=np.float64)
        self._y = np.asarray(y_grid, dtype=np.float64)
        self._values = np.asarray(values, dtype=np.float64)
        if self._values.shape != (self._a.size, self._y.size):
            raise ValueError("Table values must have shape (len(a_grid), len(y_grid))")
        if self._a.size < 2 or self._y.size < 1:
            raise ValueError("Table needs at least two axial grid points")
        self._values.setflags(write=False)
        self._a.setflags(write=False)
        self._y.setflags(write=False)
        self._bin = float(self._a[1] - self._a[0])
        # Per stored line: axis 0 lines are columns (fixed y), axis 1 lines are rows (fixed a)
        self._monotone = (
            np.all(np.diff(self._values, axis=0) >= 0, axis=0),
            np.all(np.diff(self._values, axis=1) >= 0, axis=1),
        )
        self.y_cut = float(self._y[-1]) if y_cut is None else float(y_cut)
        self.params = params

    @classmethod
    def build(cls, params: TableParams) -> "BindingProbabilityTable":
        """
        Integrate T on the full grid.

        Each cell adds the quadrature of one bin to the previous axial
        entry, so a row is a running sum and is monotone by construction.
        """
        is_valid, error = params.validate()
        if not is_valid:
            raise ValueError(error)

        alpha = params.alpha
        r0 = params.rest_length
        a_cut = axial_cutoff(params)
        y_cut = neighbor_cutoff(params)
        bin_size = params.bin_size

        n_a = int(math.floor(a_cut / bin_size)) + 1
        n_y = int(math.floor(y_cut / bin_size)) + 1
        a_grid = np.arange(max(n_a, 2)) * bin_size
        y_grid = np.arange(max(n_y, 1)) * bin_size

        def integrand(s, y0):
            return math.exp(-alpha * (math.sqrt(s * s + y0 * y0) - r0) ** 2)

        values = np.zeros((a_grid.size, y_grid.size))
        for j, y0 in enumerate(y_grid):
            for i in range(1, a_grid.size):
                piece, _ = integrate.quad(integrand, a_grid[i - 1], a_grid[i], args=(y0,))
                values[i, j] = values[i - 1, j] + piece

        Logger.log(
            f"Binding table built: alpha={alpha:.4g}, a_cut={a_cut:.4g}, y_cut={y_cut:.4g}, "
            f"grid={a_grid.size}x{y_grid.size}",
            Logger.LogPriority.INFO
        )
        return cls(a_grid, y_grid, values, y_cut=y_cut, params=params)

    @property
    def a_cut(self) -> float:
        return float(self._a[-1])

    @property
    def bin_size(self) -> float:
        return self._bin

    @property
    def shape(self) -> tuple:
        return self._values.shape

    @property
    def values(self) -> np.ndarray:
        return self._values

    def _axis_weights(self, grid: np.ndarray, x: float):
        """Bracketing index and fractional weight of x on a uniform grid."""
        if x >= grid[-1]:
            return grid.size - 1, 0.0
        pos = x / self._bin
        i = int(pos)
        return i, pos - i

    def lookup(self, a: float, y: float) -> float:
        """
        Bilinear interpolation of T(a, y).

        a beyond the grid saturates at a_cut; y beyond y_cut gives 0.
        """
        if a < 0 or y < 0:
            raise ValueError("Table lookup requires non-negative coordinates")
        if y > self.y_cut:
            return 0.0
        i, fa = self._axis_weights(self._a, a)
        j, fy = self._axis_weights(self._y, y)
        v = self._values
        i1 = min(i + 1, self._a.size - 1)
        j1 = min(j + 1, self._y.size - 1)
        return float(
            (1 - fa) * (1 - fy) * v[i, j]
            + fa * (1 - fy) * v[i1, j]
            + (1 - fa) * fy * v[i, j1]
            + fa * fy * v[i1, j1]
        )

    def signed_lookup(self, x: float, y: float) -> float:
        """sign(x) * T(|x|, y); T is odd in the axial coordinate."""
        if x < 0:
            return -self.lookup(-x, y)
        return self.lookup(x, y)

    def integrate(self, x0: float, x1: float, y: float) -> float:
        """Expected binding sites between axial offsets x0 and x1 at distance y."""
        return self.signed_lookup(x1, y) - self.signed_lookup(x0, y)

    def _line_weights(self, axis: int, other: float):
        """Stored lines bracketing `other` on the fixed axis, and the weight of the upper one."""
        if axis not in (0, 1):
            raise ValueError(f"Unknown table axis: {axis}")
        fixed = self._y if axis == 0 else self._a
        j, w = self._axis_weights(fixed, min(other, fixed[-1]))
        return j, min(j + 1, fixed.size - 1), w

    def _line_value(self, axis: int, i: int, j: int, j1: int, w: float) -> float:
        v = self._values
        if axis == 0:
            return (1 - w) * v[i, j] + w * v[i, j1]
        return (1 - w) * v[j, i] + w * v[j1, i]

    def invert(self, axis: int, value: float, other: float) -> float:
        """
        Coordinate along `axis` at which T equals `value`.

        The line at `other` is a weighted mean of two stored lines, so it is
        monotone whenever both are. The bracketing bin is found by bisection
        without building the line.

        Args:
            axis: 0 to solve for a at fixed y, 1 to solve for y at fixed a.
            value: Target table value.
            other: Fixed coordinate on the other axis.

        Returns:
            Grid coordinate, linearly interpolated inside the bracketing bin.
            Values outside the line's range return the first/last grid point.

        Raises:
            TableInversionError: The requested line is not monotone.
        """
        j, j1, w = self._line_weights(axis, other)
        monotone = self._monotone[axis]
        if not (monotone[j] and monotone[j1]):
            message = f"Table line along axis {axis} at {other:.4g} is not monotone"
            Logger.log(message, Logger.LogPriority.CRITICAL)
            raise TableInversionError(message)

        grid = self._a if axis == 0 else self._y
        lo, hi = 0, grid.size - 1
        if value <= self._line_value(axis, lo, j, j1, w):
            return float(grid[lo])
        if value >= self._line_value(axis, hi, j, j1, w):
            return float(grid[hi])
        # line[lo] < value < line[hi]
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if self._line_value(axis, mid, j, j1, w) <= value:
                lo = mid
            else:
                hi = mid
        v_lo = self._line_value(axis, lo, j, j1, w)
        denom = self._line_value(axis, hi, j, j1, w) - v_lo
        frac = (value - v_lo) / denom if denom > 0 else 0.0
        return float(grid[lo] + frac * self._bin)
