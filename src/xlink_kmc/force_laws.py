"""
Force laws for crosslink tethers.

Physics:
    T = k * max(0, l - l0)                     [tension-only tether]
    E = 1/2 * k * max(0, l - l0)^2             [elastic energy of stretch]
    p_off = k_off * dt * exp(f_dep * E)        [force-dependent unbinding]
    v = v_max * exp(-(T / T_max)^4)            [motor force-velocity]

The tether does not resist compression: a stretch below the rest
length produces zero tension.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .units import MAX_EXPONENT


@dataclass(frozen=True)
class ForceResult:
    """
    Result of a tether force calculation.

    Attributes:
        tension: Tension magnitude (>= 0).
        is_valid: Whether the result is physically valid.
        should_rupture: Tension exceeds the configured ceiling.
        reason: Explanation if invalid or ruptured.
    """
    tension: float
    is_valid: bool
    should_rupture: bool = False
    reason: Optional[str] = None

    def __post_init__(self):
        if not self.is_valid and self.reason is None:
            object.__setattr__(self, 'reason', 'unspecified')


@dataclass(frozen=True)
class TetherParams:
    """
    Spring parameters of a crosslink tether.

    Attributes:
        k_spring: Spring constant.
        rest_length: Unstretched tether length.
        f_spring_max: Tension above which the tether ruptures.
    """
    k_spring: float
    rest_length: float
    f_spring_max: float

    def validate(self) -> tuple[bool, Optional[str]]:
        if self.k_spring < 0:
            return False, "Spring constant k_spring must be non-negative"
        if self.rest_length < 0:
            return False, "Rest length must be non-negative"
        if self.f_spring_max <= 0:
            return False, "f_spring_max must be positive"
        return True, None


def tether_stretch(length: float, rest_length: float) -> float:
    """Positive part of (length - rest_length)."""
    stretch = length - rest_length
    return stretch if stretch > 0 else 0.0


def tether_tension(length: float, params: TetherParams) -> ForceResult:
    """
    Tension-only Hookean tether.

    Behavior:
        - If length is negative or not finite: invalid.
        - If length <= rest_length: tension = 0.
        - Otherwise T = k * (length - rest_length).
        - should_rupture when T > f_spring_max.
    """
    if not math.isfinite(length) or length < 0:
        return ForceResult(tension=0.0, is_valid=False, reason="invalid_length")

    tension = params.k_spring * tether_stretch(length, params.rest_length)
    if tension > params.f_spring_max:
        return ForceResult(tension=tension, is_valid=True, should_rupture=True, reason="rupture")
    return ForceResult(tension=tension, is_valid=True)


def tether_energy(length: float, params: TetherParams) -> float:
    """Elastic energy of the current stretch."""
    stretch = tether_stretch(length, params.rest_length)
    return 0.5 * params.k_spring * stretch * stretch


def force_dependent_unbind_probability(
    off_rate: float,
    delta: float,
    force_dep_factor: float,
    energy: float
) -> float:
    """
    Per-head unbinding probability of a doubly-bound crosslink.

    p = off_rate * delta * exp(force_dep_factor * energy)

    Exponent clamped to MAX_EXPONENT to prevent overflow.
    """
    if off_rate <= 0 or delta <= 0:
        return 0.0
    exponent = min(force_dep_factor * energy, MAX_EXPONENT)
    return off_rate * delta * math.exp(exponent)


def motor_velocity(max_velocity: float, tension: float, f_spring_max: float) -> float:
    """
    Load-dependent walking speed of a motor head.

    v = v_max * exp(-(T / T_max)^4)

    Returns:
        Signed velocity (sign follows max_velocity).
    """
    if f_spring_max <= 0 or tension <= 0:
        return max_velocity
    ratio = tension / f_spring_max
    return max_velocity * math.exp(-min(ratio ** 4, MAX_EXPONENT))
