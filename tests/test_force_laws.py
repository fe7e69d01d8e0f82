"""
Tests for tether force laws.
"""

import math

import pytest

from xlink_kmc.force_laws import (
    ForceResult,
    TetherParams,
    force_dependent_unbind_probability,
    motor_velocity,
    tether_energy,
    tether_stretch,
    tether_tension,
)
from xlink_kmc.units import MAX_EXPONENT


PARAMS = TetherParams(k_spring=10.0, rest_length=0.5, f_spring_max=20.0)


class TestTetherTension:
    """Tests for the tension-only Hookean tether."""

    def test_no_tension_below_rest_length(self):
        result = tether_tension(0.3, PARAMS)
        assert result.is_valid
        assert result.tension == 0.0
        assert not result.should_rupture

    def test_linear_above_rest_length(self):
        result = tether_tension(1.5, PARAMS)
        assert result.tension == pytest.approx(10.0)
        assert not result.should_rupture

    def test_rupture_above_max(self):
        result = tether_tension(3.0, PARAMS)
        assert result.should_rupture
        assert result.reason == "rupture"

    def test_invalid_length(self):
        assert not tether_tension(float("nan"), PARAMS).is_valid
        assert not tether_tension(-1.0, PARAMS).is_valid

    def test_invalid_result_gets_reason(self):
        assert ForceResult(tension=0.0, is_valid=False).reason == "unspecified"

    def test_stretch_and_energy(self):
        assert tether_stretch(0.2, 0.5) == 0.0
        assert tether_energy(1.5, PARAMS) == pytest.approx(5.0)

    def test_params_validation(self):
        assert PARAMS.validate() == (True, None)
        ok, err = TetherParams(k_spring=-1.0, rest_length=0.5, f_spring_max=1.0).validate()
        assert not ok
        assert "k_spring" in err


class TestUnbindAndVelocity:
    """Tests for force-dependent unbinding and motor force-velocity."""

    def test_unbind_probability_without_force(self):
        assert force_dependent_unbind_probability(2.0, 0.01, 1.0, 0.0) == pytest.approx(0.02)

    def test_unbind_probability_grows_with_energy(self):
        p = force_dependent_unbind_probability(2.0, 0.01, 0.5, 2.0)
        assert p == pytest.approx(0.02 * math.e)

    def test_unbind_exponent_clamped(self):
        p = force_dependent_unbind_probability(1.0, 1.0, 1.0, 1e6)
        assert p == pytest.approx(math.exp(MAX_EXPONENT))
        assert math.isfinite(p)

    def test_zero_rate(self):
        assert force_dependent_unbind_probability(0.0, 0.01, 1.0, 5.0) == 0.0

    def test_motor_unloaded(self):
        assert motor_velocity(1.5, 0.0, 10.0) == 1.5

    def test_motor_stall_curve(self):
        assert motor_velocity(1.0, 10.0, 10.0) == pytest.approx(math.exp(-1.0))
        assert motor_velocity(-1.0, 10.0, 10.0) == pytest.approx(-math.exp(-1.0))
