"""
Tests for anchors and the crosslink state machine.

These tests verify:
- States are derived from anchor bound flags
- A lone bound anchor always ends up in slot 0, keeping its head identity
- Release repositions the crosslink inside the capture sphere
"""

import math

import numpy as np
import pytest

from conftest import make_segment
from xlink_kmc.anchor import Anchor
from xlink_kmc.crosslink import BindState, Crosslink, KineticParams, MotilityParams
from xlink_kmc.force_laws import TetherParams
from xlink_kmc.rng import RNGStream


def make_crosslink(kind="crosslinker", motility=None):
    return Crosslink(
        oid=10,
        anchor_oids=(11, 12),
        kind=kind,
        tether=TetherParams(k_spring=10.0, rest_length=0.5, f_spring_max=100.0),
        kinetic=KineticParams(),
        rng=RNGStream(1),
        motility=motility,
        position=np.array([0.5, 0.2, 0.0]),
    )


class TestAnchor:
    """Tests for anchor attachment bookkeeping."""

    def test_attach_sets_geometry(self):
        seg = make_segment(oid=3, length=4.0)
        anchor = Anchor(oid=1, head=0)
        anchor.attach(seg, 1.0)
        assert anchor.bound
        assert anchor.attached_oid == 3
        assert np.allclose(anchor.position, [-1.0, 0.0, 0.0])
        assert np.allclose(anchor.orientation, [1.0, 0.0, 0.0])

    def test_detach_clears_attachment(self):
        seg = make_segment(oid=3)
        anchor = Anchor(oid=1, head=0)
        anchor.attach(seg, 1.0)
        anchor.detach()
        assert not anchor.bound
        assert anchor.attached_oid is None
        assert anchor.check_invariant() == (True, None)

    def test_move_along_pauses_at_end(self):
        seg = make_segment(length=4.0)
        anchor = Anchor(oid=1, head=0)
        anchor.attach(seg, 3.5)
        assert anchor.move_along(seg, 1.0)
        assert anchor.lam == 4.0
        assert not anchor.move_along(seg, -1.0)
        assert anchor.lam == pytest.approx(3.0)

    def test_bound_without_segment_violates_invariant(self):
        anchor = Anchor(oid=1, head=0, bound=True)
        ok, err = anchor.check_invariant()
        assert not ok

    def test_unbound_with_segment_violates_invariant(self):
        anchor = Anchor(oid=1, head=0, attached_oid=4)
        ok, err = anchor.check_invariant()
        assert not ok

    def test_lam_beyond_length_violates_invariant(self):
        anchor = Anchor(oid=1, head=0, bound=True, attached_oid=4, lam=5.0)
        ok, _ = anchor.check_invariant(segment_length=4.0)
        assert not ok


class TestCrosslinkStates:
    """Tests for state derivation and canonical anchor order."""

    def test_new_crosslink_unbound(self):
        xlink = make_crosslink()
        assert xlink.state == BindState.UNBOUND
        assert [a.head for a in xlink.anchors] == [0, 1]
        for anchor in xlink.anchors:
            assert np.allclose(anchor.position, xlink.position)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Crosslink(oid=0, anchor_oids=(1, 2), kind="dynein",
                      tether=TetherParams(1.0, 0.0, 1.0), kinetic=KineticParams(), rng=RNGStream(0))

    def test_binding_head_one_swaps_into_slot_zero(self):
        seg = make_segment(oid=3)
        xlink = make_crosslink()
        xlink.bind_anchor(1, seg, 2.0)
        assert xlink.state == BindState.SINGLY
        assert xlink.anchors[0].head == 1
        assert xlink.anchors[0].oid == 12
        assert xlink.anchors[0].bound
        assert not xlink.anchors[1].bound
        assert xlink.check_invariants() == (True, None)

    def test_check_against_segment_lengths(self):
        seg = make_segment(oid=3)
        xlink = make_crosslink()
        xlink.bind_anchor(0, seg, 3.0)
        assert xlink.check_invariants({3: 4.0}) == (True, None)
        ok, err = xlink.check_invariants({3: 2.5})
        assert not ok and "beyond segment length" in err
        ok, err = xlink.check_invariants({7: 4.0})
        assert not ok and "unknown segment" in err

    def test_free_anchor_follows_bound_anchor(self):
        seg = make_segment(oid=3)
        xlink = make_crosslink()
        xlink.bind_anchor(0, seg, 3.0)
        assert np.allclose(xlink.anchors[1].position, xlink.anchors[0].position)
        assert np.allclose(xlink.position, [1.0, 0.0, 0.0])

    def test_doubly_then_unbind_slot_zero(self):
        """Unbinding slot 0 of a doubly bound crosslink leaves the other head in slot 0."""
        seg_a = make_segment(oid=3, rid=0)
        seg_b = make_segment(oid=4, rid=1, position=(0.0, 1.0, 0.0))
        xlink = make_crosslink()
        xlink.bind_anchor(0, seg_a, 2.0)
        xlink.bind_anchor(1, seg_b, 2.0)
        assert xlink.state == BindState.DOUBLY

        xlink.unbind_anchor(0)
        assert xlink.state == BindState.SINGLY
        assert xlink.anchors[0].attached_oid == 4
        assert xlink.anchors[0].head == 1
        assert xlink.check_invariants() == (True, None)

    def test_release_lands_in_capture_sphere(self):
        seg = make_segment(oid=3)
        xlink = make_crosslink()
        xlink.bind_anchor(0, seg, 2.0)
        bound_at = xlink.anchors[0].position.copy()
        xlink.release(r_capture=0.75)
        assert xlink.state == BindState.UNBOUND
        assert math.dist(xlink.position, bound_at) <= 0.75
        for anchor in xlink.anchors:
            assert np.allclose(anchor.position, xlink.position)

    def test_doubly_unbind_probabilities_follow_head_identity(self):
        seg_a = make_segment(oid=3, rid=0)
        seg_b = make_segment(oid=4, rid=1, position=(0.0, 0.5, 0.0))
        xlink = Crosslink(
            oid=0, anchor_oids=(1, 2), kind="crosslinker",
            tether=TetherParams(k_spring=10.0, rest_length=0.5, f_spring_max=100.0),
            kinetic=KineticParams(off_rate_2_1=(1.0, 3.0)),
            rng=RNGStream(0),
        )
        xlink.bind_anchor(1, seg_a, 2.0)
        xlink.bind_anchor(1, seg_b, 2.0)
        xlink.calculate_tether_force()
        p = xlink.doubly_unbind_probabilities(0.01)
        assert p[0] == pytest.approx(0.03)
        assert p[1] == pytest.approx(0.01)


class TestMotility:
    """Tests for walking speed of bound heads."""

    def test_crosslinker_default_static(self):
        assert make_crosslink().head_velocity() == 0.0

    def test_step_direction_sign(self):
        xlink = make_crosslink(kind="motor", motility=MotilityParams(velocity=2.0, step_direction=-1))
        assert xlink.head_velocity() == -2.0

    def test_diffusion_off_by_default(self):
        assert make_crosslink().diffusion_step(0.01) == 0.0

    def test_diffusion_kick_bounded(self):
        xlink = make_crosslink(motility=MotilityParams(diffusion_bound=True))
        bound = 0.5 * math.sqrt(24.0 * 0.01 / xlink.diameter)
        for _ in range(200):
            assert abs(xlink.diffusion_step(0.01)) <= bound
