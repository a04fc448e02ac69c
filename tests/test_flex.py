import math

import numpy as np
import pytest

from conftest import make_receptor, make_waters
from idxdock.chemistry.flex import (
    FlexAtomFactory,
    Mode,
    RigidBodyFlex,
    Torsion,
    TorsionFlex,
    find_polar_hydrogen_torsions,
    mode_pairs,
)
from idxdock.errors import BadArgument, SetupError

EXPECTED_COUNTS = [
    (3, 0, 0),
    (0, 3, 0),
    (0, 3, 0),
    (0, 3, 0),
    (0, 3, 0),
    (0, 3, 0),
    (0, 0, 3),
    (0, 0, 3),
    (0, 0, 3),
]


def test_rigid_body_classification_for_all_nine_modes():
    water = make_waters()[0]
    for (trans, rot), expected in zip(mode_pairs(), EXPECTED_COUNTS):
        water.flex.set_modes(trans, rot)
        assert FlexAtomFactory(water).counts() == expected, (trans, rot)


def test_max_displacement_is_cached_in_user2():
    water = make_waters()[0]
    r = np.linalg.norm(water.coords - water.centroid(), axis=1)

    water.flex.set_modes("tethered", "fixed")
    FlexAtomFactory(water)
    assert all(a.user2 == pytest.approx(1.0) for a in water.atoms)

    water.flex.set_modes("fixed", "free")
    FlexAtomFactory(water)
    assert [a.user2 for a in water.atoms] == pytest.approx(list(2.0 * r))

    water.flex.set_modes("tethered", "tethered")
    FlexAtomFactory(water)
    expected = 1.0 + 2.0 * r * math.sin(math.radians(15.0))
    assert [a.user2 for a in water.atoms] == pytest.approx(list(expected))


def test_model_without_flex_is_all_fixed():
    rec = make_receptor()
    assert FlexAtomFactory(rec).counts() == (rec.num_atoms, 0, 0)
    assert not rec.is_flexible()


def test_polar_hydrogen_torsions_and_classification():
    rec = make_receptor()
    torsions = find_polar_hydrogen_torsions(rec)
    assert {(t.axis_from, t.axis_to, t.moving) for t in torsions} == {(0, 1, (2,)), (3, 4, (5,))}

    rec.set_flex_data(TorsionFlex(torsions))
    factory = FlexAtomFactory(rec)
    assert sorted(a.idx for a in factory.tethered_atoms()) == [2, 5]
    assert factory.counts() == (5, 2, 0)


def test_bad_descriptors():
    with pytest.raises(BadArgument):
        Mode.from_str("wobbly")
    with pytest.raises(SetupError):
        RigidBodyFlex("free", "free", max_trans=-1.0)
    rec = make_receptor()
    rec.set_flex_data(TorsionFlex([Torsion(0, 1, (99,))]))
    with pytest.raises(SetupError):
        FlexAtomFactory(rec)


def test_mode_pairs_are_translation_major():
    pairs = mode_pairs()
    assert len(pairs) == 9
    assert pairs[0] == (Mode.FIXED, Mode.FIXED)
    assert pairs[1] == (Mode.FIXED, Mode.TETHERED)
    assert pairs[-1] == (Mode.FREE, Mode.FREE)
