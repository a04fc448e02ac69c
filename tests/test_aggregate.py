import pytest

from idxdock.errors import BadArgument
from idxdock.scoring.aggregate import ScoringAggregate, cascade_structural_change
from idxdock.scoring.base import Change, ConstantTerm, ScoringTerm
from idxdock.scoring.requests import EnableRequest, PartitionRequest, SetParamRequest


def test_weighted_sum_of_children():
    root = ScoringAggregate("score")
    a = root.add(ConstantTerm("a", 1.0), weight=2.0)
    root.add(ConstantTerm("b", 2.0), weight=3.0)
    assert root.score() == 8.0

    root.remove(a)
    assert root.score() == 6.0
    assert root.num_children == 1


def test_remove_non_member_is_an_error():
    root = ScoringAggregate("score")
    with pytest.raises(BadArgument):
        root.remove(ConstantTerm("stray", 1.0))


def test_child_index_out_of_range():
    root = ScoringAggregate("score")
    root.add(ConstantTerm("a", 1.0))
    assert root.child(0).name == "a"
    with pytest.raises(BadArgument):
        root.child(1)


def test_readding_moves_the_child():
    first, second = ScoringAggregate("first"), ScoringAggregate("second")
    c = first.add(ConstantTerm("c", 1.0))
    second.add(c)
    assert first.num_children == 0
    assert c.parent is second
    assert c.full_name == "second.c"


def test_system_name_is_reserved_and_self_add_rejected():
    root = ScoringAggregate("score")
    with pytest.raises(BadArgument):
        root.add(ConstantTerm("system", 1.0))
    with pytest.raises(BadArgument):
        root.add(root)


def test_score_map_inter_and_system_buckets():
    root = ScoringAggregate("score")
    inter = root.add(ScoringAggregate("inter"), weight=2.0)
    inter.add(ConstantTerm("vdw", 1.0, system=0.5), weight=3.0)
    root.add(ConstantTerm("const", 4.0))

    scores = root.score_map()
    assert scores["score.inter.vdw"] == 1.0
    assert scores["score.inter"] == 3.0
    assert scores["score.const"] == 4.0
    assert scores["score.system.inter.vdw"] == 0.5
    # weights up the tree: 3.0 * 2.0
    assert scores["score.system"] == 3.0
    assert scores["score"] == pytest.approx(2.0 * 3.0 + 4.0 + 3.0)
    assert scores["score"] == pytest.approx(root.score())


def test_same_named_leaves_keep_separate_system_entries():
    root = ScoringAggregate("score")
    root.add(ScoringAggregate("a")).add(ConstantTerm("t", system=1.0))
    root.add(ScoringAggregate("b")).add(ConstantTerm("t", system=2.0))
    scores = root.score_map()
    assert scores["score.system.a.t"] == 1.0
    assert scores["score.system.b.t"] == 2.0
    assert scores["score.system"] == 3.0
    assert "score.system.t" not in scores


def test_buckets_follow_dynamic_changes():
    root = ScoringAggregate("score")
    a = root.add(ConstantTerm("a", 1.0, system=1.0))
    root.add(ConstantTerm("b", 2.0, system=2.0), weight=0.5)
    assert root.score_map()["score.system"] == 2.0
    root.remove(a)
    scores = root.score_map()
    assert scores["score.system"] == 1.0
    assert "score.system.a" not in scores
    assert scores["score"] == pytest.approx(root.score())


def test_find_and_leaves():
    root = ScoringAggregate("score")
    inter = root.add(ScoringAggregate("inter"))
    v = inter.add(ConstantTerm("vdw", 1.0))
    assert root.find("score.inter.vdw") is v
    assert root.find("score.nope") is None
    assert root.leaves() == [v]


def test_requests_cascade_to_children():
    root = ScoringAggregate("score")
    inter = root.add(ScoringAggregate("inter"))
    v = inter.add(ConstantTerm("vdw", 1.0))
    root.handle_request(SetParamRequest("WEIGHT", 4.0, target="vdw"))
    assert v.weight == 4.0
    assert inter.weight == 1.0

    root.handle_request(EnableRequest("score.inter.vdw", False))
    assert root.score() == 0.0
    root.handle_request(EnableRequest("vdw", True))
    assert root.score() == 4.0

    root.handle_request(PartitionRequest(0.0))


class _Recorder(ScoringTerm):
    def __init__(self, name):
        super().__init__(name)
        self.calls = []

    def setup_receptor(self):
        self.calls.append("receptor")

    def setup_ligand(self):
        self.calls.append("ligand")

    def setup_solvent(self):
        self.calls.append("solvent")

    def setup_score(self):
        self.calls.append("score")

    def raw_score(self):
        return 0.0


def test_cascade_structural_change_is_depth_first():
    root = ScoringAggregate("score")
    inter = root.add(ScoringAggregate("inter"))
    a = inter.add(_Recorder("a"))
    b = root.add(_Recorder("b"))
    cascade_structural_change(root, Change.SOLVENT)
    assert a.calls == ["solvent", "score"]
    assert b.calls == ["solvent", "score"]


def test_adding_to_registered_tree_sets_up_child():
    class _Ws:
        pass

    root = ScoringAggregate("score")
    root.register(_Ws())
    r = root.add(_Recorder("late"))
    assert r.workspace is root.workspace
    assert r.calls == ["receptor", "ligand", "solvent", "score"]
