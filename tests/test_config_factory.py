import json

import pytest

from idxdock.config import PROTOCOL_PRESETS, merge_protocol
from idxdock.errors import BadArgument
from idxdock.factory import build_protocol, build_scoring_function, build_transform, default_config
from idxdock.main import _load_config
from idxdock.optimize.genetic import GATransform
from idxdock.optimize.transforms import NullTransform, RandomPopulationTransform, TransformAggregate
from idxdock.params import ParamHandler
from idxdock.scoring.aggregate import ScoringAggregate
from idxdock.scoring.base import ConstantTerm
from idxdock.scoring.requests import EnableRequest, PartitionRequest, SetParamRequest, request_from_dict
from idxdock.scoring.vdw import VdwTerm
from idxdock.workspace import Workspace


def test_load_config_string_and_file(tmp_path):
    assert _load_config(None) == {}
    assert _load_config('{"a": 1}') == {"a": 1}

    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"protocol": "fast"}), encoding="utf-8")
    assert _load_config(str(p)) == {"protocol": "fast"}

    with pytest.raises(FileNotFoundError):
        _load_config(str(tmp_path / "missing.json"))
    with pytest.raises(BadArgument):
        _load_config('{"protocol": ')
    with pytest.raises(BadArgument):
        _load_config("[1, 2]")


def test_merge_protocol_user_values_win():
    merged = merge_protocol({"population-size": 7}, "fast")
    assert merged["population-size"] == 7
    assert merged["number-of-cycles"] == PROTOCOL_PRESETS["fast"]["number-of-cycles"]
    assert merge_protocol(None)["number-of-cycles"] == 100
    with pytest.raises(ValueError):
        merge_protocol({}, "leisurely")


def test_params_are_coerced_to_the_default_type():
    class _Thing(ParamHandler):
        def __init__(self):
            super().__init__()
            self.updated = []
            self.add_parameter("n", 3)
            self.add_parameter("x", 1.5)
            self.add_parameter("flag", False)

        def parameter_updated(self, name):
            self.updated.append(name)

    t = _Thing()
    t.set_parameters({"n": "12", "x": 2, "flag": "true"})
    assert t.get_parameter("n") == 12
    assert t.get_parameter("x") == 2.0 and isinstance(t.get_parameter("x"), float)
    assert t.get_parameter("flag") is True
    assert t.updated == ["n", "x", "flag"]
    with pytest.raises(BadArgument):
        t.set_parameter("nope", 1)
    with pytest.raises(BadArgument):
        t.get_parameter("nope")


def test_requests_from_config():
    assert request_from_dict({"partition": 2}) == PartitionRequest(2.0)
    assert request_from_dict({"set": {"name": "ECUT", "value": 2.0, "target": "vdw"}}) == SetParamRequest(
        "ECUT", 2.0, "vdw"
    )
    assert request_from_dict({"disable": "vdw"}) == EnableRequest("vdw", False)
    with pytest.raises(BadArgument):
        request_from_dict({"explode": True})


def test_dotted_terms_build_the_tree():
    sf = build_scoring_function(
        {
            "terms": {
                "inter.vdw": {"class": "vdw", "weight": 2.0, "params": {"ECUT": 3.0}},
                "inter.offset": {"class": "const", "value": 1.5},
                "bias": {"class": "const", "value": -0.5, "weight": 2.0},
            }
        }
    )
    inter = sf.find("score.inter")
    assert isinstance(inter, ScoringAggregate)
    vdw = sf.find("score.inter.vdw")
    assert isinstance(vdw, VdwTerm)
    assert vdw.weight == 2.0
    assert vdw.get_parameter("ECUT") == 3.0
    assert isinstance(sf.find("score.bias"), ConstantTerm)


def test_default_scoring_function():
    sf = build_scoring_function(None)
    names = sorted(t.full_name for t in sf.leaves())
    assert names == ["score.inter.polar", "score.inter.solv", "score.inter.vdw"]
    assert sf.find("score.inter.solv").weight == 0.1


def test_bad_scoring_configs():
    with pytest.raises(BadArgument):
        build_scoring_function({"terms": {"x": {"class": "quantum"}}})
    with pytest.raises(BadArgument):
        build_scoring_function({"terms": {"a": {"class": "const"}, "a.b": {"class": "const"}}})
    with pytest.raises(BadArgument):
        build_scoring_function({"terms": {"vdw": {"class": "vdw", "params": {"FUNCTION": "lj-3-5"}}}})


def test_build_protocol_applies_preset_and_overrides():
    cfg = default_config()
    cfg["protocol"] = "fast"
    cfg["transforms"][1]["params"] = {"number-of-cycles": 9}
    cfg["transforms"][1]["requests"] = [{"partition": 1.5}]
    protocol = build_protocol(cfg)
    init, ga = protocol.transform(0), protocol.transform(1)
    assert isinstance(init, RandomPopulationTransform)
    assert isinstance(ga, GATransform)
    assert init.get_parameter("population-size") == 30
    assert ga.get_parameter("number-of-cycles") == 9
    assert ga.get_parameter("number-for-convergence") == 4
    assert ga.sf_requests == [PartitionRequest(1.5)]


def test_unknown_transform_class():
    with pytest.raises(BadArgument):
        build_transform({"class": "simplex"})


def test_transform_aggregate_membership():
    agg = TransformAggregate()
    a = agg.add(NullTransform("a"))
    with pytest.raises(BadArgument):
        agg.remove(NullTransform("stray"))
    with pytest.raises(BadArgument):
        agg.transform(1)
    with pytest.raises(BadArgument):
        agg.add(agg)

    other = TransformAggregate("other")
    other.add(a)
    assert agg.num_transforms == 0
    assert a.parent is other


def test_transform_sends_sf_requests_before_running():
    ws = Workspace("t")
    root = ScoringAggregate("score")
    c = root.add(ConstantTerm("c", 2.0))
    ws.set_sf(root)

    agg = TransformAggregate()
    null = agg.add(NullTransform("disable-c"))
    null.add_sf_request(EnableRequest("c", False))
    agg.register(ws)
    assert null.workspace is ws

    assert agg.go() == [None]
    assert not c.enabled
    assert ws.score() == 0.0

    agg.unregister()
    assert null.workspace is None
