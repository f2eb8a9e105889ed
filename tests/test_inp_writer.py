from __future__ import annotations

from whamo.core.export.inp_writer import DEFAULT_SCHEDULE, generate_inp, write_inp
from whamo.core.models.edge import ConduitData, Edge
from whamo.core.models.network import NetworkSnapshot
from whamo.core.models.node import JunctionData, Node, ReservoirData


def _block(lines, start):
    """Lines from `start` up to and including the next FINISH line."""
    i = lines.index(start)
    j = i
    while lines[j].strip() != "FINISH":
        j += 1
    return lines[i:j + 1]


def test_reservoir_to_tank_scenario(reservoir_to_tank):
    text = generate_inp(reservoir_to_tank.snapshot())
    lines = text.split("\n")

    assert lines[:5] == ["c Project Name", "C  SYSTEM CONNECTIVITY", "", "SYSTEM", ""]
    assert lines[5:8] == ["ELEM HW AT 1", "ELEM C1 LINK 1 2", "ELEM ST AT 2"]
    assert "NODE 1 ELEV 328.08" in lines
    assert "NODE 2 ELEV 262.47" in lines

    assert _block(lines, "RESERVOIR") == ["RESERVOIR", " ID HW", " ELEV 328.08", " FINISH"]
    assert _block(lines, "CONDUIT") == [
        "CONDUIT", " ID C1", " LENGTH 3280.84", " DIAM 1.64", " CELERITY 3280.84",
        " FRICTION 0.02", " NUMSEG 1", "FINISH",
    ]
    assert _block(lines, "SURGETANK") == [
        "SURGETANK", " ID ST SIMPLE", " ELTOP 393.70", " ELBOTTOM 262.47", " DIAM 16.40",
        " CELERITY 3280.84", " FRICTION 0.01", "FINISH",
    ]


def test_section_order(reservoir_to_tank):
    lines = generate_inp(reservoir_to_tank.snapshot()).split("\n")
    markers = [
        "SYSTEM", "FINISH", "C ELEMENT PROPERTIES", "RESERVOIR", "CONDUIT", "SURGETANK",
        "SCHEDULE", "C OUTPUT REQUEST", "C COMPUTATIONAL PARAMETERS", "CONTROL",
        "C EXECUTION CONTROL", "GO", "GOODBYE",
    ]
    positions = [lines.index(m) for m in markers]
    assert positions == sorted(positions)
    assert lines[-1] == "GOODBYE"


def test_node_lines_follow_elision(chain):
    lines = generate_inp(chain.snapshot()).split("\n")
    assert [l for l in lines if l.startswith("NODE ") and "ELEV" in l] == [
        "NODE 1 ELEV 328.08", "NODE 2 ELEV 164.04", "NODE 3 ELEV 164.04", "NODE 4 ELEV 164.04",
    ]

    chain.update_edge_data("6", {"label": "C1"})
    chain.update_edge_data("7", {"label": "C1"})
    lines = generate_inp(chain.snapshot()).split("\n")
    assert [l for l in lines if l.startswith("NODE ") and "ELEV" in l] == [
        "NODE 1 ELEV 328.08", "NODE 4 ELEV 164.04",
    ]
    # composite conduit: one property block
    assert lines.count(" ID C1") == 1


def test_fps_values_are_not_converted(store):
    res = store.add_node("reservoir")
    n = store.add_node("node")
    store.add_edge(res.uid, n.uid)
    lines = generate_inp(store.snapshot()).split("\n")
    assert "NODE 2 ELEV 50.00" in lines
    assert " LENGTH 1000.00" in lines


def test_local_unit_override_wins(store):
    res = store.add_node("reservoir")
    store.update_node_data(res.uid, {"unit": "SI"})
    lines = generate_inp(store.snapshot()).split("\n")
    assert " ELEV 328.08" in lines


def test_global_unit_argument_overrides_snapshot(store):
    res = store.add_node("reservoir")
    text = generate_inp(store.snapshot(), global_unit="SI")
    assert "NODE 1 ELEV 328.08" in text.split("\n")


def test_variable_conduit_writes_profile_before_length(store):
    res = store.add_node("reservoir")
    n = store.add_node("node")
    e = store.add_edge(res.uid, n.uid)
    store.update_edge_data(e.uid, {
        "variable": True, "distance": 100.0, "area": 0.2, "d": 0.5, "a": 0.2,
        "cplus": 0.5, "cminus": 1.0,
    })
    block = _block(generate_inp(store.snapshot()).split("\n"), "CONDUIT")
    assert block == [
        "CONDUIT", " ID C1", " VARIABLE", " DISTANCE 100.00", " AREA 0.20", " D 0.50", " A 0.20",
        " LENGTH 1000.00", " CELERITY 1000.00", " FRICTION 0.02",
        " ADDEDLOSS", "     CPLUS 0.5", "     CMINUS 1", " NUMSEG 1", "FINISH",
    ]


def test_undefined_fields_are_omitted(store):
    res = store.add_node("reservoir")
    n = store.add_node("node")
    e = store.add_edge(res.uid, n.uid)
    store.update_edge_data(e.uid, {"celerity": None, "num_segments": None})
    block = _block(generate_inp(store.snapshot()).split("\n"), "CONDUIT")
    assert not any("CELERITY" in l or "NUMSEG" in l for l in block)
    assert not any(l.strip() == "" for l in block)


def test_dummy_block(store):
    res = store.add_node("reservoir")
    n = store.add_node("node")
    e = store.add_edge(res.uid, n.uid)
    store.update_edge_data(e.uid, {"kind": "dummy", "cplus": 0.1})
    lines = generate_inp(store.snapshot()).split("\n")
    assert "ELEM D1 LINK 1 2" in lines
    assert _block(lines, "CONDUIT ID D1") == [
        "CONDUIT ID D1", " DUMMY", " DIAMETER 0.50", " ADDEDLOSS", " CPLUS 0.1", "FINISH",
    ]


def test_comment_precedes_block(store):
    res = store.add_node("reservoir")
    store.update_node_data(res.uid, {"comment": "upper lake"})
    lines = generate_inp(store.snapshot()).split("\n")
    assert lines[lines.index("RESERVOIR") - 1] == "c upper lake"


def test_flow_boundary_schedule(si_store):
    fb = si_store.add_node("flowBoundary")
    other = si_store.add_node("flowBoundary")
    si_store.update_node_data(other.uid, {"schedule_number": 2, "schedule_points": [(0, 1.0), (10, 0)]})
    lines = generate_inp(si_store.snapshot()).split("\n")

    assert f"FLOWBC ID {fb.data.label} QSCHEDULE 1 FINISH" in lines
    assert f" QSCHEDULE 1 {DEFAULT_SCHEDULE}" in lines
    assert " QSCHEDULE 2 T 0 Q 35.31 T 10 Q 0.00" in lines
    assert f"ELEM {fb.data.label} AT 1" in lines


def test_requests_grouped_with_display_all(reservoir_to_tank):
    lines = generate_inp(reservoir_to_tank.snapshot()).split("\n")
    history = _block(lines, "HISTORY")
    vars_ = "Q HEAD ELEV VEL PRESS PIEZHEAD"
    assert history == ["HISTORY", f" NODE 1 {vars_}", f" ELEM ST {vars_}", f" NODE C1 {vars_}", " FINISH"]
    assert "PLOT" in lines and "SPREADSHEET" in lines
    assert _block(lines, " DISPLAY") == [" DISPLAY", "  ALL", " FINISH"]


def test_single_request_group_has_no_display(store):
    res = store.add_node("reservoir", default_requests=False)
    store.add_output_request(res.uid, "node", "HISTORY", ["Q", "HEAD"])
    lines = generate_inp(store.snapshot()).split("\n")
    assert _block(lines, "HISTORY") == ["HISTORY", " NODE 1 Q HEAD", " FINISH"]
    assert " DISPLAY" not in lines


def test_no_requests_falls_back_to_default_block(store):
    store.add_node("reservoir", default_requests=False)
    lines = generate_inp(store.snapshot()).split("\n")
    i = lines.index("C OUTPUT REQUEST")
    assert lines[i + 2:i + 6] == ["HISTORY", " NODE 2 Q HEAD", " ELEM ST Q ELEV", " FINISH"]


def test_control_block(store):
    store.update_computational_params({"dtcomp": 0.02, "tmax": 60})
    lines = generate_inp(store.snapshot()).split("\n")
    i = lines.index("CONTROL")
    assert lines[i + 1] == " DTCOMP 0.02 DTOUT 0.1 TMAX 60"
    assert lines[-4:] == ["", "C EXECUTION CONTROL", "GO", "GOODBYE"]


def test_export_is_pure(reservoir_to_tank):
    before = reservoir_to_tank.snapshot()
    depth = len(reservoir_to_tank.history.past)
    generate_inp(before)
    assert reservoir_to_tank.snapshot() == before
    assert len(reservoir_to_tank.history.past) == depth


def test_missing_optional_data_never_raises():
    nodes = (
        Node(uid="1", kind="reservoir", position=(0.0, 0.0), data=ReservoirData(elevation=None, reservoir_elevation=None)),
        Node(uid="2", kind="node", position=(0.0, 0.0), data=JunctionData(elevation=None)),
    )
    edges = (Edge(uid="3", source="1", target="2", data=ConduitData(
        label="", length=None, diameter=None, celerity=None, friction=None, num_segments=None)),)
    lines = generate_inp(NetworkSnapshot(nodes=nodes, edges=edges)).split("\n")
    assert "ELEM 3 LINK 1 2" in lines
    assert not any(l.startswith("NODE ") and "ELEV" in l for l in lines)
    assert _block(lines, "CONDUIT") == ["CONDUIT", " ID 3", "FINISH"]


def test_write_inp(tmp_path, reservoir_to_tank):
    path = write_inp(reservoir_to_tank.snapshot(), tmp_path / "net.inp", project_name="Dam")
    text = path.read_text(encoding="utf-8")
    assert text.startswith("c Dam\n")
    assert text.endswith("GOODBYE")
