import base64
import json

from reference_tree import consistency_path, inclusion_path, leaves, make_redactable, map_audit_path, map_root, mth, redact
from vdsverify.merkle.hashing import leaf_hash
from vdsverify.merkle.objecthash import object_hash
from vdsverify.vds_cli import main


def _write(path, obj):
    path.write_text(json.dumps(obj))
    return str(path)


def _head(n, hashes):
    return {"tree_size": n, "tree_hash": mth(hashes[:n]).hex()}


def test_cli_hash_and_shed(tmp_path, capsys):
    doc = make_redactable({"a": 1, "b": "secret"})
    f = _write(tmp_path / "doc.json", redact(doc, "b"))
    assert main(["hash", "--input", f]) == 0
    assert capsys.readouterr().out.strip() == object_hash(doc).hex()

    assert main(["hash", "--no-redaction", "--input", f]) == 0
    assert capsys.readouterr().out.strip() != object_hash(doc).hex()

    assert main(["shed", "--input", f]) == 0
    assert json.loads(capsys.readouterr().out) == {"a": 1}


def test_cli_leaf_hash(tmp_path, capsys):
    f = tmp_path / "e.json"
    f.write_bytes(b'{"x": [1, 2]}')
    assert main(["leaf-hash", "--input", str(f)]) == 0
    assert capsys.readouterr().out.strip() == leaf_hash(b'{"x": [1, 2]}').hex()
    assert main(["leaf-hash", "--json", "--input", str(f)]) == 0
    assert capsys.readouterr().out.strip() == leaf_hash(object_hash({"x": [1, 2]})).hex()


def test_cli_verify_inclusion(tmp_path, capsys):
    data = leaves(11)
    hashes = [leaf_hash(d) for d in data]
    head = _write(tmp_path / "head.json", _head(11, hashes))
    proof = _write(
        tmp_path / "proof.json",
        {"tree_size": 11, "leaf_index": 6, "proof": [p.hex() for p in inclusion_path(6, hashes)]},
    )
    entry = tmp_path / "entry.bin"
    entry.write_bytes(data[6])
    assert main(["verify-inclusion", "--head", head, "--proof", proof, "--input", str(entry)]) == 0
    assert capsys.readouterr().out.startswith("OK")
    assert main(["verify-inclusion", "--head", head, "--proof", proof, "--leaf-hash", hashes[6].hex()]) == 0

    assert main(["verify-inclusion", "--head", head, "--proof", proof, "--leaf-hash", hashes[5].hex()]) == 1
    assert "FAIL" in capsys.readouterr().err
    # No leaf hash anywhere
    assert main(["verify-inclusion", "--head", head, "--proof", proof]) == 1


def test_cli_verify_consistency(tmp_path, capsys):
    hashes = [leaf_hash(d) for d in leaves(15)]
    first = _write(tmp_path / "first.json", _head(6, hashes))
    second = _write(tmp_path / "second.json", _head(15, hashes))
    proof = {"first_tree_size": 6, "second_tree_size": 15, "proof": [p.hex() for p in consistency_path(6, hashes)]}
    pf = _write(tmp_path / "proof.json", proof)
    assert main(["verify-consistency", "--first", first, "--second", second, "--proof", pf]) == 0
    proof["proof"][0] = leaf_hash(b"x").hex()
    pf = _write(tmp_path / "bad.json", proof)
    assert main(["verify-consistency", "--first", first, "--second", second, "--proof", pf]) == 1


def test_cli_verify_map(tmp_path, capsys):
    values = {b"foo": leaf_hash(b"bar"), b"baz": leaf_hash(b"qux")}
    ml = leaf_hash(b"mutations")
    head = _write(tmp_path / "mhead.json", {"map_hash": map_root(values).hex(), "mutation_log": {"tree_size": 2, "tree_hash": ml.hex()}})
    path = map_audit_path(values, b"foo")
    entry = {
        "key": b"foo".hex(),
        "value": base64.b64encode(b"bar").decode(),
        "tree_size": 2,
        "proof": {str(i): p.hex() for i, p in enumerate(path) if p is not None},
    }
    ef = _write(tmp_path / "entry.json", entry)
    assert main(["verify-map", "--head", head, "--entry", ef]) == 0
    entry["value"] = base64.b64encode(b"other").decode()
    ef = _write(tmp_path / "bad.json", entry)
    assert main(["verify-map", "--head", head, "--entry", ef]) == 1


def test_cli_audit(tmp_path, capsys):
    data = leaves(20)
    hashes = [leaf_hash(d) for d in data]
    head = _write(tmp_path / "head.json", _head(20, hashes))
    entries = tmp_path / "entries.jsonl"
    entries.write_text("\n".join(json.dumps({"leaf_data": base64.b64encode(d).decode()}) for d in data) + "\n")
    assert main(["audit", "--head", head, "--entries", str(entries)]) == 0
    assert "0..20" in capsys.readouterr().out

    prev = _write(tmp_path / "prev.json", _head(8, hashes))
    frontier = _write(
        tmp_path / "frontier.json",
        {"tree_size": 9, "leaf_index": 8, "proof": [p.hex() for p in inclusion_path(8, hashes[:9])]},
    )
    rest = tmp_path / "rest.jsonl"
    rest.write_text("\n".join(json.dumps({"leaf_data": base64.b64encode(d).decode()}) for d in data[8:]))
    assert main(["audit", "--head", head, "--entries", str(rest), "--prev", prev, "--frontier-proof", frontier]) == 0

    short = tmp_path / "short.jsonl"
    short.write_text("\n".join(json.dumps({"leaf_data": base64.b64encode(d).decode()}) for d in data[:5]))
    assert main(["audit", "--head", head, "--entries", str(short)]) == 1


def test_cli_bad_input(tmp_path, capsys):
    assert main(["hash", "--input", str(tmp_path / "missing.json")]) == 2
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    assert main(["hash", "--input", str(bad)]) == 2
    head = _write(tmp_path / "head.json", {"tree_size": "many"})
    proof = _write(tmp_path / "proof.json", {"tree_size": 1, "leaf_index": 0})
    assert main(["verify-inclusion", "--head", head, "--proof", proof]) == 2
    assert "Bad input" in capsys.readouterr().err


def test_cli_map_level_out_of_range_is_bad_input(tmp_path, capsys):
    h = leaf_hash(b"x").hex()
    head = _write(tmp_path / "mhead.json", {"map_hash": h, "mutation_log": {"tree_size": 1, "tree_hash": h}})
    entry = _write(tmp_path / "entry.json", {"key": "00", "value": "", "tree_size": 1, "proof": {"300": h}})
    assert main(["verify-map", "--head", head, "--entry", entry]) == 2
    assert "Bad input" in capsys.readouterr().err


def test_cli_head_without_hash_is_bad_input(tmp_path, capsys):
    head = _write(tmp_path / "head.json", {"tree_size": 3})
    proof = _write(tmp_path / "proof.json", {"tree_size": 3, "leaf_index": 0, "proof": []})
    assert main(["verify-inclusion", "--head", head, "--proof", proof, "--leaf-hash", leaf_hash(b"a").hex()]) == 2
