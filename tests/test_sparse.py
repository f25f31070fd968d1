import hashlib
import threading

import pytest

from reference_tree import map_audit_path, map_root
from vdsverify.errors import InvalidRangeError, VerificationFailedError
from vdsverify.merkle.hashing import leaf_hash, node_hash
from vdsverify.merkle.log import LogTreeHead
from vdsverify.merkle.sparse import (
    MAP_DEPTH,
    DefaultLeafTable,
    MapEntryProof,
    MapTreeHead,
    calculate_map_root,
    default_leaf_table,
    key_path,
    verify_map_entry,
)
from vdsverify.merkle.objecthash import object_hash


def test_key_path_msb_first():
    kp = key_path(b"foo")
    h = hashlib.sha256(b"foo").digest()
    assert len(kp) == MAP_DEPTH
    assert kp[0] == bool(h[0] & 0x80)
    assert kp[7] == bool(h[0] & 0x01)
    assert kp[255] == bool(h[31] & 0x01)


def test_default_leaf_table():
    t = default_leaf_table()
    assert len(t) == MAP_DEPTH + 1
    assert t[MAP_DEPTH] == leaf_hash(b"")
    assert t[MAP_DEPTH - 1] == node_hash(leaf_hash(b""), leaf_hash(b""))
    assert t.empty_root == t[0] == node_hash(t[1], t[1])


def test_default_leaf_table_shared_once():
    seen = []
    threads = [threading.Thread(target=lambda: seen.append(DefaultLeafTable.shared())) for _ in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()
    assert all(s is seen[0] for s in seen)


def _head(values, size=1):
    return MapTreeHead(map_root(values), LogTreeHead(size, leaf_hash(b"mutations")))


def test_empty_map_proves_empty_value():
    head = _head({}, size=0)
    assert head.root_hash == default_leaf_table().empty_root
    proof = MapEntryProof(b"foo", None, (None,) * MAP_DEPTH, 0)
    verify_map_entry(proof, head, leaf_hash(b""))
    with pytest.raises(VerificationFailedError):
        verify_map_entry(proof, head, leaf_hash(b"bar"))


def test_present_and_absent_keys():
    values = {k: leaf_hash(b"v-" + k) for k in [b"foo", b"bar", b"baz", b"qux"]}
    head = _head(values, size=4)
    for k, lh in values.items():
        proof = MapEntryProof(k, lh, tuple(map_audit_path(values, k)), 4)
        assert calculate_map_root(proof) == head.root_hash
        proof.verify(head)
    absent = MapEntryProof(b"nope", leaf_hash(b""), tuple(map_audit_path(values, b"nope")), 4)
    absent.verify(head)
    with pytest.raises(VerificationFailedError):
        verify_map_entry(absent, head, leaf_hash(b"v-nope"))


def test_set_then_delete_proves_empty():
    with_foo = {b"foo": leaf_hash(b"bar")}
    head = _head(with_foo, size=1)
    MapEntryProof(b"foo", leaf_hash(b"bar"), tuple(map_audit_path(with_foo, b"foo")), 1).verify(head)
    deleted = _head({}, size=2)
    proof = MapEntryProof(b"foo", leaf_hash(b""), tuple(map_audit_path({}, b"foo")), 2)
    proof.verify(deleted)
    with pytest.raises(VerificationFailedError):
        MapEntryProof(b"foo", leaf_hash(b"bar"), proof.audit_path, 2).verify(deleted)


def test_map_proof_rejects_tampering():
    values = {b"a": leaf_hash(b"1"), b"b": leaf_hash(b"2")}
    head = _head(values, size=2)
    path = map_audit_path(values, b"a")
    level = next(i for i, p in enumerate(path) if p is not None)
    forged = list(path)
    forged[level] = leaf_hash(b"forged")
    with pytest.raises(VerificationFailedError):
        verify_map_entry(MapEntryProof(b"a", values[b"a"], tuple(forged), 2), head)
    with pytest.raises(VerificationFailedError):
        verify_map_entry(MapEntryProof(b"a", values[b"a"], tuple(path), 3), head)
    with pytest.raises(VerificationFailedError):
        verify_map_entry(MapEntryProof(b"a", values[b"a"], tuple(path[:-1]), 2), head)


def test_calculate_map_root_input_errors():
    with pytest.raises(InvalidRangeError):
        calculate_map_root(MapEntryProof(b"a", leaf_hash(b""), (None,) * 10, 1))
    with pytest.raises(InvalidRangeError):
        calculate_map_root(MapEntryProof(b"a", None, (None,) * MAP_DEPTH, 1))


def test_map_tree_head_leaf_hash():
    root = b"\x01" * 32
    ml = LogTreeHead(5, b"\x02" * 32)
    expected = object_hash(
        {
            "map_hash": "AQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQE=",
            "mutation_log": {"tree_size": 5, "tree_hash": "AgICAgICAgICAgICAgICAgICAgICAgICAgICAgICAgI="},
        }
    )
    head = MapTreeHead(root, ml)
    assert head.tree_size == 5
    assert head.leaf_hash() == leaf_hash(expected)
    empty = MapTreeHead(root, LogTreeHead(0, None))
    assert empty.leaf_hash() == leaf_hash(
        object_hash({"map_hash": "AQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQE=", "mutation_log": {"tree_size": 0, "tree_hash": None}})
    )
