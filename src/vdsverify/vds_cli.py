from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .documents import (
    ConsistencyProofDocument,
    EntryDocument,
    InclusionProofDocument,
    MapEntryProofDocument,
    MapTreeHeadDocument,
    TreeHeadDocument,
)
from .entries import JSON_ENTRY_FACTORY, RAW_DATA_ENTRY_FACTORY
from .errors import InvalidObjectError, InvalidRangeError, NotAllEntriesReturnedError, VerificationFailedError
from .merkle.audit import audit_log_entries
from .merkle.log import verify_consistency, verify_inclusion
from .merkle.objecthash import object_hash_with_redaction, shed_redactable
from .merkle.sparse import verify_map_entry
from .settings import settings


def _load_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _factory(args: argparse.Namespace):
    return JSON_ENTRY_FACTORY if args.json else RAW_DATA_ENTRY_FACTORY


def cmd_hash(args: argparse.Namespace) -> int:
    prefix = None if args.no_redaction else settings.vds_redaction_prefix
    print(object_hash_with_redaction(_load_json(args.input), prefix).hex())
    return 0


def cmd_leaf_hash(args: argparse.Namespace) -> int:
    entry = _factory(args).create_from_bytes(Path(args.input).read_bytes())
    print(entry.leaf_hash().hex())
    return 0


def cmd_shed(args: argparse.Namespace) -> int:
    doc = shed_redactable(_load_json(args.input), settings.vds_redaction_prefix)
    print(json.dumps(doc, ensure_ascii=False, indent=2))
    return 0


def cmd_verify_inclusion(args: argparse.Namespace) -> int:
    head = TreeHeadDocument.model_validate(_load_json(args.head)).to_tree_head()
    proof = InclusionProofDocument.model_validate(_load_json(args.proof)).to_proof()
    leaf_hash = None
    if args.leaf_hash:
        leaf_hash = bytes.fromhex(args.leaf_hash)
    elif args.input:
        leaf_hash = _factory(args).create_from_bytes(Path(args.input).read_bytes()).leaf_hash()
    verify_inclusion(head, proof, leaf_hash)
    print(f"OK: leaf {proof.leaf_index} included in tree size {head.tree_size}")
    return 0


def cmd_verify_consistency(args: argparse.Namespace) -> int:
    first = TreeHeadDocument.model_validate(_load_json(args.first)).to_tree_head()
    second = TreeHeadDocument.model_validate(_load_json(args.second)).to_tree_head()
    proof = ConsistencyProofDocument.model_validate(_load_json(args.proof)).to_proof()
    verify_consistency(proof, first, second)
    print(f"OK: tree size {second.tree_size} extends tree size {first.tree_size}")
    return 0


def cmd_verify_map(args: argparse.Namespace) -> int:
    head = MapTreeHeadDocument.model_validate(_load_json(args.head)).to_map_tree_head()
    doc = MapEntryProofDocument.model_validate(_load_json(args.entry))
    entry = _factory(args).create_from_bytes(doc.value_bytes)
    verify_map_entry(doc.to_proof(), head, entry.leaf_hash())
    print(f"OK: key {doc.key} verified at tree size {head.tree_size}")
    return 0


def _read_entries(path: str, factory):
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield factory.create_from_bytes(EntryDocument.model_validate_json(line).data)


def cmd_audit(args: argparse.Namespace) -> int:
    head = TreeHeadDocument.model_validate(_load_json(args.head)).to_tree_head()
    prev = None
    frontier = None
    if args.prev:
        prev = TreeHeadDocument.model_validate(_load_json(args.prev)).to_tree_head()
    if args.frontier_proof:
        frontier = InclusionProofDocument.model_validate(_load_json(args.frontier_proof)).to_proof()
    start = 0 if prev is None else prev.tree_size
    audit_log_entries(prev, head, _read_entries(args.entries, _factory(args)), None, frontier)
    print(f"OK: entries {start}..{head.tree_size} match tree head")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vds-verify",
        description="Verify Merkle log and map proofs and compute object hashes",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_hash = sub.add_parser("hash", help="Print the object hash (hex) of a JSON document")
    p_hash.add_argument("--input", required=True)
    p_hash.add_argument("--no-redaction", action="store_true", help="Treat redacted-looking strings as plain text")
    p_hash.set_defaults(func=cmd_hash)

    p_leaf = sub.add_parser("leaf-hash", help="Print the Merkle leaf hash (hex) of an entry file")
    p_leaf.add_argument("--input", required=True)
    p_leaf.add_argument("--json", action="store_true", help="Hash as a JSON entry (object hash)")
    p_leaf.set_defaults(func=cmd_leaf_hash)

    p_shed = sub.add_parser("shed", help="Strip nonces and redacted members from a redactable document")
    p_shed.add_argument("--input", required=True)
    p_shed.set_defaults(func=cmd_shed)

    p_incl = sub.add_parser("verify-inclusion", help="Verify a log inclusion proof against a tree head")
    p_incl.add_argument("--head", required=True, help="Tree head JSON")
    p_incl.add_argument("--proof", required=True, help="Inclusion proof JSON")
    g = p_incl.add_mutually_exclusive_group(required=False)
    g.add_argument("--leaf-hash", help="Leaf hash (hex) to bind to the proof")
    g.add_argument("--input", help="Entry file whose leaf hash is bound to the proof")
    p_incl.add_argument("--json", action="store_true", help="Entry file is a JSON entry")
    p_incl.set_defaults(func=cmd_verify_inclusion)

    p_cons = sub.add_parser("verify-consistency", help="Verify a log consistency proof between two tree heads")
    p_cons.add_argument("--first", required=True)
    p_cons.add_argument("--second", required=True)
    p_cons.add_argument("--proof", required=True)
    p_cons.set_defaults(func=cmd_verify_consistency)

    p_map = sub.add_parser("verify-map", help="Verify a map entry proof against a map tree head")
    p_map.add_argument("--head", required=True, help="Map tree head JSON")
    p_map.add_argument("--entry", required=True, help="Map entry proof JSON")
    p_map.add_argument("--json", action="store_true", help="Value is a JSON entry")
    p_map.set_defaults(func=cmd_verify_map)

    p_audit = sub.add_parser("audit", help="Replay log entries (JSON lines of leaf_data) into a tree head")
    p_audit.add_argument("--head", required=True)
    p_audit.add_argument("--entries", required=True)
    p_audit.add_argument("--prev", help="Previously audited tree head JSON")
    p_audit.add_argument("--frontier-proof", help="Inclusion proof of leaf prev.tree_size in tree size prev.tree_size+1")
    p_audit.add_argument("--json", action="store_true", help="Entries are JSON entries")
    p_audit.set_defaults(func=cmd_audit)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        logging.basicConfig(level=logging.DEBUG if args.verbose else settings.vds_log_level)
        return args.func(args)
    except (VerificationFailedError, NotAllEntriesReturnedError, InvalidRangeError) as e:
        print(f"FAIL: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except (InvalidObjectError, ValidationError, ValueError, OSError) as e:
        print(f"Bad input: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
