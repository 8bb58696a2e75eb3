from __future__ import annotations

import itertools

import pytest
from eth_utils import keccak
from factories import ADDR_A, ADDR_B, ADDR_C, make_entry

from grants_api.errors import EmptyDistributionError, ValidationError
from grants_api.services.payout_tree_service import (
    build_payout_tree,
    payout_leaf_hash,
    project_id_bytes32,
    verify_proof,
)


def _distribution():
    return [
        make_entry(ADDR_A, 100, "project-a"),
        make_entry(ADDR_B, 250, "project-b"),
        make_entry(ADDR_C, 75, "project-c"),
        make_entry(ADDR_A, 50, "project-a"),
    ]


def test_root_is_independent_of_entry_order() -> None:
    roots = {build_payout_tree(list(order)).root for order in itertools.permutations(_distribution())}
    assert len(roots) == 1


def test_repeated_builds_give_identical_root() -> None:
    assert build_payout_tree(_distribution()).root == build_payout_tree(_distribution()).root


def test_entries_sharing_payout_address_collapse_exactly() -> None:
    tree = build_payout_tree([make_entry(ADDR_A, 100), make_entry(ADDR_A.upper().replace("0X", "0x"), 50)])
    assert len(tree.values) == 1
    assert tree.values[0].payout_address == ADDR_A
    assert tree.values[0].match_amount == 150


def test_large_amounts_are_summed_without_precision_loss() -> None:
    big = 10**40 + 1
    tree = build_payout_tree([make_entry(ADDR_A, big), make_entry(ADDR_A, big)])
    assert tree.values[0].match_amount == 2 * big


def test_shared_payout_address_keeps_smallest_project_id() -> None:
    forward = build_payout_tree([make_entry(ADDR_A, 1, "zeta"), make_entry(ADDR_A, 2, "alpha")])
    backward = build_payout_tree([make_entry(ADDR_A, 2, "alpha"), make_entry(ADDR_A, 1, "zeta")])
    expected = "0x" + project_id_bytes32("alpha").hex()
    assert forward.values[0].project_id == expected
    assert backward.values[0].project_id == expected
    assert forward.root == backward.root


def test_every_proof_verifies_against_root() -> None:
    tree = build_payout_tree(_distribution())
    assert set(tree.proofs) == {ADDR_A, ADDR_B, ADDR_C}
    for leaf in tree.values:
        assert verify_proof(tree.root, payout_leaf_hash(leaf), tree.proofs[leaf.payout_address])


def test_tampered_leaf_does_not_verify() -> None:
    tree = build_payout_tree(_distribution())
    leaf = tree.values[0].model_copy(update={"match_amount": tree.values[0].match_amount + 1})
    assert not verify_proof(tree.root, payout_leaf_hash(leaf), tree.proofs[leaf.payout_address])


def test_single_leaf_root_is_leaf_hash() -> None:
    tree = build_payout_tree([make_entry(ADDR_B, 42)])
    assert tree.proofs[ADDR_B] == []
    assert tree.root == "0x" + payout_leaf_hash(tree.values[0]).hex()
    assert tree.values[0].tree_index == 0


def test_empty_distribution_cannot_be_committed() -> None:
    with pytest.raises(EmptyDistributionError):
        build_payout_tree([])


def test_project_id_encoding() -> None:
    raw = "0x" + "ab" * 32
    assert project_id_bytes32(raw) == bytes.fromhex("ab" * 32)
    assert project_id_bytes32("project-7") == b"project".ljust(32, b"\x00")
    with pytest.raises(ValidationError):
        project_id_bytes32("x" * 32)


def test_leaf_is_double_hashed() -> None:
    tree = build_payout_tree([make_entry(ADDR_B, 42)])
    assert tree.root != "0x" + keccak(b"").hex()
    assert len(bytes.fromhex(tree.root[2:])) == 32
