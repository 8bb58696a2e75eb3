"""Merkle payout commitment for a finalized distribution.

Leaves and layout follow the OpenZeppelin "standard merkle tree": each leaf is
``keccak256(keccak256(abi.encode(address, uint256, bytes32)))``, leaves are
sorted by hash and internal nodes hash the sorted pair of their children. The
root therefore only depends on the multiset of payouts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from grants_api.errors import EmptyDistributionError, PrecisionError, ValidationError
from grants_api.models.contribution import normalize_address
from grants_api.models.distribution import PayoutLeaf, PayoutTree, QFDistributionEntry
from grants_api.services.fixed_point import UINT256_MAX

log = logging.getLogger(__name__)

LEAF_TYPES = ["address", "uint256", "bytes32"]


def project_id_bytes32(project_id: str) -> bytes:
    """Fixed-width project identifier; anything after the first ``-`` is dropped."""
    raw = project_id.split("-")[0]
    if raw.startswith("0x") and len(raw) == 66:
        try:
            return bytes.fromhex(raw[2:])
        except ValueError:
            pass
    encoded = raw.encode("utf-8")
    if len(encoded) > 31:
        raise ValidationError(f"project_id_too_long:{project_id}")
    return encoded.ljust(32, b"\x00")


def leaf_hash(payout_address: str, match_amount: int, project_id: bytes) -> bytes:
    encoded = encode(LEAF_TYPES, [to_checksum_address(payout_address), match_amount, project_id])
    return keccak(keccak(encoded))


def _hash_pair(left: bytes, right: bytes) -> bytes:
    return keccak(b"".join(sorted((left, right))))


def _proof(tree: list[bytes], index: int) -> list[bytes]:
    proof: list[bytes] = []
    while index > 0:
        sibling = index + 1 if index % 2 else index - 1
        proof.append(tree[sibling])
        index = (index - 1) // 2
    return proof


def _collapse(distribution: Iterable[QFDistributionEntry]) -> dict[str, tuple[int, str]]:
    # Canonical order first so the kept project id does not depend on input order:
    # the smallest project id sharing a payout address wins.
    ordered = sorted(
        distribution,
        key=lambda entry: (normalize_address(entry.payout_address), entry.project_id, entry.match_amount),
    )
    collapsed: dict[str, tuple[int, str]] = {}
    for entry in ordered:
        address = normalize_address(entry.payout_address)
        if address in collapsed:
            amount, project_id = collapsed[address]
            collapsed[address] = (amount + entry.match_amount, project_id)
        else:
            collapsed[address] = (entry.match_amount, entry.project_id)
    return collapsed


def build_payout_tree(distribution: Iterable[QFDistributionEntry]) -> PayoutTree:
    collapsed = _collapse(distribution)
    if not collapsed:
        raise EmptyDistributionError("empty_distribution")

    leaves: list[tuple[bytes, str, int, bytes]] = []
    for address, (amount, project_id) in collapsed.items():
        if not is_address(address):
            raise ValidationError(f"invalid_payout_address:{address}")
        if amount > UINT256_MAX:
            raise PrecisionError(f"amount_exceeds_uint256:{amount}")
        project_bytes = project_id_bytes32(project_id)
        leaves.append((leaf_hash(address, amount, project_bytes), address, amount, project_bytes))
    leaves.sort(key=lambda leaf: leaf[0])

    tree: list[bytes] = [b""] * (2 * len(leaves) - 1)
    for i, leaf in enumerate(leaves):
        tree[len(tree) - 1 - i] = leaf[0]
    for i in range(len(tree) - 1 - len(leaves), -1, -1):
        tree[i] = _hash_pair(tree[2 * i + 1], tree[2 * i + 2])

    values: list[PayoutLeaf] = []
    proofs: dict[str, list[str]] = {}
    for i, (_, address, amount, project_bytes) in enumerate(leaves):
        tree_index = len(tree) - 1 - i
        values.append(
            PayoutLeaf(
                payout_address=address,
                match_amount=amount,
                project_id=f"0x{project_bytes.hex()}",
                tree_index=tree_index,
            )
        )
        proofs[address] = [f"0x{node.hex()}" for node in _proof(tree, tree_index)]

    root = f"0x{tree[0].hex()}"
    log.info("payout_tree_built leaves=%s root=%s", len(leaves), root)
    return PayoutTree(root=root, values=values, proofs=proofs)


def verify_proof(root: str, leaf: bytes, proof: list[str]) -> bool:
    computed = leaf
    for node in proof:
        computed = _hash_pair(computed, bytes.fromhex(node.removeprefix("0x")))
    return f"0x{computed.hex()}" == root.lower()


def payout_leaf_hash(leaf: PayoutLeaf) -> bytes:
    return leaf_hash(leaf.payout_address, leaf.match_amount, bytes.fromhex(leaf.project_id.removeprefix("0x")))
