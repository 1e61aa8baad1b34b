"""
Command-Line Interface for the shielded pool engine

Hashing, commitment and nullifier derivation, Merkle tree inspection and
Groth16 verification from the shell.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from shielded_pool import __version__
from shielded_pool.core.adapters import InMemoryLedger
from shielded_pool.core.commitments import CommitmentService, NullifierService
from shielded_pool.core.config import EngineConfig, load_config
from shielded_pool.core.exceptions import ShieldedPoolError
from shielded_pool.core.field import FieldElement
from shielded_pool.core.merkle import MerkleTreeService
from shielded_pool.core.poseidon import get_hasher, resolve_backend_name
from shielded_pool.core.proof_service import MerkleProofService

console = Console()


def _parse_field(text: str) -> FieldElement:
    """Decimal or 0x-prefixed hex integer."""
    try:
        return FieldElement(int(text, 0))
    except ValueError:
        raise click.BadParameter(f"not an integer: {text!r}") from None


def _parse_wire(text: str) -> bytes:
    """32-byte little-endian field encoding given as 64 hex characters."""
    try:
        data = bytes.fromhex(text[2:] if text.startswith("0x") else text)
    except ValueError:
        raise click.BadParameter(f"not hex: {text!r}") from None
    if len(data) != 32:
        raise click.BadParameter(f"expected 32 bytes, got {len(data)}")
    return data


def _parse_leaf(text: str) -> bytes:
    if len(text) in (64, 66):
        return _parse_wire(text)
    return _parse_field(text).to_bytes()


def _show(fe: FieldElement, wire: bool) -> str:
    return fe.hex() if wire else f"0x{fe.value:064x}"


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--config',
    'config_path',
    type=click.Path(exists=True, dir_okay=False),
    help='YAML engine configuration file'
)
@click.option(
    '--backend',
    type=click.Choice(['portable', 'gmpy2']),
    help='Poseidon backend (overrides config and SHIELDED_POOL_HASHER)'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable debug logging'
)
@click.pass_context
def main(ctx, config_path, backend, verbose):
    """
    Shielded pool cryptographic engine.

    Poseidon hashing, note commitments, nullifiers, Merkle proofs and
    Groth16 verification over BN254.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(config_path) if config_path else EngineConfig()
    except ShieldedPoolError as e:
        _fail(str(e))
    ctx.obj = {"config": config, "backend": backend}


def _hasher(ctx):
    return get_hasher(prefer=ctx.obj["backend"], config=ctx.obj["config"])


@main.command(name='hash')
@click.argument('inputs', nargs=-1, required=True)
@click.option('--wire', is_flag=True, help='Print the 32-byte little-endian encoding')
@click.pass_context
def hash_command(ctx, inputs, wire):
    """
    Poseidon hash of 1 to 4 field elements.

    Examples:

        shielded-pool hash 1 2
    """
    elements = [_parse_field(item) for item in inputs]
    try:
        result = _hasher(ctx).hash(elements)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None
    click.echo(_show(result, wire))


@main.command()
@click.option('--value', type=int, required=True, help='Note value (u64)')
@click.option('--asset-id', type=int, default=0, show_default=True, help='Asset id (u64)')
@click.option('--owner', required=True, help='Owner public key (integer)')
@click.option('--blinding', required=True, help='Blinding factor (integer)')
@click.option('--wire', is_flag=True, help='Print the 32-byte little-endian encoding')
@click.pass_context
def commitment(ctx, value, asset_id, owner, blinding, wire):
    """Note commitment hash_4(value, asset_id, owner, blinding)."""
    service = CommitmentService(_hasher(ctx))
    try:
        result = service.create_commitment(
            value, asset_id, _parse_field(owner), _parse_field(blinding)
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from None
    click.echo(_show(result, wire))


@main.command()
@click.option('--commitment', 'commitment_hex', required=True, help='Commitment (64 hex chars, wire encoding)')
@click.option('--spending-key', required=True, help='Spending key (integer)')
@click.option('--wire', is_flag=True, help='Print the 32-byte little-endian encoding')
@click.pass_context
def nullifier(ctx, commitment_hex, spending_key, wire):
    """Nullifier hash_2(commitment, spending_key)."""
    commitment_fe = FieldElement.from_bytes(_parse_wire(commitment_hex))
    result = NullifierService(_hasher(ctx)).compute_nullifier(
        commitment_fe, _parse_field(spending_key)
    )
    click.echo(_show(result, wire))


@main.command()
@click.argument('leaves', nargs=-1, required=True)
@click.option('--index', type=int, help='Leaf to build an authentication path for')
@click.pass_context
def tree(ctx, leaves, index):
    """
    Build a commitment tree from LEAVES and print its root.

    Leaves are integers or 64-hex-character wire encodings.

    Examples:

        shielded-pool tree 1 2 3 --index 2
    """
    config = ctx.obj["config"]
    service = MerkleTreeService(
        _hasher(ctx), depth=config.tree_depth, historic_roots=config.historic_roots
    )
    ledger = InMemoryLedger(service)
    try:
        for leaf in leaves:
            ledger.insert_commitment(_parse_leaf(leaf))
    except ShieldedPoolError as e:
        _fail(str(e))

    proofs = MerkleProofService(ledger, service.zero_hashes, depth=service.depth)
    info = proofs.get_tree_info()

    table = Table(title="Commitment tree")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("root", info.root.hex())
    table.add_row("size", str(info.size))
    table.add_row("depth", str(info.depth))
    console.print(table)

    if index is None:
        return
    try:
        proof = proofs.generate_proof(index)
    except ShieldedPoolError as e:
        _fail(str(e))

    path = Table(title=f"Authentication path for leaf {index}")
    path.add_column("Level", justify="right")
    path.add_column("Side")
    path.add_column("Sibling")
    for level, (sibling, bit) in enumerate(zip(proof.siblings, proof.path_indices())):
        path.add_row(str(level), "left" if bit else "right", sibling.hex())
    console.print(path)

    verified = service.verify_proof(info.root, service.get_leaf(index), proof)
    if verified:
        click.echo(click.style("✓ Path verifies against root", fg="green"))
    else:
        _fail("Path does not verify against root")


@main.command()
@click.option('--vk', 'vk_path', type=click.Path(exists=True, dir_okay=False), required=True, help='Compressed verifying key file')
@click.option('--proof', 'proof_path', type=click.Path(exists=True, dir_okay=False), required=True, help='Compressed proof file')
@click.option('--input', 'inputs', multiple=True, help='Public input as 64 hex chars (big-endian); repeatable')
@click.option('--circuit', type=click.Choice(['transfer', 'unshield', 'shield', 'disclosure']), help='Enforce the circuit arity')
def verify(vk_path, proof_path, inputs, circuit):
    """Verify a Groth16 proof. Exit code 0 if valid, 1 otherwise."""
    from shielded_pool.core.groth16 import CircuitId, Groth16Verifier

    public_inputs: List[bytes] = []
    for item in inputs:
        try:
            data = bytes.fromhex(item[2:] if item.startswith("0x") else item)
        except ValueError:
            raise click.BadParameter(f"not hex: {item!r}") from None
        public_inputs.append(data)

    expected: Optional[int] = None
    if circuit:
        expected = CircuitId[circuit.upper()].public_inputs

    try:
        valid = Groth16Verifier.verify(
            Path(vk_path).read_bytes(),
            Path(proof_path).read_bytes(),
            public_inputs,
            expected_inputs=expected,
        )
    except ShieldedPoolError as e:
        _fail(f"{type(e).__name__}: {e}")

    if valid:
        click.echo(click.style("✓ Proof is valid", fg="green"))
    else:
        _fail("Proof is invalid")


@main.command(name='config')
@click.pass_context
def show_config(ctx):
    """Show the resolved engine configuration."""
    config = ctx.obj["config"]
    table = Table(title="Engine configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    try:
        table.add_row(
            "resolved hasher",
            resolve_backend_name(ctx.obj["backend"], config),
        )
    except ShieldedPoolError as e:
        _fail(str(e))
    console.print(table)


if __name__ == '__main__':
    main()
