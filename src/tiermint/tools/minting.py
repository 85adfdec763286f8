"""Minting tools: mint_token_f, mint_token_n, mint_token_t, set_approval,
check_balances, ledger_status.

Each tool returns a result dict. Expected rejections come back as
``{"success": False, "error": <reason>}`` with the verbatim revert reason;
ledger invariant violations propagate.
"""

from __future__ import annotations

import importlib.metadata
import logging
import platform
from typing import Any

from cryptography.hazmat.primitives.serialization import load_pem_public_key

from tiermint.config import TierMintConfig
from tiermint.constants import Tier
from tiermint.contract import TierMintContract
from tiermint.errors import MintError
from tiermint.guard import CallerContext
from tiermint.host import ContractHost
from tiermint.origin import (
    OriginError,
    key_fingerprint,
    normalize_public_key,
    verify_origin_certificate,
)
from tiermint.rpc_client import RpcClient, RpcError
from tiermint.units import format_ether, normalize_address

logger = logging.getLogger(__name__)


def _balances_dict(contract: TierMintContract, address: str) -> dict[str, int]:
    return {tier.name: amount for tier, amount in contract.balances(address).items()}


async def _commit(host: ContractHost, what: str, address: str) -> None:
    """Mark the host dirty and flush; a failed flush never undoes the mint."""
    host.mark_dirty()
    if not await host.flush():
        logger.error(
            "CRITICAL: Failed to flush %s for %s. "
            "State is in memory but may be lost on restart.",
            what, address,
        )


# ---------------------------------------------------------------------------
# Caller resolution
# ---------------------------------------------------------------------------


async def resolve_caller(
    address: str,
    *,
    certificate: str | None = None,
    origin_public_key: str | None = None,
    rpc: RpcClient | None = None,
) -> CallerContext:
    """Build the guard's caller context at the calling boundary.

    A signed origin certificate wins over an RPC code probe. With neither
    available the origin is unknown and the call is refused.

    Raises:
        OriginError: Certificate invalid, or subject does not match ``address``.
        RpcError: The node could not be queried.
    """
    address = normalize_address(address)
    if certificate:
        if not origin_public_key:
            raise OriginError("No origin public key configured to verify the certificate.")
        context = verify_origin_certificate(certificate, origin_public_key)
        if context.address != address:
            raise OriginError(
                f"Origin certificate is for {context.address}, not {address}."
            )
        return context
    if rpc is not None:
        return await rpc.caller_context(address)
    raise OriginError("Caller origin unknown: no certificate and no RPC node configured.")


# ---------------------------------------------------------------------------
# Mint tools
# ---------------------------------------------------------------------------


async def mint_token_f_tool(
    host: ContractHost,
    caller: CallerContext,
    qty: int,
    value_wei: int,
) -> dict[str, Any]:
    """Buy ``qty`` Token F for ``value_wei``.

    Any payment above ``qty * MINT_TOKEN_F_COST`` is retained by the
    contract and reported as ``retained_excess_wei``.
    """
    async with host.session() as contract:
        try:
            contract.mint_token_f(caller, qty, value_wei)
        except (MintError, ValueError) as e:
            return {"success": False, "error": str(e)}
        await _commit(host, f"{qty} Token F", caller.address)

        required = qty * contract.MINT_TOKEN_F_COST
        return {
            "success": True,
            "tier": Tier.F.name,
            "minted": qty,
            "paid_wei": value_wei,
            "required_wei": required,
            "retained_excess_wei": value_wei - required,
            "balances": _balances_dict(contract, caller.address),
            "message": (
                f"Minted {qty:,} Token F for {format_ether(value_wei)} ether."
            ),
        }


async def mint_token_n_tool(
    host: ContractHost,
    caller: CallerContext,
    qty: int,
) -> dict[str, Any]:
    """Burn Token F to mint ``qty`` Token N (requires operator approval)."""
    async with host.session() as contract:
        try:
            contract.mint_token_n(caller, qty)
        except (MintError, ValueError) as e:
            return {"success": False, "error": str(e)}
        await _commit(host, f"{qty} Token N", caller.address)

        burned_f = qty * contract.MINT_TOKEN_N_COST
        return {
            "success": True,
            "tier": Tier.N.name,
            "minted": qty,
            "burned": {Tier.F.name: burned_f},
            "balances": _balances_dict(contract, caller.address),
            "message": f"Minted {qty:,} Token N, burned {burned_f:,} Token F.",
        }


async def mint_token_t_tool(
    host: ContractHost,
    caller: CallerContext,
    qty: int,
) -> dict[str, Any]:
    """Burn Token F and Token N to mint ``qty`` Token T (requires operator approval)."""
    async with host.session() as contract:
        try:
            contract.mint_token_t(caller, qty)
        except (MintError, ValueError) as e:
            return {"success": False, "error": str(e)}
        await _commit(host, f"{qty} Token T", caller.address)

        burned_f = qty * contract.MINT_TOKEN_T_COST
        burned_n = qty * contract.MINT_TOKEN_T_COST_IN_N
        return {
            "success": True,
            "tier": Tier.T.name,
            "minted": qty,
            "burned": {Tier.F.name: burned_f, Tier.N.name: burned_n},
            "balances": _balances_dict(contract, caller.address),
            "message": (
                f"Minted {qty:,} Token T, burned {burned_f:,} Token F "
                f"and {burned_n:,} Token N."
            ),
        }


async def set_approval_tool(
    host: ContractHost,
    sender: str,
    operator: str,
    approved: bool,
) -> dict[str, Any]:
    """Grant or revoke ``operator`` over ``sender``'s balances.

    Burn-funded mints need ``operator`` to be the contract's own address.
    """
    async with host.session() as contract:
        try:
            contract.set_approval_for_all(sender, operator, approved)
        except (MintError, ValueError) as e:
            return {"success": False, "error": str(e)}
        await _commit(host, "approval change", sender)

        operator = normalize_address(operator)
        return {
            "success": True,
            "owner": normalize_address(sender),
            "operator": operator,
            "approved": bool(approved),
            "burn_mints_enabled": contract.is_approved_for_all(sender, contract.address),
        }


# ---------------------------------------------------------------------------
# Read-only tools
# ---------------------------------------------------------------------------


async def check_balances_tool(host: ContractHost, address: str) -> dict[str, Any]:
    """Return per-tier balances, approval state and mint quotes for ``address``.

    Read-only, no side effects.

    Returns dict with:
        success: True unless the address is malformed.
        balances: {"F": int, "N": int, "T": int}.
        contract_approved: True if the contract may burn on this address's behalf.
        max_mintable_n / max_mintable_t: Largest quantity the current
            balances would cover (None when the cost is zero).
    """
    try:
        address = normalize_address(address)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    async with host.session() as contract:
        balances = contract.balances(address)
        f_bal = balances[Tier.F]
        n_bal = balances[Tier.N]

        max_n = f_bal // contract.MINT_TOKEN_N_COST if contract.MINT_TOKEN_N_COST else None
        t_limits = [
            bal // cost
            for bal, cost in (
                (f_bal, contract.MINT_TOKEN_T_COST),
                (n_bal, contract.MINT_TOKEN_T_COST_IN_N),
            )
            if cost
        ]
        max_t = min(t_limits) if t_limits else None

        return {
            "success": True,
            "address": address,
            "balances": {tier.name: amount for tier, amount in balances.items()},
            "contract_approved": contract.is_approved_for_all(address, contract.address),
            "max_mintable_n": max_n,
            "max_mintable_t": max_t,
        }


async def ledger_status_tool(
    config: TierMintConfig,
    host: ContractHost,
    rpc: RpcClient | None = None,
) -> dict[str, Any]:
    """Report configuration, supply and connectivity for diagnostics.

    Returns dict with:
        versions: Python and installed package versions.
        contract_address / costs: Construction parameters in force.
        supply: Circulating units per tier; conserved: conservation check result.
        collected_wei / collected_ether: Native currency retained so far.
        host: ContractHost health metrics.
        origin_config: Origin-certificate key status and fingerprint.
        rpc_reachable / chain_id / block_number: Node status (None if no RPC).
    """
    result: dict[str, Any] = {}

    versions: dict[str, str] = {"python": platform.python_version()}
    for pkg in ("tiermint", "httpx", "PyJWT"):
        try:
            versions[pkg.lower()] = importlib.metadata.version(pkg)
        except importlib.metadata.PackageNotFoundError:
            versions[pkg.lower()] = "unknown"
    result["versions"] = versions

    async with host.session() as contract:
        result["contract_address"] = contract.address
        result["costs"] = {
            "MINT_TOKEN_F_COST": contract.MINT_TOKEN_F_COST,
            "MINT_TOKEN_N_COST": contract.MINT_TOKEN_N_COST,
            "MINT_TOKEN_T_COST": contract.MINT_TOKEN_T_COST,
            "MINT_TOKEN_T_COST_IN_N": contract.MINT_TOKEN_T_COST_IN_N,
        }
        result["supply"] = {tier.name: contract.ledger.total_supply(tier) for tier in Tier}
        result["holders"] = {tier.name: len(contract.ledger.holders(tier)) for tier in Tier}
        result["conserved"] = contract.ledger.is_conserved()
        result["collected_wei"] = contract.collected_wei
        result["collected_ether"] = format_ether(contract.collected_wei)
    result["host"] = host.health()

    origin_config: dict[str, Any] = {
        "public_key_configured": bool(config.origin_public_key),
    }
    if config.origin_public_key:
        try:
            load_pem_public_key(normalize_public_key(config.origin_public_key).encode())
            origin_config["public_key_fingerprint"] = key_fingerprint(config.origin_public_key)
            origin_config["public_key_valid"] = True
        except (ValueError, TypeError) as e:
            origin_config["public_key_valid"] = False
            origin_config["public_key_error"] = str(e)
    result["origin_config"] = origin_config

    if rpc is not None:
        try:
            result["chain_id"] = await rpc.chain_id()
            result["block_number"] = await rpc.block_number()
            result["rpc_reachable"] = True
        except RpcError as e:
            result["rpc_reachable"] = False
            result["rpc_error"] = str(e)
    else:
        result["rpc_reachable"] = None

    return result
