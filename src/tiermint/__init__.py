"""TierMint: tiered mint/burn token ledger.

Token F is bought with native currency, Token N is minted by burning
Token F, and Token T by burning both.
"""

__version__ = "0.1.0"

from tiermint.approvals import ApprovalRegistry, ApprovalEvent
from tiermint.backends import FileStateBackend
from tiermint.config import TierMintConfig
from tiermint.constants import (
    Tier,
    MINT_TOKEN_F_COST,
    MINT_TOKEN_N_COST,
    MINT_TOKEN_T_COST,
    MINT_TOKEN_T_COST_IN_N,
)
from tiermint.contract import TierMintContract
from tiermint.errors import (
    MintError,
    InsufficientPayment,
    ContractCallerRejected,
    OperatorNotApproved,
    InsufficientTierFBalance,
    InsufficientTierNBalance,
    InsufficientBalance,
    ApprovalForSelf,
    LedgerInvariantError,
)
from tiermint.guard import CallerContext, assert_is_originating_caller
from tiermint.host import ContractHost
from tiermint.ledger import AssetLedger, BalanceEvent
from tiermint.origin import OriginError, verify_origin_certificate
from tiermint.rpc_client import RpcClient, RpcError
from tiermint.state_backend import StateBackend
from tiermint.units import parse_ether, format_ether

__all__ = [
    "ApprovalRegistry",
    "ApprovalEvent",
    "FileStateBackend",
    "TierMintConfig",
    "Tier",
    "MINT_TOKEN_F_COST",
    "MINT_TOKEN_N_COST",
    "MINT_TOKEN_T_COST",
    "MINT_TOKEN_T_COST_IN_N",
    "TierMintContract",
    "MintError",
    "InsufficientPayment",
    "ContractCallerRejected",
    "OperatorNotApproved",
    "InsufficientTierFBalance",
    "InsufficientTierNBalance",
    "InsufficientBalance",
    "ApprovalForSelf",
    "LedgerInvariantError",
    "CallerContext",
    "assert_is_originating_caller",
    "ContractHost",
    "AssetLedger",
    "BalanceEvent",
    "OriginError",
    "verify_origin_certificate",
    "RpcClient",
    "RpcError",
    "StateBackend",
    "parse_ether",
    "format_ether",
]
