"""Constants for tiered minting."""

from enum import IntEnum


WEI_PER_ETHER = 10**18
UINT256_MAX = 2**256 - 1  # largest balance or supply the ledger will hold

MINT_TOKEN_F_COST = 10**16  # 0.01 ether per Token F
MINT_TOKEN_N_COST = 3  # Token F burned per Token N
MINT_TOKEN_T_COST = 10  # Token F burned per Token T
MINT_TOKEN_T_COST_IN_N = 1  # Token N burned per Token T

EVENT_LOG_LIMIT = 1000  # most recent events kept in persisted state

DEFAULT_CONTRACT_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"


class Tier(IntEnum):
    """Token tiers, ordered by acquisition precedence.

    Values are the token ids used on-chain.
    """

    F = 0
    N = 1
    T = 2
