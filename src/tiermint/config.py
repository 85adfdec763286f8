"""TierMint configuration: plain frozen dataclass, no pydantic.

The host application constructs this from its own settings (env vars,
pydantic-settings, etc.) and passes it to ``TierMintContract.from_config``
and the minting tools.
"""

from dataclasses import dataclass

from tiermint.constants import (
    DEFAULT_CONTRACT_ADDRESS,
    MINT_TOKEN_F_COST,
    MINT_TOKEN_N_COST,
    MINT_TOKEN_T_COST,
    MINT_TOKEN_T_COST_IN_N,
)


@dataclass(frozen=True)
class TierMintConfig:
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    mint_token_f_cost_wei: int = MINT_TOKEN_F_COST
    mint_token_n_cost: int = MINT_TOKEN_N_COST
    mint_token_t_cost: int = MINT_TOKEN_T_COST
    mint_token_t_cost_in_n: int = MINT_TOKEN_T_COST_IN_N
    rpc_url: str | None = None
    origin_public_key: str | None = None
    state_dir: str | None = None
    flush_retries: int = 1
    flush_retry_delay: float = 2.0
