"""Block explorer links for transactions and addresses."""

from __future__ import annotations

from typing import Union

from solders.pubkey import Pubkey

EXPLORER_BASE_URL = "https://explorer.solana.com"


def _cluster_suffix(cluster: str) -> str:
    return "" if cluster == "mainnet-beta" else f"?cluster={cluster}"


def transaction_url(signature: str, cluster: str = "devnet") -> str:
    return f"{EXPLORER_BASE_URL}/tx/{signature}{_cluster_suffix(cluster)}"


def address_url(address: Union[Pubkey, str], cluster: str = "devnet") -> str:
    return f"{EXPLORER_BASE_URL}/address/{address}{_cluster_suffix(cluster)}"
