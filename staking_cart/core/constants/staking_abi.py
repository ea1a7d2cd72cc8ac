from __future__ import annotations

from typing import Any

# Minimal ABIs for the ATP (token vault) and its staker contract.

ATP_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "updateStakerOperator",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_operator", "type": "address"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "upgradeStaker",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_version", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "approveStaker",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "_allowance", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getStaker",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"type": "address"}],
    },
    {
        "type": "function",
        "name": "getOperator",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"type": "address"}],
    },
]

STAKER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "stakeWithProvider",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_version", "type": "uint256"},
            {"name": "_providerIdentifier", "type": "uint256"},
            {"name": "_expectedProviderTakeRate", "type": "uint16"},
            {"name": "_userRewardsRecipient", "type": "address"},
            {"name": "_moveWithLatestRollup", "type": "bool"},
        ],
        "outputs": [],
    },
]

ERC20_APPROVE_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "approve",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"type": "bool"}],
    },
]
