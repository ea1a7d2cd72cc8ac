CHAIN_ID_ETHEREUM = 1
CHAIN_ID_SEPOLIA = 11155111
CHAIN_ID_BSC = 56
CHAIN_ID_POLYGON = 137

CHAIN_CODE_TO_ID = {
    "ethereum": CHAIN_ID_ETHEREUM,
    "mainnet": CHAIN_ID_ETHEREUM,
    "sepolia": CHAIN_ID_SEPOLIA,
    "bsc": CHAIN_ID_BSC,
    "polygon": CHAIN_ID_POLYGON,
}

SUPPORTED_CHAINS = [
    CHAIN_ID_ETHEREUM,
    CHAIN_ID_SEPOLIA,
    CHAIN_ID_BSC,
    CHAIN_ID_POLYGON,
]

POA_MIDDLEWARE_CHAIN_IDS: set[int] = {
    CHAIN_ID_BSC,
    CHAIN_ID_POLYGON,
}

PRE_EIP_1559_CHAIN_IDS: set[int] = {
    CHAIN_ID_BSC,
}

SAFE_TRANSACTION_SERVICE_URLS: dict[int, str] = {
    CHAIN_ID_ETHEREUM: "https://safe-transaction-mainnet.safe.global",
    CHAIN_ID_SEPOLIA: "https://safe-transaction-sepolia.safe.global",
    CHAIN_ID_BSC: "https://safe-transaction-bsc.safe.global",
    CHAIN_ID_POLYGON: "https://safe-transaction-polygon.safe.global",
}
