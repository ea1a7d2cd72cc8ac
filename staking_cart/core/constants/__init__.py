from staking_cart.core.constants.chains import CHAIN_CODE_TO_ID, SUPPORTED_CHAINS

__all__ = ["CHAIN_CODE_TO_ID", "SUPPORTED_CHAINS"]
