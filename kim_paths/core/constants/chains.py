CHAIN_ID_MODE = 34443

PRE_EIP_1559_CHAIN_IDS: set[int] = set()
