# /gasoracle/abis/uniswap_v3.py

# keccak("Swap(address,address,int256,int256,uint160,uint128,int24)")
SWAP_EVENT_TOPIC = "0xc42079f94a6350d7e6235f29174924f928cc2ac818eb64fed8004e115fbcca67"

# Types of the non-indexed Swap fields, in log data order
SWAP_DATA_TYPES = ["int256", "int256", "uint160", "uint128", "int24"]
