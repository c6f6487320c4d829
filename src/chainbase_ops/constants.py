"""Network parameters and protocol constants for chainbase-ops."""

from __future__ import annotations

# Static network defaults; every value can be overridden through configuration.
SEPOLIA = {
    "name": "Sepolia",
    "rpc_url": "https://ethereum-sepolia-rpc.publicnode.com",
    "chain_id": 11155111,
    "explorer_url": "https://sepolia.etherscan.io",
}

CHAINBASE = {
    "name": "Chainbase",
    "rpc_url": "https://testnet.s.chainbase.com",
    "chain_id": 2233,
    "explorer_url": "https://testnet.explorer.chainbase.com",
}

# Gas policy defaults
GAS_PRICE_MULTIPLIER = 1.05
GAS_RETRY_INCREASE = 1.1
GAS_MIN_GWEI = 0.1
GAS_MAX_GWEI = 100.0
DEFAULT_GAS_LIMIT = 300_000
GAS_ESTIMATE_BUFFER = 1.2

# Bounded retries applied after a proxy rotation
MAX_PROXY_RETRIES = 3

DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_RECEIPT_TIMEOUT = 180.0

CURRENCY = "ETH"

# Bridge quoting service
BRIDGE_API_URL = "https://api.superbridge.app/api/v2/bridge/routes"
BRIDGE_HOST = "testnet.bridge.chainbase.com"
BRIDGE_ORIGIN = "https://testnet.bridge.chainbase.com"
BRIDGE_GRAFFITI = "superbridge"
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_TOKEN_DECIMALS = 18
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
)

DEPOSIT_ROUTE_ID = "OptimismDeposit"
WITHDRAWAL_ROUTE_ID = "OptimismWithdrawal"

# Fallback routing: StandardBridge.bridgeETH(uint32 minGasLimit, bytes extraData)
BRIDGE_ETH_SIGNATURE = "bridgeETH(uint32,bytes)"
BRIDGE_MIN_GAS_LIMIT = 200_000
# OP-stack predeploy; the L1 side is deployment specific and has no default
L2_STANDARD_BRIDGE = "0x4200000000000000000000000000000000000010"

# Settlement monitoring and batch pacing
BRIDGE_POLL_INTERVAL = 30.0
BRIDGE_MAX_POLLS = 20
OPERATION_COOLDOWN = 60.0

DEFAULT_BRIDGE_AMOUNT = {"min": 0.0001, "max": 0.0004, "decimals": 7}
DEFAULT_TRANSFER_AMOUNT = {"min": 0.00001, "max": 0.00005, "decimals": 8}

ENV_PREFIX = "CHAINBASE_OPS_"
