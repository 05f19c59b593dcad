"""
Default values shared by the settings and the services.
"""

DEFAULT_APP_PORT = 8000
DEFAULT_RATE_LIMIT_REQUESTS_PER_MINUTE = 100

# Token units
USDC_DECIMALS = 6
PYUSD_DECIMALS = 6

# x402
X402_VERSION = 1
X402_GET_PRICE_ATOMIC = "1000"  # 0.001 USDC
X402_POST_PRICE_ATOMIC = "5000"  # 0.005 USDC
X402_MAX_TIMEOUT_SECONDS = 300
X402_MIN_NONCE_LENGTH = 16
X402_DEFAULT_SERVICE_PRICE_USD = 0.001

# Flare FTSO
FTSO_FALLBACK_PRICES = {
    "FLR/USD": 0.0234,
    "XRP/USD": 0.5678,
    "BTC/USD": 45678.90,
    "ETH/USD": 2345.67,
}
FTSO_ONCHAIN_CONFIDENCE = 100.0
FTSO_FALLBACK_CONFIDENCE = 99.5

# LayerZero quoting
LZ_BASE_MESSAGE_GAS = 200_000
LZ_ESTIMATED_DELIVERY_SECONDS = 180
LZ_DEFAULT_GAS_PRICE_WEI = 1_000_000_000
DEFAULT_ETH_PRICE_USD = 2500.0

# PYUSD gateway fee estimation
PYUSD_CROSS_CHAIN_LZ_FEE_ETH = "0.001"
PYUSD_LOCAL_GAS = 150_000
PYUSD_CROSS_CHAIN_GAS = 300_000
PYUSD_ESTIMATED_GAS_PRICE_GWEI = 20
PYUSD_LZ_OPTIONS = "0x00030100110100000000000000000000000000030d40"

# Agent spawning
AGENT_ACTIVATION_DELAY_SECONDS = 2.0
AGENT_PORT_PROBE_ATTEMPTS = 100
AGENT_PORT_PROBE_RANGE = 1000

# Swarm coordination
SWARM_CONSENSUS_THRESHOLD = 0.51
SWARM_TASK_TIMEOUT_SECONDS = 300
SWARM_MONITOR_INTERVAL_SECONDS = 30
SWARM_MAX_AGENTS = 10
SWARM_DEFAULT_TASK_REWARD = 0.01
SWARM_MAX_REPUTATION = 5.0

# OpenSea
OPENSEA_TIMEOUT_SECONDS = 30.0
