"""
Smart contract ABIs for the deployed Hive Mind and partner contracts.
"""

# Flare FTSO price feed ABI
FTSO_ABI = [
    {
        "inputs": [],
        "name": "getCurrentPrice",
        "outputs": [
            {"internalType": "uint256", "name": "price", "type": "uint256"},
            {"internalType": "uint256", "name": "timestamp", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getCurrentPriceWithDecimals",
        "outputs": [
            {"internalType": "uint256", "name": "price", "type": "uint256"},
            {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
            {"internalType": "uint256", "name": "decimals", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
]

_AGENT_COMPONENTS = [
    {"internalType": "address", "name": "wallet", "type": "address"},
    {"internalType": "string", "name": "endpoint", "type": "string"},
    {"internalType": "string[]", "name": "capabilities", "type": "string[]"},
    {"internalType": "uint256", "name": "reputation", "type": "uint256"},
    {"internalType": "uint256", "name": "earnings", "type": "uint256"},
    {"internalType": "uint256", "name": "tasksCompleted", "type": "uint256"},
    {"internalType": "bool", "name": "active", "type": "bool"},
    {"internalType": "uint256", "name": "registeredAt", "type": "uint256"},
]

_TASK_COMPONENTS = [
    {"internalType": "uint256", "name": "id", "type": "uint256"},
    {"internalType": "address", "name": "requester", "type": "address"},
    {"internalType": "string", "name": "taskType", "type": "string"},
    {"internalType": "string", "name": "ipfsHash", "type": "string"},
    {"internalType": "uint256", "name": "reward", "type": "uint256"},
    {"internalType": "address", "name": "assignedAgent", "type": "address"},
    {"internalType": "uint8", "name": "status", "type": "uint8"},
    {"internalType": "uint256", "name": "createdAt", "type": "uint256"},
    {"internalType": "uint256", "name": "completedAt", "type": "uint256"},
]

# Field order of the coordinator structs, used to turn decoded tuples into dicts
AGENT_FIELDS = [c["name"] for c in _AGENT_COMPONENTS]
TASK_FIELDS = [c["name"] for c in _TASK_COMPONENTS]

# HiveMindCoordinator ABI (read side plus the calls the API prepares)
COORDINATOR_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "agent", "type": "address"}],
        "name": "getAgent",
        "outputs": [
            {"components": _AGENT_COMPONENTS, "internalType": "struct Agent", "name": "", "type": "tuple"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "agent", "type": "address"}],
        "name": "getAgentTasks",
        "outputs": [{"internalType": "uint256[]", "name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "taskId", "type": "uint256"}],
        "name": "getTask",
        "outputs": [
            {"components": _TASK_COMPONENTS, "internalType": "struct Task", "name": "", "type": "tuple"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getTaskCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "getAgentCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "platformFee",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "totalEarnings",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "minReputation",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "registeredAgents",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "string", "name": "endpoint", "type": "string"},
            {"internalType": "string[]", "name": "capabilities", "type": "string[]"}
        ],
        "name": "registerAgent",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "string", "name": "taskType", "type": "string"},
            {"internalType": "string", "name": "ipfsHash", "type": "string"},
            {"internalType": "uint256", "name": "reward", "type": "uint256"}
        ],
        "name": "createTask",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
]

# Standard ERC20 ABI subset (PYUSD, USDC)
ERC20_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "address", "name": "spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "spender", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
]

_PAYMENT_COMPONENTS = [
    {"internalType": "address", "name": "payer", "type": "address"},
    {"internalType": "address", "name": "recipient", "type": "address"},
    {"internalType": "uint256", "name": "amount", "type": "uint256"},
    {"internalType": "uint32", "name": "sourceChainId", "type": "uint32"},
    {"internalType": "uint32", "name": "destinationChainId", "type": "uint32"},
    {"internalType": "uint256", "name": "timestamp", "type": "uint256"},
    {"internalType": "uint8", "name": "status", "type": "uint8"},
    {"internalType": "bytes32", "name": "serviceId", "type": "bytes32"},
    {"internalType": "bytes", "name": "metadata", "type": "bytes"},
]

PAYMENT_FIELDS = [c["name"] for c in _PAYMENT_COMPONENTS]

# PYUSD cross-chain payment orchestrator ABI
ORCHESTRATOR_ABI = [
    {
        "inputs": [{"internalType": "bytes32", "name": "paymentId", "type": "bytes32"}],
        "name": "getPayment",
        "outputs": [
            {"components": _PAYMENT_COMPONENTS, "internalType": "struct Payment", "name": "", "type": "tuple"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "account", "type": "address"},
            {"internalType": "uint32", "name": "chainId", "type": "uint32"}
        ],
        "name": "getChainBalance",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "", "type": "address"}],
        "name": "serviceAccounts",
        "outputs": [
            {"internalType": "uint256", "name": "balance", "type": "uint256"},
            {"internalType": "uint256", "name": "totalSpent", "type": "uint256"},
            {"internalType": "uint256", "name": "totalReceived", "type": "uint256"},
            {"internalType": "bool", "name": "isActive", "type": "bool"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
]

# Function signatures of write calls whose calldata is prepared off-chain
INITIATE_PAYMENT_SIGNATURE = "initiatePayment(address,uint256,uint32,bytes32,bytes,bytes)"
APPROVE_SIGNATURE = "approve(address,uint256)"
REGISTER_AGENT_SIGNATURE = "registerAgent(string,string[])"
CREATE_TASK_SIGNATURE = "createTask(string,string,uint256)"
