"""
HiveMindCoordinator contract reads.

Agent and task lookups and swarm statistics come straight from the deployed
coordinator contract. Registration and task creation are prepared here but
signed and sent by the caller's wallet, so those methods only return the
contract call to make.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timezone
from typing import Any

from hivemind.blockchain.client import (
    ChainClient,
    encode_function_call,
    format_ether,
    from_units,
    get_chain_client,
    to_checksum,
    to_units,
)
from hivemind.blockchain.networks import NetworkConfig, get_network
from hivemind.contracts.abis import (
    AGENT_FIELDS,
    COORDINATOR_ABI,
    CREATE_TASK_SIGNATURE,
    REGISTER_AGENT_SIGNATURE,
    TASK_FIELDS,
)
from hivemind.core.constants import USDC_DECIMALS
from hivemind.core.errors import AgentNotFoundError, ChainReadError, SafeException

logger = logging.getLogger(__name__)

TASK_STATUSES = ["Pending", "Assigned", "InProgress", "Completed", "Failed", "Disputed"]
COMPLETED_STATUS = 3
RECENT_TASKS_LIST = 10
RECENT_TASKS_STATS = 20
TOP_AGENTS = 5
STATUS_AGENT_SCAN = 20
REGISTER_GAS = "200000"
CREATE_TASK_GAS = "300000"
DEFAULT_PLATFORM_FEE = 5


class TaskNotFoundError(SafeException):
    status_code = 404


def iso_from_seconds(seconds: int) -> str:
    """Unix seconds as an ISO-8601 UTC timestamp with millisecond precision."""
    moment = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def task_status_name(status: int) -> str:
    status = int(status)
    return TASK_STATUSES[status] if 0 <= status < len(TASK_STATUSES) else "Unknown"


class CoordinatorService:
    """Service for reading the coordinator contract on one network."""

    def __init__(self, network: str = "localhost", client_factory=get_chain_client):
        """
        Initialize the coordinator service.

        Args:
            network: Network name from the chain registry
            client_factory: Returns a ChainClient for an RPC URL

        Raises:
            InvalidNetworkError: If the network is unknown
        """
        self.network: NetworkConfig = get_network(network)
        self.chain: ChainClient = client_factory(self.network.rpc_url)
        self.address = self.network.contract("coordinator")

    async def _call(self, fn_name: str, *args: Any) -> Any:
        return await self.chain.call(self.address, COORDINATOR_ABI, fn_name, *args)

    async def _agent(self, address: str) -> dict[str, Any]:
        return dict(zip(AGENT_FIELDS, await self._call("getAgent", to_checksum(address))))

    async def _task(self, task_id: int) -> dict[str, Any]:
        return dict(zip(TASK_FIELDS, await self._call("getTask", int(task_id))))

    async def prepare_agent_registration(
        self,
        endpoint: str,
        capabilities: list[str],
        wallet_address: str,
    ) -> dict[str, Any]:
        """
        Prepare a ``registerAgent`` call, unless the wallet is already registered.

        Args:
            endpoint: Agent service endpoint
            capabilities: Agent capabilities
            wallet_address: Agent wallet

        Returns:
            Prepared call, or ``success: False`` with the existing agent
        """
        try:
            agent = await self._agent(wallet_address)
        except ChainReadError:
            # unregistered wallets revert on some deployments
            agent = None

        if agent and agent["active"]:
            return {
                "success": False,
                "error": "Agent already registered",
                "agent": {
                    "wallet": agent["wallet"],
                    "endpoint": agent["endpoint"],
                    "capabilities": list(agent["capabilities"]),
                    "reputation": str(agent["reputation"]),
                    "earnings": format_ether(agent["earnings"]),
                    "tasksCompleted": str(agent["tasksCompleted"]),
                    "active": agent["active"],
                },
            }

        logger.info(f"Prepared agent registration for {wallet_address} on {self.network.name}")
        return {
            "success": True,
            "message": "Agent registration prepared",
            "data": {
                "contractAddress": self.address,
                "method": "registerAgent",
                "params": [endpoint, capabilities],
                "calldata": encode_function_call(
                    REGISTER_AGENT_SIGNATURE, ["string", "string[]"], [endpoint, list(capabilities)]
                ),
                "estimatedGas": REGISTER_GAS,
                "network": self.network.name,
            },
        }

    async def get_agent(self, address: str) -> dict[str, Any]:
        """
        Get a registered agent and its task ids.

        Raises:
            AgentNotFoundError: If the agent is not active
            ChainReadError: If the contract cannot be read
        """
        agent = await self._agent(address)
        if not agent["active"]:
            raise AgentNotFoundError("Agent not found")

        task_ids = await self._call("getAgentTasks", to_checksum(address))
        return {
            "wallet": agent["wallet"],
            "endpoint": agent["endpoint"],
            "capabilities": list(agent["capabilities"]),
            "reputation": str(agent["reputation"]),
            "earnings": from_units(agent["earnings"], USDC_DECIMALS),
            "tasksCompleted": str(agent["tasksCompleted"]),
            "active": agent["active"],
            "registeredAt": iso_from_seconds(agent["registeredAt"]),
            "taskIds": [str(task_id) for task_id in task_ids],
            "network": self.network.name,
        }

    def prepare_task(
        self,
        task_type: str,
        description: str,
        reward: Any,
        requirements: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Prepare a ``createTask`` call and the reward approval it needs.

        The task details would normally be pinned to IPFS; a placeholder hash
        is generated instead.
        """
        task_details = {
            "taskType": task_type,
            "description": description,
            "requirements": requirements or [],
            "timestamp": int(datetime.now(timezone.utc).timestamp() * 1000),
        }
        ipfs_hash = "Qm" + secrets.token_hex(23)
        reward_units = to_units(reward, USDC_DECIMALS)

        return {
            "success": True,
            "message": "Task creation prepared",
            "data": {
                "contractAddress": self.address,
                "method": "createTask",
                "params": [task_type, ipfs_hash, str(reward_units)],
                "calldata": encode_function_call(
                    CREATE_TASK_SIGNATURE, ["string", "string", "uint256"], [task_type, ipfs_hash, reward_units]
                ),
                "taskDetails": task_details,
                "ipfsHash": ipfs_hash,
                "estimatedGas": CREATE_TASK_GAS,
                "network": self.network.name,
                "requiredApproval": {
                    "token": self.network.contract("payment_token"),
                    "amount": str(reward_units),
                    "spender": self.address,
                },
            },
        }

    async def get_task(self, task_id: int) -> dict[str, Any]:
        """
        Get a single task.

        Raises:
            TaskNotFoundError: If the contract returns an empty task
        """
        task = await self._task(task_id)
        if int(task["id"]) == 0:
            raise TaskNotFoundError("Task not found")

        completed_at = int(task["completedAt"])
        return {
            "id": str(task["id"]),
            "requester": task["requester"],
            "taskType": task["taskType"],
            "ipfsHash": task["ipfsHash"],
            "reward": from_units(task["reward"], USDC_DECIMALS),
            "assignedAgent": task["assignedAgent"],
            "status": task_status_name(task["status"]),
            "createdAt": iso_from_seconds(task["createdAt"]),
            "completedAt": iso_from_seconds(completed_at) if completed_at > 0 else None,
            "network": self.network.name,
        }

    async def _recent_tasks(self, count: int, limit: int) -> list[dict[str, Any]]:
        """Newest ``limit`` tasks, skipping ids that fail to read."""
        tasks = []
        for task_id in range(count, max(1, count - limit + 1) - 1, -1):
            try:
                task = await self._task(task_id)
            except ChainReadError as e:
                logger.debug(f"Skipping task {task_id}: {e}")
                continue
            if int(task["id"]) != 0:
                tasks.append(task)
        return tasks

    async def list_tasks(self) -> dict[str, Any]:
        """Task count and the last ten tasks."""
        count = int(await self._call("getTaskCount"))
        tasks = [
            {
                "id": str(task["id"]),
                "requester": task["requester"],
                "taskType": task["taskType"],
                "reward": from_units(task["reward"], USDC_DECIMALS),
                "status": task_status_name(task["status"]),
                "assignedAgent": task["assignedAgent"],
                "createdAt": iso_from_seconds(task["createdAt"]),
            }
            for task in await self._recent_tasks(count, RECENT_TASKS_LIST)
        ]
        return {"totalTasks": str(count), "tasks": tasks, "network": self.network.name}

    async def swarm_stats(self) -> dict[str, Any]:
        """
        Aggregate swarm statistics from the contract.

        Returns:
            Counts, fee, earnings, recent activity and top agents

        Raises:
            ChainReadError: If the core counters cannot be read
        """
        agent_count, task_count, platform_fee, total_earnings, min_reputation = await asyncio.gather(
            self._call("getAgentCount"),
            self._call("getTaskCount"),
            self._call("platformFee"),
            self._call("totalEarnings"),
            self._call("minReputation"),
        )
        block = await self.chain.get_latest_block()

        active_tasks = []
        completed_tasks = []
        for task in await self._recent_tasks(int(task_count), RECENT_TASKS_STATS):
            entry = {
                "id": str(task["id"]),
                "status": int(task["status"]),
                "reward": from_units(task["reward"], USDC_DECIMALS),
            }
            if entry["status"] == COMPLETED_STATUS:
                completed_tasks.append(entry)
            elif entry["status"] < COMPLETED_STATUS:
                active_tasks.append(entry)

        top_agents = []
        for index in range(min(TOP_AGENTS, int(agent_count))):
            try:
                address = await self._call("registeredAgents", index)
                agent = await self._agent(address)
            except (ChainReadError, ValueError) as e:
                logger.debug(f"Skipping registered agent {index}: {e}")
                continue
            if agent["active"]:
                top_agents.append({
                    "address": address,
                    "reputation": str(agent["reputation"]),
                    "tasksCompleted": str(agent["tasksCompleted"]),
                    "earnings": from_units(agent["earnings"], USDC_DECIMALS),
                })
        top_agents.sort(key=lambda a: int(a["reputation"]), reverse=True)

        earnings = from_units(total_earnings, USDC_DECIMALS)
        tracked = len(completed_tasks) + len(active_tasks)
        success_rate = f"{len(completed_tasks) / tracked * 100:.1f}%" if completed_tasks else "0%"
        avg_reward = f"{float(earnings) / int(task_count):.2f}" if int(task_count) > 0 else "0"

        return {
            "network": self.network.name,
            "contractAddress": self.address,
            "blockNumber": str(block["number"]),
            "timestamp": block["timestamp"],
            "stats": {
                "totalAgents": str(agent_count),
                "totalTasks": str(task_count),
                "activeTasks": len(active_tasks),
                "completedTasks": len(completed_tasks),
                "platformFee": f"{int(platform_fee) / 100:.2f}%",
                "totalEarnings": f"{earnings} USDC",
                "minReputation": str(min_reputation),
            },
            "metrics": {
                "agentsOnline": len(top_agents),
                "successRate": success_rate,
                "totalVolume": earnings,
                "avgTaskReward": avg_reward,
            },
            "topAgents": top_agents[:TOP_AGENTS],
            "recentActivity": {
                "activeTasks": active_tasks[:5],
                "completedTasks": completed_tasks[:5],
            },
        }

    async def _counter(self, fn_name: str, default: int) -> int:
        try:
            return int(await self._call(fn_name))
        except ChainReadError as e:
            logger.info(f"{fn_name} unavailable on {self.network.name}, using {default}: {e}")
            return default

    async def swarm_status(self) -> dict[str, Any]:
        """
        Live swarm status: registered agents plus task and gas metrics.

        Counters that the deployed contract does not expose fall back to
        defaults instead of failing the request.
        """
        agent_count = await self._counter("getAgentCount", 0)
        task_count = await self._counter("getTaskCount", 0)
        platform_fee = await self._counter("platformFee", DEFAULT_PLATFORM_FEE)
        total_earnings = await self._counter("totalEarnings", 0)

        agents = []
        for index in range(min(agent_count, STATUS_AGENT_SCAN)):
            try:
                address = await self._call("registeredAgents", index)
                agent = await self._agent(address)
            except (ChainReadError, ValueError) as e:
                logger.debug(f"Failed to fetch agent {index}: {e}")
                continue
            if not agent["active"]:
                continue
            tasks_completed = int(agent["tasksCompleted"])
            agents.append({
                "id": f"agent-{index + 1}",
                "type": "worker",
                "status": "active" if tasks_completed > 0 else "idle",
                "capabilities": list(agent["capabilities"]),
                "tasks": tasks_completed,
                "earnings": float(from_units(agent["earnings"], USDC_DECIMALS)),
                "lastSeen": iso_from_seconds(agent["registeredAt"]),
                "endpoint": agent["endpoint"],
                "walletAddress": agent["wallet"],
            })

        completed = 0
        in_progress = 0
        for task in await self._recent_tasks(task_count, RECENT_TASKS_STATS):
            status = int(task["status"])
            if status == COMPLETED_STATUS:
                completed += 1
            elif 0 < status < COMPLETED_STATUS:
                in_progress += 1

        block = await self.chain.get_latest_block()
        gas_price = await self.chain.get_gas_price()
        total_agent_tasks = sum(a["tasks"] for a in agents)

        metrics = {
            "totalAgents": agent_count,
            "activeAgents": sum(1 for a in agents if a["status"] == "active"),
            "idleAgents": sum(1 for a in agents if a["status"] == "idle"),
            "tasksCompleted": completed,
            "tasksInProgress": in_progress,
            "totalEarnings": float(from_units(total_earnings, USDC_DECIMALS)),
            "successRate": completed / total_agent_tasks * 100 if total_agent_tasks > 0 else 0,
            "platformFee": platform_fee,
            "gasSpent": float(format_ether(task_count * 200_000 * gas_price)),
        }

        return {
            "metrics": metrics,
            "agents": agents[:10],
            "network": self.network.name,
            "contractAddress": self.address,
            "blockNumber": block["number"],
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

