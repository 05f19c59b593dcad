"""
Tests for the coordinator contract service.

Contract reads go through a fake ChainClient whose ``call`` answers by
function name.
"""

import pytest

from hivemind.core.errors import AgentNotFoundError, ChainReadError, InvalidNetworkError
from hivemind.services.coordinator import (
    CoordinatorService,
    TaskNotFoundError,
    iso_from_seconds,
    task_status_name,
)

AGENT_A = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
AGENT_B = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"
REQUESTER = "0x90F79bf6EB2c4f870365E785982E1f101E93b906"
ZERO = "0x0000000000000000000000000000000000000000"
REGISTERED_AT = 1_700_000_000


def agent_tuple(wallet, reputation=100, earnings=2_500_000, tasks_completed=3, active=True):
    return (wallet, f"https://{wallet[-4:]}.test", ["analysis"], reputation, earnings, tasks_completed, active, REGISTERED_AT)


def task_tuple(task_id, status=0, reward=10_000_000, completed_at=0):
    return (task_id, REQUESTER, "analysis", "QmHash", reward, ZERO, status, REGISTERED_AT, completed_at)


class FakeCoordinator:
    """Answers coordinator view calls from in-memory state."""

    def __init__(self, agents=None, tasks=None, counters=None, missing=()):
        self.agents = {k.lower(): v for k, v in (agents or {}).items()}
        self.tasks = tasks or {}
        self.counters = counters or {}
        self.missing = set(missing)

    def __call__(self, address, abi, fn_name, *args):
        if fn_name in self.missing:
            raise ChainReadError(f"{fn_name} failed: execution reverted")
        if fn_name == "getAgent":
            agent = self.agents.get(args[0].lower())
            if agent is None:
                raise ChainReadError("getAgent failed: execution reverted")
            return agent
        if fn_name == "getAgentTasks":
            return [1, 2]
        if fn_name == "getTask":
            task = self.tasks.get(args[0])
            if isinstance(task, Exception):
                raise task
            return task or task_tuple(0)
        if fn_name == "registeredAgents":
            return self.agents[list(self.agents)[args[0]]][0]
        return self.counters[fn_name]


@pytest.fixture
def coordinator(client_factory):
    return CoordinatorService("localhost", client_factory)


class TestHelpers:
    def test_iso_from_seconds(self):
        assert iso_from_seconds(REGISTERED_AT) == "2023-11-14T22:13:20.000Z"

    def test_task_status_name(self):
        assert task_status_name(0) == "Pending"
        assert task_status_name(3) == "Completed"
        assert task_status_name(9) == "Unknown"

    def test_unknown_network(self, client_factory):
        with pytest.raises(InvalidNetworkError):
            CoordinatorService("solana", client_factory)


class TestAgents:
    """Test agent reads and registration preparation."""

    @pytest.mark.asyncio
    async def test_get_agent(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(agents={AGENT_A: agent_tuple(AGENT_A)})

        agent = await coordinator.get_agent(AGENT_A.lower())

        assert agent["wallet"] == AGENT_A
        assert agent["reputation"] == "100"
        assert agent["earnings"] == "2.5"
        assert agent["tasksCompleted"] == "3"
        assert agent["registeredAt"] == "2023-11-14T22:13:20.000Z"
        assert agent["taskIds"] == ["1", "2"]
        assert agent["network"] == "localhost"

    @pytest.mark.asyncio
    async def test_inactive_agent_not_found(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(agents={AGENT_A: agent_tuple(AGENT_A, active=False)})

        with pytest.raises(AgentNotFoundError):
            await coordinator.get_agent(AGENT_A)

    @pytest.mark.asyncio
    async def test_prepare_registration(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator()

        result = await coordinator.prepare_agent_registration("https://a.test", ["analysis"], AGENT_A)

        assert result["success"] is True
        data = result["data"]
        assert data["method"] == "registerAgent"
        assert data["contractAddress"] == "0x5FbDB2315678afecb367f032d93F642f64180aa3"
        assert data["params"] == ["https://a.test", ["analysis"]]
        assert data["calldata"].startswith("0x")
        assert data["estimatedGas"] == "200000"

    @pytest.mark.asyncio
    async def test_registration_of_existing_agent(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(agents={AGENT_A: agent_tuple(AGENT_A)})

        result = await coordinator.prepare_agent_registration("https://a.test", ["analysis"], AGENT_A)

        assert result["success"] is False
        assert result["error"] == "Agent already registered"
        assert result["agent"]["wallet"] == AGENT_A


class TestTasks:
    """Test task reads and creation preparation."""

    def test_prepare_task(self, coordinator):
        result = coordinator.prepare_task("analysis", "Analyze the market", "10", ["nlp"])

        data = result["data"]
        assert data["method"] == "createTask"
        assert data["params"][0] == "analysis"
        assert data["params"][2] == "10000000"
        assert data["ipfsHash"].startswith("Qm") and len(data["ipfsHash"]) == 48
        assert data["taskDetails"]["requirements"] == ["nlp"]
        assert data["requiredApproval"] == {
            "token": "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512",
            "amount": "10000000",
            "spender": "0x5FbDB2315678afecb367f032d93F642f64180aa3",
        }

    def test_prepare_task_rejects_bad_reward(self, coordinator):
        with pytest.raises(ValueError):
            coordinator.prepare_task("analysis", "x", "ten")

    @pytest.mark.asyncio
    async def test_get_task(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(
            tasks={7: task_tuple(7, status=3, completed_at=REGISTERED_AT + 60)}
        )

        task = await coordinator.get_task(7)

        assert task["id"] == "7"
        assert task["status"] == "Completed"
        assert task["reward"] == "10.0"
        assert task["completedAt"] == "2023-11-14T22:14:20.000Z"

    @pytest.mark.asyncio
    async def test_missing_task(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator()

        with pytest.raises(TaskNotFoundError):
            await coordinator.get_task(99)

    @pytest.mark.asyncio
    async def test_list_tasks_skips_unreadable(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(
            tasks={1: task_tuple(1), 2: ChainReadError("bad"), 3: task_tuple(3, status=1)},
            counters={"getTaskCount": 3},
        )

        result = await coordinator.list_tasks()

        assert result["totalTasks"] == "3"
        assert [t["id"] for t in result["tasks"]] == ["3", "1"]
        assert result["tasks"][0]["status"] == "Assigned"


class TestSwarmStatistics:
    """Test statistics aggregated from the contract."""

    @pytest.mark.asyncio
    async def test_swarm_stats(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(
            agents={
                AGENT_A: agent_tuple(AGENT_A, reputation=80),
                AGENT_B: agent_tuple(AGENT_B, reputation=120),
            },
            tasks={1: task_tuple(1, status=3), 2: task_tuple(2, status=0)},
            counters={
                "getAgentCount": 2,
                "getTaskCount": 2,
                "platformFee": 250,
                "totalEarnings": 20_000_000,
                "minReputation": 50,
            },
        )

        stats = await coordinator.swarm_stats()

        assert stats["stats"]["totalAgents"] == "2"
        assert stats["stats"]["platformFee"] == "2.50%"
        assert stats["stats"]["totalEarnings"] == "20.0 USDC"
        assert stats["stats"]["activeTasks"] == 1
        assert stats["stats"]["completedTasks"] == 1
        assert stats["metrics"]["successRate"] == "50.0%"
        assert stats["metrics"]["avgTaskReward"] == "10.00"
        assert [a["address"] for a in stats["topAgents"]] == [AGENT_B, AGENT_A]
        assert stats["blockNumber"] == "1234"

    @pytest.mark.asyncio
    async def test_swarm_stats_requires_counters(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(missing={"getAgentCount"})

        with pytest.raises(ChainReadError):
            await coordinator.swarm_stats()

    @pytest.mark.asyncio
    async def test_swarm_status_uses_defaults_for_missing_counters(self, coordinator, mock_chain):
        mock_chain.call.side_effect = FakeCoordinator(
            agents={AGENT_A: agent_tuple(AGENT_A, tasks_completed=0)},
            counters={"getAgentCount": 1, "getTaskCount": 0, "totalEarnings": 0},
            missing={"platformFee"},
        )

        status = await coordinator.swarm_status()

        assert status["metrics"]["platformFee"] == 5
        assert status["metrics"]["idleAgents"] == 1
        assert status["metrics"]["gasSpent"] == 0.0
        assert status["agents"][0]["id"] == "agent-1"
        assert status["agents"][0]["status"] == "idle"
        assert status["blockNumber"] == 1234
