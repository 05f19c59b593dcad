"""
In-process swarm coordinator.

The coordinator keeps the swarm's agents, tasks and shared memory in
memory, assigns each task to the best-suited active agent and talks to the
agents over HTTP through their swarm message endpoint.
"""

import asyncio
import logging
import math
import secrets
import time
from dataclasses import dataclass, field
from typing import Any

from httpx import AsyncClient

from hivemind.core.config import settings
from hivemind.core.constants import SWARM_DEFAULT_TASK_REWARD, SWARM_MAX_REPUTATION
from hivemind.core.errors import SafeException, SwarmError

logger = logging.getLogger(__name__)

SWARM_MESSAGE_PATH = "/api/v1/node/swarm/message"
QUEEN_ID = "queen"
DEFAULT_CONSENSUS_TIMEOUT_SECONDS = 60.0


class SwarmActionError(SafeException):
    status_code = 400


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{_now_ms()}-{secrets.token_hex(3)}"


@dataclass
class SwarmAgent:
    id: str
    type: str
    endpoint: str
    capabilities: list[str] = field(default_factory=list)
    status: str = "active"
    tasks: list[str] = field(default_factory=list)
    earnings: float = 0.0
    reputation: float = 1.0
    joined_at: int = field(default_factory=_now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "capabilities": list(self.capabilities),
            "endpoint": self.endpoint,
            "status": self.status,
            "tasks": list(self.tasks),
            "earnings": self.earnings,
            "reputation": self.reputation,
            "joinedAt": self.joined_at,
        }


@dataclass
class SwarmTask:
    id: str
    type: str
    description: str
    required_capabilities: list[str] = field(default_factory=list)
    priority: str = "normal"
    reward: float = SWARM_DEFAULT_TASK_REWARD
    status: str = "pending"
    assigned_to: str | None = None
    created_at: int = field(default_factory=_now_ms)
    completed_at: int | None = None
    result: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "requiredCapabilities": list(self.required_capabilities),
            "priority": self.priority,
            "reward": self.reward,
            "status": self.status,
            "assignedTo": self.assigned_to,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "result": self.result,
        }


class SwarmCoordinator:
    """Queen coordinator for a swarm of agent nodes."""

    def __init__(
        self,
        swarm_id: str | None = None,
        topology: str | None = None,
        consensus_threshold: float | None = None,
        max_agents: int | None = None,
        task_timeout_seconds: int | None = None,
        http_client: AsyncClient | None = None,
    ):
        self.swarm_id = swarm_id or f"swarm-{_now_ms()}"
        self.topology = topology or settings.swarm_topology
        self.consensus_threshold = consensus_threshold or settings.swarm_consensus_threshold
        self.max_agents = max_agents or settings.swarm_max_agents
        self.task_timeout_seconds = task_timeout_seconds or settings.swarm_task_timeout_seconds
        self.client = http_client or AsyncClient(timeout=10.0)

        self.agents: dict[str, SwarmAgent] = {}
        self.tasks: dict[str, SwarmTask] = {}
        self.shared_memory: dict[str, Any] = {}

    async def close(self) -> None:
        await self.client.aclose()

    async def _send(self, agent: SwarmAgent, message: dict[str, Any], priority: str = "normal") -> dict[str, Any]:
        """POST a message to an agent's swarm endpoint and return its JSON reply."""
        response = await self.client.post(
            f"{agent.endpoint.rstrip('/')}{SWARM_MESSAGE_PATH}",
            json={"fromAgent": QUEEN_ID, "message": message, "priority": priority},
        )
        response.raise_for_status()
        return response.json() if response.content else {}

    def _active_agents(self) -> list[SwarmAgent]:
        return [agent for agent in self.agents.values() if agent.status == "active"]

    async def register_agent(
        self,
        agent_type: str,
        endpoint: str,
        capabilities: list[str] | None = None,
        agent_id: str | None = None,
    ) -> SwarmAgent:
        """
        Add an agent to the swarm and hand it any waiting tasks.

        Raises:
            SwarmError: If the swarm is full
        """
        agent_id = agent_id or _new_id("agent")
        if agent_id not in self.agents and len(self.agents) >= self.max_agents:
            raise SwarmError("Swarm is at capacity", {"maxAgents": self.max_agents})

        agent = SwarmAgent(
            id=agent_id,
            type=agent_type,
            endpoint=endpoint,
            capabilities=list(capabilities or []),
        )
        self.agents[agent.id] = agent
        logger.info(f"Agent {agent.id} joined swarm {self.swarm_id}")

        await self.redistribute_tasks()
        return agent

    def find_best_agent(self, task: SwarmTask, exclude: str | None = None) -> SwarmAgent | None:
        """Active agent with every required capability and the best reputation per workload."""
        best_agent = None
        best_score = 0.0
        for agent in self._active_agents():
            if agent.id == exclude:
                continue
            if not all(cap in agent.capabilities for cap in task.required_capabilities):
                continue
            score = agent.reputation / (len(agent.tasks) + 1)
            if score > best_score:
                best_score = score
                best_agent = agent
        return best_agent

    async def create_task(
        self,
        task_type: str,
        description: str,
        required_capabilities: list[str] | None = None,
        priority: str = "normal",
        reward: float | None = None,
    ) -> SwarmTask:
        """Create a task and assign it, or queue it when no agent qualifies."""
        task = SwarmTask(
            id=_new_id("task"),
            type=task_type,
            description=description,
            required_capabilities=list(required_capabilities or []),
            priority=priority or "normal",
            reward=reward if reward is not None else SWARM_DEFAULT_TASK_REWARD,
        )
        self.tasks[task.id] = task

        agent = self.find_best_agent(task)
        if agent is not None:
            await self.assign_task(task, agent)
        else:
            logger.warning(f"No suitable agent for task {task.id}")
            task.status = "queued"
        return task

    async def assign_task(self, task: SwarmTask, agent: SwarmAgent) -> None:
        """Assign a task and notify the agent; a failed notification fails the task."""
        task.assigned_to = agent.id
        task.status = "assigned"
        agent.tasks.append(task.id)

        try:
            await self._send(agent, {"type": "task-request", "task": task.to_dict()}, task.priority)
            logger.info(f"Task {task.id} assigned to {agent.id}")
        except Exception as e:
            logger.error(f"Failed to assign task {task.id} to {agent.id}: {e}")
            task.status = "failed"
            agent.tasks = [t for t in agent.tasks if t != task.id]

    async def reassign_task(self, task: SwarmTask) -> None:
        previous = task.assigned_to
        task.assigned_to = None
        task.status = "pending"

        if previous and previous in self.agents:
            agent = self.agents[previous]
            agent.reputation *= 0.9
            agent.tasks = [t for t in agent.tasks if t != task.id]

        new_agent = self.find_best_agent(task, exclude=previous)
        if new_agent is not None:
            await self.assign_task(task, new_agent)

    async def complete_task(self, task_id: str, result: Any) -> SwarmTask:
        """
        Record a task result, pay the agent and tell the swarm.

        Raises:
            SwarmError: If the task is unknown
        """
        task = self.tasks.get(task_id)
        if task is None:
            raise SwarmError("Task not found", {"taskId": task_id})

        task.status = "completed"
        task.result = result
        task.completed_at = _now_ms()

        agent = self.agents.get(task.assigned_to or "")
        if agent is not None:
            agent.earnings += task.reward
            agent.reputation = min(agent.reputation * 1.1, SWARM_MAX_REPUTATION)
            agent.tasks = [t for t in agent.tasks if t != task_id]
            logger.info(f"Agent {agent.id} earned {task.reward} USDC")

        self.shared_memory[f"task-result-{task_id}"] = result
        await self.broadcast({"type": "task-completed", "taskId": task_id, "result": result})
        return task

    async def sweep_timeouts(self, now_ms: int | None = None) -> list[str]:
        """
        Time out assigned tasks older than the task timeout and reassign them.

        Returns:
            Ids of the tasks that timed out
        """
        now_ms = now_ms if now_ms is not None else _now_ms()
        timed_out = []
        for task in list(self.tasks.values()):
            if task.status != "assigned":
                continue
            if task.assigned_to not in self.agents:
                task.status = "failed"
                continue
            if now_ms - task.created_at > self.task_timeout_seconds * 1000:
                task.status = "timeout"
                timed_out.append(task.id)
                logger.warning(f"Task {task.id} timed out on {task.assigned_to}")
                await self.reassign_task(task)
        return timed_out

    async def run_monitor(self, interval_seconds: float) -> None:
        """Sweep for timed-out tasks until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep_timeouts()
            except Exception as e:
                logger.error(f"Swarm monitor sweep failed: {e}")

    async def initiate_consensus(
        self,
        topic: str,
        choices: list[str] | None = None,
        timeout_seconds: float = DEFAULT_CONSENSUS_TIMEOUT_SECONDS,
    ) -> dict[str, Any]:
        """
        Ask every active agent to vote and tally the result.

        Votes that arrive after the deadline are ignored.
        """
        proposal = {
            "id": _new_id("proposal"),
            "topic": topic,
            "options": choices or ["yes", "no"],
            "deadline": _now_ms() + int(timeout_seconds * 1000),
            "requiredVotes": math.ceil(len(self.agents) * self.consensus_threshold),
        }
        votes: dict[str, Any] = {}

        async def request_vote(agent: SwarmAgent) -> None:
            try:
                reply = await self._send(agent, {"type": "consensus-vote", "proposal": proposal}, "high")
                # nodes wrap their answer in "response"
                vote = (reply.get("response") or reply).get("vote")
            except Exception as e:
                logger.error(f"Agent {agent.id} vote failed: {e}")
                return
            if isinstance(vote, str):
                votes[agent.id] = vote

        pending = [asyncio.create_task(request_vote(agent)) for agent in self._active_agents()]
        if pending:
            _, not_done = await asyncio.wait(pending, timeout=timeout_seconds)
            for straggler in not_done:
                straggler.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)

        counts: dict[str, int] = {}
        for vote in votes.values():
            counts[vote] = counts.get(vote, 0) + 1

        winner = None
        max_votes = 0
        for option, count in counts.items():
            if count > max_votes:
                max_votes = count
                winner = option

        logger.info(f"Consensus result for {topic}: {winner} ({max_votes}/{len(votes)} votes)")
        return {
            "proposal": proposal["id"],
            "topic": topic,
            "winner": winner,
            "votes": counts,
            "totalVotes": len(votes),
            "consensus": max_votes >= proposal["requiredVotes"],
        }

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to every active agent, ignoring individual failures."""

        async def deliver(agent: SwarmAgent) -> None:
            try:
                await self._send(agent, message, message.get("priority", "normal"))
            except Exception as e:
                logger.error(f"Broadcast to {agent.id} failed: {e}")

        await asyncio.gather(*(deliver(agent) for agent in self._active_agents()))

    async def share_knowledge(self, pattern: str, data: Any) -> dict[str, Any]:
        knowledge = {"pattern": pattern, "data": data, "sharedBy": QUEEN_ID, "timestamp": _now_ms()}
        self.shared_memory[f"knowledge-{pattern}"] = knowledge
        await self.broadcast({"type": "knowledge-share", "pattern": pattern, "data": data})
        logger.info(f"Shared knowledge pattern: {pattern}")
        return knowledge

    async def redistribute_tasks(self) -> None:
        """Assign pending and queued tasks to agents that can now take them."""
        for task in list(self.tasks.values()):
            if task.status not in ("pending", "queued"):
                continue
            agent = self.find_best_agent(task)
            if agent is not None:
                await self.assign_task(task, agent)

    async def control(self, action: str, agent_id: str | None = None) -> dict[str, Any]:
        """
        Pause or resume an agent, or restart task distribution.

        Raises:
            SwarmActionError: For unknown actions
        """
        timestamp = _now_ms()
        if action in ("pause", "resume"):
            agent = self.agents.get(agent_id or "")
            if agent is not None:
                agent.status = "paused" if action == "pause" else "active"
            if action == "resume":
                await self.redistribute_tasks()
            verb = "paused" if action == "pause" else "resumed"
            return {"success": True, "message": f"Agent {agent_id} {verb}", "timestamp": timestamp}

        if action == "restart":
            await self.redistribute_tasks()
            return {"success": True, "message": "Swarm restart initiated", "timestamp": timestamp}

        raise SwarmActionError("Invalid action")

    def statistics(self) -> dict[str, Any]:
        tasks = list(self.tasks.values())
        return {
            "swarmId": self.swarm_id,
            "topology": self.topology,
            "agents": {
                "total": len(self.agents),
                "active": len(self._active_agents()),
            },
            "tasks": {
                "total": len(tasks),
                "pending": sum(1 for t in tasks if t.status == "pending"),
                "assigned": sum(1 for t in tasks if t.status == "assigned"),
                "completed": sum(1 for t in tasks if t.status == "completed"),
            },
            "earnings": sum(agent.earnings for agent in self.agents.values()),
            "sharedMemory": len(self.shared_memory),
        }


_coordinator: SwarmCoordinator | None = None


def get_swarm_coordinator() -> SwarmCoordinator:
    """Process-wide coordinator used by the API and MCP tools."""
    global _coordinator
    if _coordinator is None:
        _coordinator = SwarmCoordinator()
    return _coordinator


async def close_swarm_coordinator() -> None:
    global _coordinator
    if _coordinator is not None:
        await _coordinator.close()
        _coordinator = None
