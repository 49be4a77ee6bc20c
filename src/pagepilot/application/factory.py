"""
Application Layer - Orchestrator Factory

Dependency injection factory that builds AgentOrchestrator instances from
YAML configuration profiles (dev/prod).

Key Responsibilities:
- Load configuration profiles from the configs directory
- Build settings dataclasses from profile sections
- Instantiate infrastructure adapters (LiteLLM chat, plan tracker, tab
  session, tier resolver)
- Wrap the caller's tool port in an approval gate
- Share one SubagentManager across an orchestrator tree whose children are
  built by this same factory at increasing depth
"""

from functools import partial
from pathlib import Path
from typing import Any

import structlog
import yaml

from pagepilot.core.domain.approval_gate import ApprovalCallback, ApprovalGate, SecurityTier
from pagepilot.core.domain.call_kinds import DEFAULT_NAVIGATION_PREFIXES, CallClassifier
from pagepilot.core.domain.context_budget import ContextBudgeter, ContextBudgetSettings
from pagepilot.core.domain.errors import ProfileError
from pagepilot.core.domain.events import EventType, OrchestratorEvent
from pagepilot.core.domain.orchestrator import (
    AgentOrchestrator,
    OrchestratorDeps,
    OrchestratorSettings,
)
from pagepilot.core.domain.subagents import SubagentManager, SubagentSettings
from pagepilot.core.interfaces.chat import ChatServiceProtocol
from pagepilot.core.interfaces.rescan import NavigationRescanProtocol
from pagepilot.core.interfaces.tools import ToolExecutionProtocol
from pagepilot.core.prompts.orchestrator_prompts import build_chat_config
from pagepilot.infrastructure.llm.litellm_chat import LiteLLMChatService, RetryPolicy
from pagepilot.infrastructure.planning.plan_tracker import PlanTracker
from pagepilot.infrastructure.session.tab_session import InMemoryTabSession
from pagepilot.infrastructure.tools.tier_resolver import TierResolver

PROFILE_SECTIONS = ("orchestrator", "subagents", "approval", "context", "llm", "navigation")


def _close_plan_on_answer(planning: PlanTracker, event: OrchestratorEvent) -> None:
    if event.type == EventType.AI_RESPONSE:
        planning.mark_remaining_steps_done()


class OrchestratorFactory:
    """
    Factory for creating orchestrators with dependency injection.

    The tool port, page rescanner and approval callback belong to the host
    (browser extension, test harness); everything else is built here from
    the profile.
    """

    def __init__(self, config_dir: str = "configs"):
        """
        Args:
            config_dir: Path to directory containing profile YAML files
        """
        self.config_dir = Path(config_dir)
        self.logger = structlog.get_logger().bind(component="orchestrator_factory")

    def create_orchestrator(
        self,
        tool_port: ToolExecutionProtocol,
        rescanner: NavigationRescanProtocol,
        approval_callback: ApprovalCallback,
        profile: str = "dev",
        depth: int = 0,
    ) -> AgentOrchestrator:
        """
        Create an orchestrator for a configuration profile.

        Args:
            tool_port: Host tool execution port (wrapped in an approval gate)
            rescanner: Re-reads page context and tools after navigation
            approval_callback: Asks the user to approve gated tool calls
            profile: Profile name (dev/prod)
            depth: Recursion depth of the orchestrator being built

        Returns:
            AgentOrchestrator wired with a subagent manager that builds its
            children through this factory.

        Raises:
            FileNotFoundError: If the profile YAML does not exist
            ProfileError: If the profile is not a valid mapping
        """
        config = self.load_profile(profile)

        self.logger.info(
            "creating_orchestrator",
            profile=profile,
            depth=depth,
            model=config.get("llm", {}).get("model"),
        )

        gate = self._create_approval_gate(tool_port, approval_callback, config)

        manager: SubagentManager | None = None

        def agent_factory(child_depth: int) -> AgentOrchestrator:
            return self._build_orchestrator(config, gate, rescanner, manager, child_depth)

        manager = SubagentManager(agent_factory, self._subagent_settings(config))
        return self._build_orchestrator(config, gate, rescanner, manager, depth)

    def _build_orchestrator(
        self,
        config: dict[str, Any],
        tool_port: ToolExecutionProtocol,
        rescanner: NavigationRescanProtocol,
        manager: SubagentManager | None,
        depth: int,
    ) -> AgentOrchestrator:
        """Build one orchestrator. Each gets its own planning, session and budget state."""
        llm_config = config.get("llm", {})
        budgeter = ContextBudgeter(self._context_settings(config))

        # Children spawn at depth + 1, which the manager rejects at max_depth.
        include_delegation = manager is not None and depth + 1 < manager.settings.max_depth
        build_config = partial(
            build_chat_config,
            include_delegation=include_delegation,
            temperature=llm_config.get("temperature"),
            max_tokens=llm_config.get("max_tokens"),
        )

        planning = PlanTracker()

        deps = OrchestratorDeps(
            tool_port=tool_port,
            planning_port=planning,
            chat_factory=partial(self._create_chat, llm_config, budgeter),
            build_config=build_config,
            rescanner=rescanner,
            context_budgeter=budgeter,
            tab_session=InMemoryTabSession(),
            subagent_port=manager,
            classifier=self._create_classifier(config),
            depth=depth,
            settings=self._orchestrator_settings(config),
        )
        orchestrator = AgentOrchestrator(deps)
        orchestrator.on_event(partial(_close_plan_on_answer, planning))
        return orchestrator

    def load_profile(self, profile: str) -> dict[str, Any]:
        """
        Load configuration profile from YAML file.

        Args:
            profile: Profile name (dev/prod)

        Returns:
            Configuration dictionary (missing sections are empty dicts)

        Raises:
            FileNotFoundError: If profile YAML not found
            ProfileError: If the YAML is not a mapping of sections
        """
        profile_path = self.config_dir / f"{profile}.yaml"

        if not profile_path.exists():
            self.logger.error(
                "profile_not_found",
                profile=profile,
                path=str(profile_path),
                hint="Ensure profile YAML exists in configs directory",
            )
            raise FileNotFoundError(f"Profile not found: {profile_path}")

        with open(profile_path) as f:
            try:
                config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ProfileError(f"Invalid YAML in profile {profile_path}: {e}") from e

        if not isinstance(config, dict):
            raise ProfileError(f"Profile {profile_path} must be a mapping")

        for section in PROFILE_SECTIONS:
            value = config.setdefault(section, {})
            if value is None:
                config[section] = {}
            elif not isinstance(value, dict):
                raise ProfileError(f"Section '{section}' in {profile_path} must be a mapping")

        self.logger.debug("profile_loaded", profile=profile, config_keys=list(config.keys()))
        return config

    def _create_approval_gate(
        self,
        tool_port: ToolExecutionProtocol,
        approval_callback: ApprovalCallback,
        config: dict[str, Any],
    ) -> ApprovalGate:
        approval = config["approval"]
        resolver = TierResolver(
            prefix_tiers=approval.get("prefix_tiers"),
            default_tier=approval.get("default_tier", SecurityTier.SAFE),
        )
        gate = ApprovalGate(
            tool_port,
            resolver,
            approval_callback,
            approval_threshold=approval.get("threshold", SecurityTier.MUTATION),
        )
        gate.set_auto_approve(bool(approval.get("auto_approve", False)))
        return gate

    def _create_chat(
        self,
        llm_config: dict[str, Any],
        budgeter: ContextBudgeter,
        history: list[dict[str, Any]],
    ) -> ChatServiceProtocol:
        retry_config = llm_config.get("retry_policy", {})
        defaults = RetryPolicy()
        retry_policy = RetryPolicy(
            max_attempts=retry_config.get("max_attempts", defaults.max_attempts),
            backoff_multiplier=retry_config.get("backoff_multiplier", defaults.backoff_multiplier),
            timeout=retry_config.get("timeout", defaults.timeout),
            retry_on_errors=retry_config.get("retry_on_errors", defaults.retry_on_errors),
        )
        return LiteLLMChatService(
            model=llm_config.get("model", "gpt-4.1-mini"),
            history=history,
            context_budgeter=budgeter,
            retry_policy=retry_policy,
            max_tool_output_chars=llm_config.get("max_tool_output_chars", 20000),
        )

    def _create_classifier(self, config: dict[str, Any]) -> CallClassifier:
        prefixes = config["navigation"].get("prefixes")
        if not prefixes:
            return CallClassifier(navigation_prefixes=DEFAULT_NAVIGATION_PREFIXES)
        return CallClassifier(navigation_prefixes=tuple(prefixes))

    def _orchestrator_settings(self, config: dict[str, Any]) -> OrchestratorSettings:
        section = config["orchestrator"]
        defaults = OrchestratorSettings()
        return OrchestratorSettings(
            max_iterations=section.get("max_iterations", defaults.max_iterations),
            loop_timeout=float(section.get("loop_timeout", defaults.loop_timeout)),
            history_max_messages=section.get("history_max_messages", defaults.history_max_messages),
        )

    def _subagent_settings(self, config: dict[str, Any]) -> SubagentSettings:
        section = config["subagents"]
        defaults = SubagentSettings()
        return SubagentSettings(
            max_depth=section.get("max_depth", defaults.max_depth),
            max_concurrent=section.get("max_concurrent", defaults.max_concurrent),
            default_timeout=float(section.get("default_timeout", defaults.default_timeout)),
        )

    def _context_settings(self, config: dict[str, Any]) -> ContextBudgetSettings:
        section = config["context"]
        defaults = ContextBudgetSettings()
        return ContextBudgetSettings(
            offload_threshold=section.get("offload_threshold", defaults.offload_threshold),
            offload_preview_chars=section.get(
                "offload_preview_chars", defaults.offload_preview_chars
            ),
        )
