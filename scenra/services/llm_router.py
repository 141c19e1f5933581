"""
Centralized LLM Router Service

Handles:
1. Model configuration loading from YAML
2. Hierarchy resolution (Agent > Group > Default)
3. Environment variable overrides for A/B testing
4. Model-specific parameter constraints (OpenAI reasoning models)

Usage:
    from scenra.services.llm_router import get_llm_router

    router = get_llm_router()
    request_kwargs = router.get_llm_kwargs("director")  # Ready for chat.completions.create
    model = router.get_model_for_agent("synthesis")  # Get model name only
"""

import os
import yaml
import logging
from typing import Dict, Optional, Any, List
from pathlib import Path

logger = logging.getLogger(__name__)

# Reasoning models reject sampling parameters and use max_completion_tokens
REASONING_MODEL_MARKERS = ("gpt-5", "o1", "o3", "o4-")


class LLMRouter:
    """Centralized LLM routing with model-aware parameter handling"""

    def __init__(self, config_path: str = None):
        """
        Initialize LLM Router.

        Args:
            config_path: Path to models.yaml config file.
                         If None, uses scenra/config/models.yaml
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / "config" / "models.yaml"
        self.config_path = config_path
        self.config = self._load_config(config_path)
        self._apply_env_overrides()

    def _load_config(self, config_path: str) -> dict:
        """Load YAML config file"""
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _apply_env_overrides(self):
        """
        Apply environment variable overrides for A/B testing.

        Supports:
        - TEST_<GROUP_NAME>_MODEL: Override all agents in a group
        - TEST_<AGENT_NAME>_MODEL: Override specific agent
        """
        # Group overrides: TEST_ROUNDTABLE_MODEL, TEST_CONVERGENCE_MODEL
        for group_name in self.config.get("groups", {}):
            env_key = f"TEST_{group_name.upper()}_MODEL"
            env_value = os.getenv(env_key)
            if env_value:
                self.config["groups"][group_name]["model"] = env_value
                logger.info(f"🔬 A/B Override: {group_name} group → {env_value}")

        # Agent overrides: TEST_DIRECTOR_MODEL, TEST_SYNTHESIS_MODEL, etc.
        for agent_name in self.config.get("agents", {}):
            env_key = f"TEST_{agent_name.upper()}_MODEL"
            env_value = os.getenv(env_key)
            if env_value:
                self.config["agents"][agent_name]["model"] = env_value
                logger.info(f"🔬 A/B Override: {agent_name} → {env_value}")

    def _normalize_model_name(self, model: str) -> str:
        """
        Strip routing prefixes the OpenAI client does not understand.

        Config files written for gateway-style routers often carry an
        "openai/" prefix; the chat completions API wants the bare model id.

        Args:
            model: Model name, possibly with a provider prefix

        Returns:
            Model name ready for chat.completions.create
        """
        if not model:
            return model
        if model.startswith("openai/"):
            return model[len("openai/"):]
        return model

    def get_model_for_agent(self, agent_name: str) -> str:
        """
        Get model for agent using hierarchy:
        1. Agent-specific model (if set)
        2. Group model (if agent is in a group with model set)
        3. Default model

        Args:
            agent_name: Agent identifier (e.g., "director", "synthesis")

        Returns:
            Normalized model name
        """
        # 1. Check agent-specific model
        agent_cfg = self.config.get("agents", {}).get(agent_name, {})
        if agent_cfg.get("model"):
            return self._normalize_model_name(agent_cfg["model"])

        # 2. Check group model
        for group_name, group_cfg in self.config.get("groups", {}).items():
            if agent_name in group_cfg.get("members", []):
                if group_cfg.get("model"):
                    return self._normalize_model_name(group_cfg["model"])

        # 3. Default
        default_model = self.config.get("default", {}).get("model", "gpt-4o-mini")
        return self._normalize_model_name(default_model)

    def get_llm_kwargs(self, agent_name: str, model_override: str = None) -> dict:
        """
        Build request kwargs for an agent, including:
        - Model name
        - Agent-specific parameters (temperature, max_tokens, timeout)
        - JSON response format when the agent is configured for it
        - Model-specific constraints (reasoning models)

        Args:
            agent_name: Agent identifier
            model_override: Optional model to use instead of config

        Returns:
            Dict ready to pass to chat.completions.create(**kwargs)
        """
        if model_override:
            model = self._normalize_model_name(model_override)
        else:
            model = self.get_model_for_agent(agent_name)

        agent_cfg = self.config.get("agents", {}).get(agent_name, {})
        default_cfg = self.config.get("default", {})

        kwargs = {
            "model": model,
            "temperature": agent_cfg.get("temperature", default_cfg.get("temperature", 0.7)),
            "max_tokens": agent_cfg.get("max_tokens", default_cfg.get("max_tokens", 1000)),
            "timeout": agent_cfg.get("timeout", default_cfg.get("timeout", 60)),
        }

        if agent_cfg.get("top_p") is not None:
            kwargs["top_p"] = agent_cfg["top_p"]
        if agent_cfg.get("frequency_penalty") is not None:
            kwargs["frequency_penalty"] = agent_cfg["frequency_penalty"]
        if agent_cfg.get("presence_penalty") is not None:
            kwargs["presence_penalty"] = agent_cfg["presence_penalty"]
        if agent_cfg.get("json_mode"):
            kwargs["response_format"] = {"type": "json_object"}

        return self._apply_model_constraints(model, kwargs)

    def _apply_model_constraints(self, model: str, kwargs: dict) -> dict:
        """
        Handle model-specific parameter constraints.

        OpenAI reasoning models (o1, o3, o4, gpt-5) reject sampling
        parameters and expect max_completion_tokens instead of max_tokens.

        Args:
            model: Normalized model name
            kwargs: Current kwargs dict

        Returns:
            Modified kwargs dict
        """
        model_lower = model.lower()

        if any(model_lower.startswith(marker) for marker in REASONING_MODEL_MARKERS):
            for param in ("temperature", "top_p", "frequency_penalty", "presence_penalty"):
                kwargs.pop(param, None)
            kwargs["max_completion_tokens"] = kwargs.pop("max_tokens", 4096)

        return kwargs

    def get_agent_display_name(self, agent_name: str) -> str:
        """
        Get human-readable display name for agent.

        Args:
            agent_name: Agent identifier

        Returns:
            Display name (e.g., "Platform Expert" for platform_expert)
        """
        return self.config.get("agents", {}).get(agent_name, {}).get("display_name", agent_name)

    def list_agents_in_group(self, group_name: str) -> List[str]:
        """
        Get list of agent names in a group.

        Args:
            group_name: Group identifier (e.g., "roundtable")

        Returns:
            List of agent names in the group
        """
        return self.config.get("groups", {}).get(group_name, {}).get("members", [])

    def list_all_agents(self) -> List[str]:
        """Get list of all configured agent names."""
        return list(self.config.get("agents", {}).keys())

    def get_active_overrides(self) -> Dict[str, str]:
        """
        Get currently active model overrides.

        Returns:
            Dict mapping agent/group name to override model
        """
        overrides = {}

        for group_name, group_cfg in self.config.get("groups", {}).items():
            if group_cfg.get("model"):
                overrides[f"group:{group_name}"] = group_cfg["model"]

        for agent_name, agent_cfg in self.config.get("agents", {}).items():
            if agent_cfg.get("model"):
                overrides[f"agent:{agent_name}"] = agent_cfg["model"]

        return overrides

    def log_configuration(self, use_print: bool = True):
        """
        Log current model configuration for all agents.

        Args:
            use_print: If True, use print() for console visibility.
                       If False, use logger.info() for file logs only.
        """
        output = print if use_print else logger.info

        output("📋 LLM Router Configuration:")

        overrides = self.get_active_overrides()
        if overrides:
            output("  🔄 Configured overrides:")
            for name, model in overrides.items():
                output(f"    • {name} → {model}")

        output("  🤖 Agent models:")
        for agent_name in self.list_all_agents():
            model = self.get_model_for_agent(agent_name)
            display = self.get_agent_display_name(agent_name)
            source = self._get_model_source(agent_name)
            output(f"    • {display} ({agent_name}): {model} [{source}]")

    def _get_model_source(self, agent_name: str) -> str:
        """Get the source of model selection for an agent (for logging)."""
        agent_cfg = self.config.get("agents", {}).get(agent_name, {})
        if agent_cfg.get("model"):
            return "agent override"

        for group_name, group_cfg in self.config.get("groups", {}).items():
            if agent_name in group_cfg.get("members", []):
                if group_cfg.get("model"):
                    return f"group:{group_name}"

        return "default"


# Singleton instance
_llm_router: Optional[LLMRouter] = None


def get_llm_router() -> LLMRouter:
    """
    Get singleton LLM Router instance.

    Returns:
        LLMRouter instance (creates one if not initialized)
    """
    global _llm_router
    if _llm_router is None:
        _llm_router = LLMRouter()
    return _llm_router


def init_llm_router(config_path: str = None) -> LLMRouter:
    """
    Initialize LLM Router (call at app startup).

    Args:
        config_path: Optional path to models.yaml

    Returns:
        Initialized LLMRouter instance
    """
    global _llm_router
    _llm_router = LLMRouter(config_path)
    return _llm_router


def reset_llm_router():
    """Reset the singleton (useful for testing)."""
    global _llm_router
    _llm_router = None
