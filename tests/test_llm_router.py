"""
Unit tests for LLM Router - verifies model routing without LLM calls.

Tests the routing logic hierarchy (Agent > Group > Default),
environment variable overrides, model normalization, and
reasoning-model parameter constraints.

Run with: python -m pytest tests/test_llm_router.py -v
"""

import os
import sys
import yaml
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from scenra.services.llm_router import LLMRouter, get_llm_router, init_llm_router, reset_llm_router

PERSONAS = ['director', 'cinematographer', 'editor', 'colorist', 'platform_expert']


def _clear_test_env():
    for key in list(os.environ.keys()):
        if key.startswith('TEST_') and key.endswith('_MODEL'):
            del os.environ[key]


class TestLLMRouterHierarchy:
    """Test model resolution hierarchy: Agent > Group > Default"""

    def setup_method(self):
        """Reset LLM Router singleton before each test."""
        reset_llm_router()
        _clear_test_env()

    def teardown_method(self):
        """Clean up after each test."""
        reset_llm_router()
        _clear_test_env()

    def test_default_model_when_no_overrides(self):
        """Without overrides, personas use the default model from YAML."""
        router = LLMRouter()

        for agent in PERSONAS:
            model = router.get_model_for_agent(agent)
            assert model == 'gpt-4o-mini', f"{agent} should use default model"

    def test_synthesis_has_its_own_model(self):
        """Synthesis sets a model at agent level."""
        router = LLMRouter()
        assert router.get_model_for_agent('synthesis') == 'gpt-4o'

    def test_group_override_applies_to_all_members(self):
        """TEST_ROUNDTABLE_MODEL applies to all 5 personas."""
        os.environ['TEST_ROUNDTABLE_MODEL'] = 'gpt-4.1-mini'
        router = LLMRouter()

        for agent in PERSONAS:
            assert router.get_model_for_agent(agent) == 'gpt-4.1-mini', \
                f"{agent} should use roundtable group model"

        # Synthesis is not in the roundtable group
        assert router.get_model_for_agent('synthesis') == 'gpt-4o'

    def test_agent_override_beats_group_override(self):
        """TEST_DIRECTOR_MODEL overrides TEST_ROUNDTABLE_MODEL for the director."""
        os.environ['TEST_ROUNDTABLE_MODEL'] = 'gpt-4.1-mini'
        os.environ['TEST_DIRECTOR_MODEL'] = 'gpt-4o'
        router = LLMRouter()

        assert router.get_model_for_agent('director') == 'gpt-4o', \
            "Agent override should beat group override"
        assert router.get_model_for_agent('editor') == 'gpt-4.1-mini', \
            "Editor should still use group override"

    def test_roundtable_group_contains_all_personas(self):
        """Verify all 5 personas are in the roundtable group."""
        router = LLMRouter()
        members = router.list_agents_in_group('roundtable')

        for agent in PERSONAS:
            assert agent in members, f"{agent} should be in roundtable group"

        assert len(members) == 5, "Roundtable should have exactly 5 members"

    def test_unknown_agent_uses_default(self):
        """Unknown agent names should fall back to default model."""
        router = LLMRouter()
        assert router.get_model_for_agent('nonexistent_agent') == 'gpt-4o-mini'

    def test_active_overrides_reported(self):
        os.environ['TEST_ROUNDTABLE_MODEL'] = 'gpt-4.1-mini'
        router = LLMRouter()
        overrides = router.get_active_overrides()

        assert overrides['group:roundtable'] == 'gpt-4.1-mini'
        assert overrides['agent:synthesis'] == 'gpt-4o'
        assert router._get_model_source('director') == 'group:roundtable'
        assert router._get_model_source('synthesis') == 'agent override'


class TestModelNormalization:
    """Test provider prefix handling."""

    def setup_method(self):
        reset_llm_router()

    def teardown_method(self):
        reset_llm_router()

    def test_openai_prefix_stripped(self):
        """openai/gpt-4o -> gpt-4o"""
        router = LLMRouter()
        assert router._normalize_model_name('openai/gpt-4o') == 'gpt-4o'

    def test_bare_model_unchanged(self):
        router = LLMRouter()
        assert router._normalize_model_name('gpt-4o-mini') == 'gpt-4o-mini'

    def test_empty_model_passthrough(self):
        router = LLMRouter()
        assert router._normalize_model_name('') == ''


class TestModelConstraints:
    """Test model-specific parameter handling."""

    def setup_method(self):
        reset_llm_router()
        _clear_test_env()

    def teardown_method(self):
        reset_llm_router()
        _clear_test_env()

    def test_standard_model_keeps_sampling_params(self):
        router = LLMRouter()
        kwargs = router.get_llm_kwargs('director')

        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['temperature'] == 0.8
        assert kwargs['max_tokens'] == 400
        assert 'max_completion_tokens' not in kwargs

    def test_reasoning_model_drops_temperature(self):
        """gpt-5, o1, o3 should not have temperature."""
        os.environ['TEST_DIRECTOR_MODEL'] = 'gpt-5'
        router = LLMRouter()

        kwargs = router.get_llm_kwargs('director')
        assert 'temperature' not in kwargs, "gpt-5 should not have temperature"

    def test_reasoning_model_uses_max_completion_tokens(self):
        """Reasoning models use max_completion_tokens instead of max_tokens."""
        os.environ['TEST_COLORIST_MODEL'] = 'o3-mini'
        router = LLMRouter()

        kwargs = router.get_llm_kwargs('colorist')
        assert 'max_tokens' not in kwargs
        assert kwargs['max_completion_tokens'] == 400

    def test_synthesis_requests_json(self):
        """Synthesis is configured for JSON mode."""
        router = LLMRouter()
        kwargs = router.get_llm_kwargs('synthesis')

        assert kwargs['response_format'] == {"type": "json_object"}
        assert 'response_format' not in router.get_llm_kwargs('director')

    def test_model_override_argument(self):
        router = LLMRouter()
        kwargs = router.get_llm_kwargs('editor', model_override='openai/gpt-4.1')
        assert kwargs['model'] == 'gpt-4.1'


class TestDisplayNames:
    """Test agent display name retrieval."""

    def setup_method(self):
        reset_llm_router()

    def teardown_method(self):
        reset_llm_router()

    def test_platform_expert_display_name(self):
        router = LLMRouter()
        assert router.get_agent_display_name('platform_expert') == 'Platform Expert'

    def test_unknown_agent_returns_name(self):
        """Unknown agent should return the agent name as display name."""
        router = LLMRouter()
        assert router.get_agent_display_name('unknown') == 'unknown'

    def test_all_agents_listed(self):
        router = LLMRouter()
        assert router.list_all_agents() == PERSONAS + ['synthesis']


class TestCustomConfig:
    """Routers built from another models.yaml."""

    def setup_method(self):
        reset_llm_router()
        _clear_test_env()

    def teardown_method(self):
        reset_llm_router()
        _clear_test_env()

    def test_config_path_and_singleton(self, tmp_path):
        config = {
            "default": {"model": "openai/gpt-4.1-nano", "temperature": 0.3, "max_tokens": 200},
            "groups": {"roundtable": {"model": None, "members": ["director"]}},
            "agents": {"director": {"display_name": "Director", "model": None}},
        }
        path = tmp_path / "models.yaml"
        path.write_text(yaml.safe_dump(config), encoding="utf-8")

        router = init_llm_router(str(path))
        assert get_llm_router() is router

        kwargs = router.get_llm_kwargs('director')
        assert kwargs['model'] == 'gpt-4.1-nano'
        assert kwargs['temperature'] == 0.3
        assert kwargs['max_tokens'] == 200
