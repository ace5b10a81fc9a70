"""Unit tests for EngineContext."""

import pytest

from planwave.context import EngineContext
from planwave.core.config import Settings
from planwave.domain.models import Plan
from planwave.execution.step_cache import StepResultCache
from planwave.tools.base import FunctionTool
from planwave.validation.rules import mutually_exclusive_params


async def _facilities(params):
    return [{"id": "F9"}]


@pytest.fixture
def context():
    return EngineContext.create(
        settings=Settings(_env_file=None, MAX_PARALLEL_STEPS=3, MAX_ATTEMPTS=2),
        tool_factories={"facilities_list": lambda: FunctionTool("facilities_list", _facilities)},
        rules=[mutually_exclusive_params("facilities_list", "type", "region")],
    )


class TestEngineContext:

    def test_registry_built_from_factories(self, context):
        assert context.registry.tool_names() == ["facilities_list"]

    def test_extra_tools_registered(self):
        context = EngineContext.create(tools=[FunctionTool("echo", _facilities)])
        assert context.registry.has_tool("echo")

    def test_contexts_do_not_share_registries(self, context):
        other = EngineContext.create()
        assert not other.registry.has_tool("facilities_list")

    def test_executor_config_from_settings(self, context):
        config = context.executor().config
        assert config.max_parallel_steps == 3
        assert config.max_attempts == 2

    def test_executor_overrides(self, context):
        assert context.executor(fail_fast=True, max_parallel_steps=1).config.fail_fast is True

    def test_validator_applies_rules(self, context):
        plan = Plan.from_dict({
            "steps": [{"tool": "facilities_list", "params": {"type": "sorting", "region": "north"}}]
        })
        result = context.validator().validate(plan)
        assert result.errors == [
            "Step 0: Cannot specify both type and region for facilities_list"
        ]

    def test_new_cache_is_fresh(self, context):
        first = context.new_cache()
        assert isinstance(first, StepResultCache)
        assert first is not context.new_cache()

    @pytest.mark.asyncio
    async def test_end_to_end(self, context):
        plan = Plan.from_dict({"steps": [{"tool": "facilities_list", "params": {"type": "sorting"}}]})
        report = await context.executor().run(plan)
        assert report.results[0].data == [{"id": "F9"}]
