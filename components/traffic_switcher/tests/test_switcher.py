"""
Tests for Traffic Switcher
"""

import asyncio

import pytest

from deploy_core.exceptions import TrafficSwitchError
from deploy_core.schemas.models import Color, Instance
from deploy_core.tests.fakes import FakeTrafficDirector

from ..tools.switcher import TrafficSwitcher


TARGET = "prod"


def green_instances(count: int = 3) -> list[Instance]:
    return [Instance(address=f"green-{i}:8080", color=Color.GREEN) for i in range(count)]


@pytest.fixture
def director():
    return FakeTrafficDirector(active={TARGET: Color.BLUE})


class TestTrafficSwitcher:
    """Tests for TrafficSwitcher"""

    @pytest.mark.asyncio
    async def test_switch_registers_activates_and_confirms(self, director):
        switcher = TrafficSwitcher(director)

        await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances())

        assert director.active[TARGET] is Color.GREEN
        assert director.pools[(TARGET, Color.GREEN)] == ["green-0:8080", "green-1:8080", "green-2:8080"]
        # one registration call per instance
        assert len(director.called("register_targets")) == 3

    @pytest.mark.asyncio
    async def test_same_color_is_noop(self, director):
        switcher = TrafficSwitcher(director)

        await switcher.switch(TARGET, Color.BLUE, Color.BLUE, green_instances())

        assert director.calls == []

    @pytest.mark.asyncio
    async def test_partial_registration_is_undone(self, director):
        director.fail_register = {"green-2:8080"}
        switcher = TrafficSwitcher(director)

        with pytest.raises(TrafficSwitchError) as exc_info:
            await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances())

        assert exc_info.value.routing_unchanged is True
        assert director.active[TARGET] is Color.BLUE
        assert director.pools[(TARGET, Color.GREEN)] == []
        assert director.called("deregister_targets") == [
            ("deregister_targets", TARGET, Color.GREEN, ["green-0:8080", "green-1:8080"])
        ]
        assert director.called("activate_color") == []

    @pytest.mark.asyncio
    async def test_activation_failure_with_routing_intact(self, director):
        director.fail_activate = {Color.GREEN}
        switcher = TrafficSwitcher(director)

        with pytest.raises(TrafficSwitchError) as exc_info:
            await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances(2))

        assert exc_info.value.routing_unchanged is True
        assert director.active[TARGET] is Color.BLUE
        assert director.pools[(TARGET, Color.GREEN)] == []

    @pytest.mark.asyncio
    async def test_activation_landed_but_call_failed_is_uncertain(self, director):
        director.fail_activate = {Color.GREEN}
        director.apply_then_fail = True
        switcher = TrafficSwitcher(director)

        with pytest.raises(TrafficSwitchError) as exc_info:
            await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances(2))

        assert exc_info.value.routing_unchanged is False
        # live pool must not be torn down
        assert director.called("deregister_targets") == []

    @pytest.mark.asyncio
    async def test_unreadable_director_is_uncertain(self, director):
        director.fail_read = True
        switcher = TrafficSwitcher(director)

        with pytest.raises(TrafficSwitchError) as exc_info:
            await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances(1))

        assert exc_info.value.routing_unchanged is False
        assert "read_back_error" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_director_call_timeout(self, director):
        async def hang(target, color):
            await asyncio.sleep(5)

        director.activate_color = hang
        switcher = TrafficSwitcher(director, call_timeout=0.05)

        with pytest.raises(TrafficSwitchError) as exc_info:
            await switcher.switch(TARGET, Color.BLUE, Color.GREEN, green_instances(1))

        assert "timed out" in exc_info.value.message
        assert exc_info.value.routing_unchanged is True
