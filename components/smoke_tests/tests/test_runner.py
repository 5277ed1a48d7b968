"""
Tests for Smoke Test Runner
"""

import asyncio

import httpx
import pytest

from deploy_core.schemas.models import Color, Instance, SmokeCheck

from ..tools.runner import SmokeTestRunner


SUITE = [
    SmokeCheck(path="/health"),
    SmokeCheck(name="version", path="/api/version"),
    SmokeCheck(path="/api/items", expected_statuses=[200, 204]),
]


def make_runner(handler, request_timeout: float = 1.0) -> SmokeTestRunner:
    return SmokeTestRunner(request_timeout=request_timeout, transport=httpx.MockTransport(handler))


def make_instances(*addresses: str) -> list[Instance]:
    return [Instance(address=a, color=Color.GREEN) for a in addresses]


class TestSmokeTestRunner:
    """Tests for SmokeTestRunner"""

    @pytest.mark.asyncio
    async def test_all_checks_pass(self):
        runner = make_runner(lambda request: httpx.Response(200))

        report = await runner.run_smoke_tests(make_instances("a:1", "b:1"), SUITE)

        assert report.passed is True
        assert report.failures == []
        assert report.instances_checked == 2
        assert report.checks_run == 6

    @pytest.mark.asyncio
    async def test_stops_at_first_failure_per_instance(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.host, request.url.path))
            if request.url.host == "b" and request.url.path == "/api/version":
                return httpx.Response(500)
            return httpx.Response(200)

        runner = make_runner(handler)
        report = await runner.run_smoke_tests(make_instances("a:1", "b:1"), SUITE)

        assert report.passed is False
        assert len(report.failures) == 1
        failure = report.failures[0]
        assert failure.instance == "b:1"
        assert failure.check == "version"
        assert failure.status_code == 500
        assert failure.reason == "unexpected status 500"

        # b never reached the third check, a ran all three
        assert ("b", "/api/items") not in seen
        assert ("a", "/api/items") in seen

    @pytest.mark.asyncio
    async def test_every_instance_is_checked(self):
        runner = make_runner(lambda request: httpx.Response(503))

        report = await runner.run_smoke_tests(make_instances("a:1", "b:1", "c:1"), SUITE)

        assert report.passed is False
        assert sorted(f.instance for f in report.failures) == ["a:1", "b:1", "c:1"]
        assert all(f.check == "GET /health" for f in report.failures)

    @pytest.mark.asyncio
    async def test_connection_error_is_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        runner = make_runner(handler)
        report = await runner.run_smoke_tests(make_instances("a:1"), SUITE)

        assert report.passed is False
        assert "ConnectError" in report.failures[0].reason

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200)

        runner = make_runner(handler, request_timeout=0.05)
        report = await runner.run_smoke_tests(make_instances("a:1"), SUITE)

        assert report.passed is False
        assert report.failures[0].reason.startswith("timed out")

    @pytest.mark.asyncio
    async def test_empty_fleet_fails(self):
        runner = make_runner(lambda request: httpx.Response(200))
        report = await runner.run_smoke_tests([], SUITE)
        assert report.passed is False
