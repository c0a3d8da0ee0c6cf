"""Tests for ProviderRegistry lifecycle, configuration and the periodic health checker."""

from __future__ import annotations

import asyncio

import pytest

from multistore.domain.enums import RedundancyLevel
from multistore.domain.exceptions import AllProvidersFailedError, NotInitializedError
from multistore.shared.providers.checker import PeriodicHealthChecker


# ═══════════════════════════════════════════════════════════════
#  Initialization
# ═══════════════════════════════════════════════════════════════
class TestInitialization:
    @pytest.mark.asyncio
    async def test_initialize_all_reports_per_backend(self, backends, make_registry) -> None:
        backends["C"].fail_init = True
        registry = make_registry(backends)
        report = await registry.initialize_all()
        try:
            assert report == {"A": True, "B": True, "C": False, "D": True}
            assert registry.is_initialized() is True
            assert registry.uninitialized_keys() == {"C"}
            assert "C" not in registry.read_order()
            assert registry.health.status("C").is_healthy is False
        finally:
            await registry.shutdown()

    @pytest.mark.asyncio
    async def test_all_failing_keeps_registry_down(self, backends, make_registry) -> None:
        for b in backends.values():
            b.fail_init = True
        registry = make_registry(backends)
        with pytest.raises(AllProvidersFailedError) as exc_info:
            await registry.initialize_all()

        assert set(exc_info.value.errors) == {"A", "B", "C", "D"}
        assert registry.is_initialized() is False
        assert registry.checker.running is False
        with pytest.raises(NotInitializedError):
            await registry.store(b"x", "f", "key")

    @pytest.mark.asyncio
    async def test_empty_registry_cannot_initialize(self, make_registry) -> None:
        registry = make_registry({})
        with pytest.raises(AllProvidersFailedError):
            await registry.initialize_all()

    @pytest.mark.asyncio
    async def test_checker_started_once(self, backends, make_registry) -> None:
        async with make_registry(backends) as registry:
            assert registry.checker.running is True
            await registry.initialize_all()
            assert registry.checker.running is True
        assert registry.checker.running is False

    @pytest.mark.asyncio
    async def test_late_registration_excluded_until_initialized(
        self, backends, make_backend, make_registry
    ) -> None:
        async with make_registry(backends, level="maximum") as registry:
            late = make_backend("E")
            registry.register("E", late)
            assert "E" not in registry.read_order()

            assert await registry.initialize_backend("E") is True
            assert "E" in registry.read_order()

    def test_duplicate_key_rejected(self, backends, make_backend, make_registry) -> None:
        registry = make_registry(backends)
        with pytest.raises(ValueError):
            registry.register("A", make_backend("A"))


# ═══════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════
class TestConfiguration:
    def test_default_level_is_dual(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        assert registry.redundancy_level == RedundancyLevel.DUAL
        assert registry.redundancy_enabled is True

    def test_set_redundancy_switch(self, backends, make_registry) -> None:
        registry = make_registry(backends, level="triple")
        registry.set_redundancy(True)
        assert registry.redundancy_level == RedundancyLevel.TRIPLE

        registry.set_redundancy(False)
        assert registry.redundancy_level == RedundancyLevel.SINGLE
        assert registry.redundancy_enabled is False

        registry.set_redundancy(True)
        assert registry.redundancy_level == RedundancyLevel.DUAL

    def test_unknown_level_rejected(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        with pytest.raises(ValueError):
            registry.set_redundancy_level("quadruple")

    @pytest.mark.asyncio
    async def test_preferred_backend_breaks_ties(self, backends, make_registry) -> None:
        async with make_registry(backends, level="single", preferred_backend="C") as registry:
            receipt = await registry.store(b"x", "f", "key")
        assert receipt.stored_on == ("C",)

    @pytest.mark.asyncio
    async def test_preferred_backend_never_beats_health(self, backends, make_registry) -> None:
        async with make_registry(backends, level="single", preferred_backend="C") as registry:
            registry.health.record_failure("C")
            registry.health.record_success("C")
            receipt = await registry.store(b"x", "f", "key")
        assert receipt.stored_on == ("A",)

    def test_unknown_preferred_backend_ignored(self, backends, make_registry) -> None:
        registry = make_registry(backends, preferred_backend="B")
        registry.set_preferred_backend("nope")
        assert registry.preferred_backend == "B"
        registry.set_preferred_backend(None)
        assert registry.preferred_backend is None

    @pytest.mark.asyncio
    async def test_statistics(self, backends, make_registry) -> None:
        async with make_registry(backends, level="triple") as registry:
            registry.health.record_failure("D")
            stats = registry.statistics()
            statuses = registry.provider_statuses()

        assert stats.total_providers == 4
        assert stats.healthy_providers == 3
        assert stats.average_health_score == 0.95
        assert stats.redundancy_level == RedundancyLevel.TRIPLE
        assert [s.key for s in statuses] == ["A", "B", "C", "D"]


# ═══════════════════════════════════════════════════════════════
#  Shutdown
# ═══════════════════════════════════════════════════════════════
class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_closes_backends(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        await registry.initialize_all()
        await registry.shutdown()

        assert all(b.closed for b in backends.values())
        assert registry.is_initialized() is False

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        await registry.initialize_all()
        await registry.shutdown()
        await registry.shutdown()

    @pytest.mark.asyncio
    async def test_operations_rejected_after_shutdown(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        await registry.initialize_all()
        await registry.shutdown()

        with pytest.raises(NotInitializedError):
            await registry.store(b"x", "f", "key")
        assert await registry.exists("f") is False
        with pytest.raises(RuntimeError):
            await registry.initialize_all()

    @pytest.mark.asyncio
    async def test_health_check_rejected_after_shutdown(self, backends, make_registry) -> None:
        backends["C"].fail_init = True
        registry = make_registry(backends)
        await registry.initialize_all()
        await registry.shutdown()
        before = registry.provider_statuses()

        with pytest.raises(NotInitializedError):
            await registry.perform_health_check()

        assert all(b.count("is_configured") == 0 for b in backends.values())
        assert backends["C"].count("initialize") == 1
        assert registry.provider_statuses() == before

    @pytest.mark.asyncio
    async def test_health_check_rejected_before_initialization(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        with pytest.raises(NotInitializedError):
            await registry.perform_health_check()

        assert all(b.count("initialize") == 0 for b in backends.values())
        assert registry.uninitialized_keys() == {"A", "B", "C", "D"}

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_health_check(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        await registry.initialize_all()
        release = asyncio.Event()

        async def slow_probe() -> bool:
            backends["A"].calls.append(("is_configured", ""))
            await release.wait()
            return True

        backends["A"].is_configured = slow_probe
        check = asyncio.create_task(registry.perform_health_check())
        await asyncio.sleep(0.01)
        closing = asyncio.create_task(registry.shutdown())
        await asyncio.sleep(0.01)
        assert backends["A"].closed is False

        release.set()
        report = await check
        await closing
        assert report["A"] is True
        assert backends["A"].closed is True

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_in_flight(self, backends, make_registry) -> None:
        backends["A"].delay = 0.1
        backends["B"].delay = 0.1
        registry = make_registry(backends)
        await registry.initialize_all()

        store = asyncio.create_task(registry.store(b"x", "f", "key"))
        await asyncio.sleep(0.01)
        await registry.shutdown()

        receipt = await store
        assert receipt.stored_on == ("A", "B")
        assert backends["A"].closed is True


# ═══════════════════════════════════════════════════════════════
#  PeriodicHealthChecker
# ═══════════════════════════════════════════════════════════════
class TestPeriodicHealthChecker:
    def test_interval_must_be_positive(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        with pytest.raises(ValueError):
            PeriodicHealthChecker(registry, interval_s=0)

    @pytest.mark.asyncio
    async def test_run_once_records_probe_results(self, backends, make_registry) -> None:
        backends["B"].configured = False
        async with make_registry(backends) as registry:
            report = await registry.perform_health_check()
            status_b = registry.health.status("B")

        assert report == {"A": True, "B": False, "C": True, "D": True}
        assert status_b.is_healthy is False
        assert status_b.consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_probe_success_restores_backend(self, backends, make_registry) -> None:
        async with make_registry(backends) as registry:
            registry.health.record_failure("A", "transient")
            assert "A" not in registry.read_order()
            await registry.perform_health_check()
            assert "A" in registry.read_order()

    @pytest.mark.asyncio
    async def test_failed_initialization_retried_by_checker(self, backends, make_registry) -> None:
        backends["B"].fail_init = True
        async with make_registry(backends) as registry:
            assert "B" in registry.uninitialized_keys()

            backends["B"].fail_init = False
            report = await registry.perform_health_check()

            assert report["B"] is True
            assert "B" not in registry.uninitialized_keys()
            assert "B" in registry.read_order()
        assert backends["B"].count("initialize") == 2
        assert backends["B"].count("is_configured") == 0

    @pytest.mark.asyncio
    async def test_failures_count_per_cycle_and_reset(self, backends, make_registry) -> None:
        backends["D"].configured = False
        async with make_registry(backends) as registry:
            await registry.checker.run_once()
            assert registry.health.status("D").consecutive_failures == 1

            await registry.checker.run_once()
            assert registry.health.status("D").consecutive_failures == 2
            assert registry.health.status("D").is_healthy is False

            backends["D"].configured = True
            await registry.checker.run_once()
            status_d = registry.health.status("D")

        assert status_d.consecutive_failures == 0
        assert status_d.is_healthy is True
        assert registry.health.status("A").consecutive_failures == 0

    @pytest.mark.asyncio
    async def test_periodic_failures_accumulate(self, backends, make_registry) -> None:
        backends["B"].configured = False
        async with make_registry(backends, health_check_interval_s=0.02) as registry:
            await asyncio.sleep(0.15)
            status_b = registry.health.status("B")
            status_a = registry.health.status("A")

        assert status_b.consecutive_failures >= 2
        assert status_b.is_healthy is False
        assert status_a.is_healthy is True

    @pytest.mark.asyncio
    async def test_start_twice_is_noop_and_stop_idempotent(self, backends, make_registry) -> None:
        registry = make_registry(backends)
        checker = PeriodicHealthChecker(registry, interval_s=3600)
        checker.start()
        first = checker._task
        checker.start()
        assert checker._task is first

        await checker.stop()
        await checker.stop()
        assert checker.running is False
