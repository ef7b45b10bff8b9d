"""Test the in-process map service driver."""

import asyncio

import pytest

from mapbench.core.config import DriverConfig
from mapbench.core.errors import KeyNotFoundError, MapServiceError
from mapbench.drivers.base import END_OF_STREAM, MapEntry, load_driver
from mapbench.drivers.memory import MemoryDriver


async def _install(driver, release="atomix-database"):
    await driver.create_provisioner().install(release, release, {"clusters": 3})


class TestProvisioningAndDiscovery:
    """Test provisioner and discovery collaborators."""

    @pytest.mark.asyncio
    async def test_install_records_release(self):
        """Test installed releases and their values are recorded."""
        driver = MemoryDriver()
        await _install(driver)
        assert driver.service.releases["atomix-database"] == ("atomix-database", {"clusters": 3})

    @pytest.mark.asyncio
    async def test_discovery_not_found(self):
        """Test an uninstalled release resolves to an empty address."""
        driver = MemoryDriver()
        assert await driver.create_discovery().resolve_address("atomix-controller") == ""

    @pytest.mark.asyncio
    async def test_discovery_address(self):
        """Test the configured address is returned once installed."""
        driver = MemoryDriver(DriverConfig(config={"address": "memory://bench"}))
        await _install(driver, "atomix-controller")
        assert await driver.create_discovery().resolve_address("atomix-controller") == "memory://bench"

    @pytest.mark.asyncio
    async def test_install_failure(self):
        """Test an injected install failure for one chart."""
        driver = MemoryDriver(DriverConfig(config={"fail_install": "atomix-database"}))
        await _install(driver, "atomix-controller")
        with pytest.raises(MapServiceError):
            await _install(driver, "atomix-database")

    @pytest.mark.asyncio
    async def test_connect_wrong_address(self):
        """Test connecting to an unknown address."""
        driver = MemoryDriver()
        with pytest.raises(MapServiceError):
            await driver.connect("memory://elsewhere")

    @pytest.mark.asyncio
    async def test_missing_database(self):
        """Test looking up a database that was never installed."""
        driver = MemoryDriver()
        client = await driver.connect(driver.service.address)
        with pytest.raises(MapServiceError):
            await client.get_database("atomix-database")


class TestMemoryMap:
    """Test map operations."""

    @pytest.mark.asyncio
    async def test_put_get(self):
        """Test the latest write wins."""
        driver = MemoryDriver()
        await _install(driver)
        client = await driver.connect(driver.service.address)
        target = await (await client.get_database("atomix-database")).get_map("map")

        assert await target.put("k", b"1") is None
        assert await target.put("k", b"2") == b"1"
        assert await target.get("k") == b"2"

    @pytest.mark.asyncio
    async def test_get_missing_key(self):
        """Test reading an absent key."""
        driver = MemoryDriver()
        await _install(driver)
        client = await driver.connect(driver.service.address)
        target = await (await client.get_database("atomix-database")).get_map("map")

        with pytest.raises(KeyNotFoundError) as excinfo:
            await target.get("missing")
        assert excinfo.value.key == "missing"
        assert excinfo.value.kind == "not_found"

    @pytest.mark.asyncio
    async def test_handles_share_state(self):
        """Test two handles to the same map see each other's writes."""
        driver = MemoryDriver()
        await _install(driver)
        client = await driver.connect(driver.service.address)
        database = await client.get_database("atomix-database")
        first = await database.get_map("shared")
        second = await database.get_map("shared")
        other = await database.get_map("other")

        await first.put("k", b"v")

        assert await second.get("k") == b"v"
        with pytest.raises(KeyNotFoundError):
            await other.get("k")

    @pytest.mark.asyncio
    async def test_entries_snapshot(self):
        """Test a scan streams every entry then the end marker."""
        driver = MemoryDriver()
        await _install(driver)
        client = await driver.connect(driver.service.address)
        target = await (await client.get_database("atomix-database")).get_map("map")
        await target.put("a", b"1")
        await target.put("b", b"2")

        queue = asyncio.Queue()
        await target.entries(queue)

        items = [queue.get_nowait() for _ in range(queue.qsize())]
        assert items[:-1] == [MapEntry("a", b"1"), MapEntry("b", b"2")]
        assert items[-1] is END_OF_STREAM

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test closing twice releases the handle once."""
        driver = MemoryDriver()
        await _install(driver)
        client = await driver.connect(driver.service.address)
        target = await (await client.get_database("atomix-database")).get_map("map")

        await target.close()
        await target.close()

        assert driver.service.open_handles == 1
        assert driver.service.closed_handles == 1
        with pytest.raises(MapServiceError):
            await target.put("k", b"v")

    @pytest.mark.asyncio
    async def test_artificial_latency(self):
        """Test injected service latency."""
        driver = MemoryDriver(DriverConfig(config={"latency_ms": 20}))
        await _install(driver)
        client = await driver.connect(driver.service.address)
        target = await (await client.get_database("atomix-database")).get_map("map")

        loop = asyncio.get_running_loop()
        started = loop.time()
        await target.put("k", b"v")
        assert loop.time() - started >= 0.015


def test_load_driver():
    """Test the driver is loaded from its class path."""
    driver = load_driver(DriverConfig(config={"address": "memory://x"}))
    assert isinstance(driver, MemoryDriver)
    assert driver.driver_name == "memory"
    assert driver.service.address == "memory://x"
