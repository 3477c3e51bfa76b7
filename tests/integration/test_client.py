"""End-to-end tests for the Diff Digest client."""

import asyncio

import pytest

from diff_digest.client import DiffDigestClient
from diff_digest.config.env_schema import EnvironmentConfig
from diff_digest.config.models import Config, StorageConfig
from diff_digest.generation.service import HttpGenerationService
from diff_digest.pagination.sources import HttpItemSource
from diff_digest.persistence.storage import JsonFileStorage, MemoryStorage
from diff_digest.state.schema import GenerationState
from diff_digest.utils.exceptions import ConfigurationError, NetworkError, StateError
from tests.helpers.fakes import HANG, FakeItemSource, ScriptedGenerationService, page_payload

PAGES = {
    1: page_payload(["1", "2"], next_page=2),
    2: page_payload(["3"], next_page=None, current_page=2),
}


def make_client(storage, service=None, pages=None) -> DiffDigestClient:
    return DiffDigestClient(
        FakeItemSource(pages or PAGES),
        service or ScriptedGenerationService(),
        storage,
        per_page=2,
        generation_timeout_seconds=5.0,
    )


@pytest.mark.integration
class TestClientFlows:
    """Test the client across fetch, generate and restart."""

    @pytest.mark.asyncio
    async def test_commands_require_start(self, memory_storage):
        client = make_client(memory_storage)
        with pytest.raises(StateError):
            await client.fetch_next_page()
        assert memory_storage.keys() == []

    @pytest.mark.asyncio
    async def test_browse_generate_and_restore(self, memory_storage):
        """Test an interrupted generation survives a restart and resumes."""
        service = ScriptedGenerationService(["Hello, ", NetworkError("reset")])
        async with make_client(memory_storage, service) as client:
            await client.fetch_next_page()
            await client.fetch_next_page()
            assert [i.id for i in client.items] == ["1", "2", "3"]
            assert not client.pagination.has_more

            client.request_generation("2")
            record = await client.wait("2")
            assert record.state is GenerationState.INTERRUPTED

        service = ScriptedGenerationService(["world"])
        async with make_client(memory_storage, service) as client:
            assert [i.id for i in client.items] == ["1", "2", "3"]
            assert client.pagination.current_page == 2
            view = client.view("2")
            assert view.state is GenerationState.INTERRUPTED
            assert view.accumulated_text == "Hello, "
            assert view.visible

            client.resume_generation("2")
            await client.wait("2")
            assert client.view("2").accumulated_text == "Hello, world"
            assert client.view("2").state is GenerationState.COMPLETE

    @pytest.mark.asyncio
    async def test_close_interrupts_running_sessions(self, memory_storage):
        """Test a session cut short by shutdown is restored as interrupted."""
        service = ScriptedGenerationService(["partial", HANG])
        client = make_client(memory_storage, service)
        client.start()
        await client.fetch_next_page()
        client.request_generation("1")
        while client.view("1").accumulated_text != "partial":
            await asyncio.sleep(0)
        await client.close()

        restored = make_client(memory_storage)
        restored.start()
        assert restored.view("1").state is GenerationState.INTERRUPTED
        assert restored.view("1").can_resume

    @pytest.mark.asyncio
    async def test_abort_before_first_increment(self, memory_storage):
        """Test waiting on a session aborted right after the request."""
        service = ScriptedGenerationService(["never"])
        async with make_client(memory_storage, service) as client:
            await client.fetch_next_page()
            client.request_generation("1")
            assert client.abort_generation("1")
            record = await client.wait("1")
            assert record.state is GenerationState.FAILED
            assert client.view("1").state is GenerationState.FAILED
            assert service.requests == []

    @pytest.mark.asyncio
    async def test_stale_generating_record_recovered(self, memory_storage):
        """Test a record persisted mid-stream by a killed process."""
        service = ScriptedGenerationService(["partial", HANG])
        client = make_client(memory_storage, service)
        client.start()
        await client.fetch_next_page()
        client.request_generation("1")
        while client.view("1").accumulated_text != "partial":
            await asyncio.sleep(0)

        # A second process starts while the first one is still streaming
        restored = make_client(memory_storage)
        restored.start()
        assert restored.view("1").state is GenerationState.INTERRUPTED

        await client.close()

    @pytest.mark.asyncio
    async def test_toggle_visibility(self, memory_storage):
        async with make_client(memory_storage) as client:
            await client.fetch_next_page()
            assert client.toggle_visibility("1") is True
            assert client.toggle_visibility("1") is False
            assert client.view("1").state is GenerationState.IDLE

    @pytest.mark.asyncio
    async def test_refetch_drops_orphaned_notes(self, memory_storage):
        service = ScriptedGenerationService(["notes"])
        pages = dict(PAGES)
        async with make_client(memory_storage, service, pages) as client:
            await client.fetch_next_page()
            client.request_generation("2")
            await client.wait("2")

            client.source.pages[1] = page_payload(["1", "4"], next_page=2)
            await client.refetch()
            assert [i.id for i in client.items] == ["1", "4"]
            with pytest.raises(StateError):
                client.view("2")

        async with make_client(memory_storage) as client:
            assert [v.item.id for v in client.views()] == ["1", "4"]

    @pytest.mark.asyncio
    async def test_reset_all(self, memory_storage):
        service = ScriptedGenerationService(["partial", HANG])
        async with make_client(memory_storage, service) as client:
            await client.fetch_next_page()
            client.request_generation("1")
            await client.reset_all()
            assert client.items == ()
            assert not client.sessions.active_item_ids()
        assert memory_storage.keys() == []

    @pytest.mark.asyncio
    async def test_degraded_persistence_keeps_working(self):
        """Test a full quota never breaks the session."""
        service = ScriptedGenerationService(["notes"])
        async with make_client(MemoryStorage(quota_bytes=32), service) as client:
            await client.fetch_next_page()
            client.request_generation("1")
            await client.wait("1")
            assert client.view("1").state is GenerationState.COMPLETE
            assert client.persistence_degraded

    @pytest.mark.asyncio
    async def test_start_without_hydration(self, memory_storage):
        async with make_client(memory_storage) as client:
            await client.fetch_next_page()

        client = make_client(memory_storage)
        client.start(hydrate=False)
        assert client.items == ()
        await client.close()


class TestFromConfig:
    """Test building a client from configuration."""

    def test_http_backends(self, tmp_path):
        config = Config(storage=StorageConfig(directory=tmp_path / "state"))
        client = DiffDigestClient.from_config(config)
        assert isinstance(client.source, HttpItemSource)
        assert isinstance(client.sessions.service, HttpGenerationService)
        assert isinstance(client.mirror.storage, JsonFileStorage)
        assert client.fetcher.per_page == 10

    def test_llm_backend_without_key(self):
        config = Config(generation={"backend": "llm"})
        with pytest.raises(ConfigurationError) as exc_info:
            DiffDigestClient.from_config(config, EnvironmentConfig(_env_file=None))
        assert "OPENAI_API_KEY" in str(exc_info.value)
