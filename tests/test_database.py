from sqlalchemy.pool import StaticPool

from ridehail.core.database import build_engine, is_memory_sqlite


def test_memory_urls_are_detected():
    assert is_memory_sqlite("sqlite+aiosqlite://")
    assert is_memory_sqlite("sqlite+aiosqlite:///:memory:")
    assert not is_memory_sqlite("sqlite+aiosqlite:///./ridehail.db")
    assert not is_memory_sqlite("sqlite+aiosqlite:////var/lib/ridehail/ridehail.db")
    assert not is_memory_sqlite("postgresql+asyncpg://ridehail@localhost/ridehail")


async def test_only_memory_databases_share_one_connection(tmp_path):
    memory = build_engine("sqlite+aiosqlite://")
    on_disk = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ridehail.db'}")

    try:
        assert isinstance(memory.pool, StaticPool)
        assert not isinstance(on_disk.pool, StaticPool)

        async with on_disk.connect() as first, on_disk.connect() as second:
            first_raw = await first.get_raw_connection()
            second_raw = await second.get_raw_connection()
            assert first_raw.driver_connection is not second_raw.driver_connection
    finally:
        await memory.dispose()
        await on_disk.dispose()
