"""bot.py Realtime 구독 관리 테스트"""
from unittest.mock import AsyncMock, MagicMock

import pytest

import bot as bot_module
from character_vote.models import Vote
from character_vote.store import InMemoryVoteStore, SupabaseVoteStore


@pytest.fixture
def memory_store(monkeypatch):
    store = InMemoryVoteStore()
    monkeypatch.setattr(bot_module, "vote_store", store)
    monkeypatch.setattr(bot_module, "_subscription", None)
    return store


@pytest.mark.unit
class TestVoteSubscription:
    """INSERT 알림 구독 / 해제 테스트"""

    @pytest.mark.asyncio
    async def test_subscribe_once(self, memory_store):
        await bot_module.subscribe_vote_inserts()
        handle = bot_module._subscription
        await bot_module.subscribe_vote_inserts()

        assert handle is not None
        assert bot_module._subscription == handle

    @pytest.mark.asyncio
    async def test_unsubscribe_on_close(self, memory_store, monkeypatch):
        request_refresh = MagicMock(return_value=None)
        monkeypatch.setattr(bot_module.ranking_board, "request_refresh", request_refresh)

        await bot_module.subscribe_vote_inserts()
        await bot_module.unsubscribe_vote_inserts()

        assert bot_module._subscription is None
        await memory_store.insert_vote(Vote("Walter-White", "like", "1"))
        request_refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsubscribe_without_subscription(self, memory_store):
        await bot_module.unsubscribe_vote_inserts()
        assert bot_module._subscription is None

    @pytest.mark.asyncio
    async def test_supabase_connected_before_subscribe(self, monkeypatch):
        store = SupabaseVoteStore("https://example.supabase.co", "anon-key")
        store.connect = AsyncMock()
        store.subscribe_inserts = AsyncMock(return_value="channel")
        store.unsubscribe = AsyncMock()
        monkeypatch.setattr(bot_module, "vote_store", store)
        monkeypatch.setattr(bot_module, "_subscription", None)

        await bot_module.subscribe_vote_inserts()
        await bot_module.unsubscribe_vote_inserts()

        store.connect.assert_awaited_once()
        store.unsubscribe.assert_awaited_once_with("channel")
