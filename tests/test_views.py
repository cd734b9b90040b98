"""캐릭터 투표 UI (Embed / View / 탭 진입) 테스트"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from character_vote.constants import SCHEMA_ERROR_MESSAGE, RANKING_ERROR_MESSAGE
from character_vote.embeds import (
    create_character_embed,
    create_complete_embed,
    create_panel_embed,
    create_rankings_embed,
    create_signed_out_embed,
)
from character_vote.errors import SchemaError
from character_vote.identity import Identity, resolve_identity
from character_vote.models import FlowState, Vote, VotingFlow, VotingFlowManager
from character_vote.ranking import RankingBoard
from character_vote.store import InMemoryVoteStore
from character_vote.utils import RankingMessageTracker
from character_vote.views import (
    EMPTY_STATE_MESSAGE,
    CharacterVoteView,
    MainPanelView,
    SignedOutView,
    open_stats_tab,
    open_vote_tab,
    render_flow,
)

from tests.conftest import make_votes


@pytest.mark.unit
class TestResolveIdentity:
    """사용자 식별 테스트"""

    def test_member(self, mock_user):
        assert resolve_identity(mock_user) == Identity(user_id="111222333", display_name="테스터")

    def test_no_user(self):
        assert resolve_identity(None) is None

    def test_bot_account(self, mock_user):
        mock_user.bot = True
        assert resolve_identity(mock_user) is None


@pytest.mark.unit
class TestEmbedCreation:
    """Embed 생성 함수 테스트"""

    def test_panel_embed(self):
        embed = create_panel_embed()
        assert "캐릭터 투표" in embed.title
        assert [f.name for f in embed.fields] == ["투표", "통계"]

    def test_character_embed(self, catalog, identity):
        flow = VotingFlow(catalog=catalog)
        flow.resolve_identity(identity)
        flow.start({"Walter-White"})

        embed = create_character_embed(flow, flow.current_character)

        assert embed.title == "Jesse Pinkman"
        assert embed.image.url == catalog[1].image
        assert "2/4" in embed.footer.text
        assert "3명" in embed.footer.text

    def test_complete_embed(self):
        assert "완료" in create_complete_embed().title

    def test_signed_out_embed(self):
        assert "로그인" in create_signed_out_embed().description

    def test_rankings_embed_loading(self, catalog, store):
        board = RankingBoard(catalog, store)
        embed = create_rankings_embed(board)
        assert "불러오는 중" in embed.description
        assert len(embed.fields) == 0

    @pytest.mark.asyncio
    async def test_rankings_embed(self, catalog):
        store = InMemoryVoteStore(make_votes([
            ("Walter-White", "like"), ("Walter-White", "like"), ("Hank-Schrader", "dislike")
        ]))
        board = RankingBoard(catalog, store)
        await board.refresh()

        embed = create_rankings_embed(board)
        fields = {f.name: f.value for f in embed.fields}

        beloved = next(v for n, v in fields.items() if "호감 캐릭터" in n and "비호감" not in n)
        hated = next(v for n, v in fields.items() if "비호감" in n)
        neutral = next(v for n, v in fields.items() if "중립" in n)
        assert "Walter White" in beloved and "+2" in beloved
        assert "Hank Schrader" in hated and "-1" in hated
        assert "Jesse" in neutral and "Saul" in neutral
        assert "3개" in embed.footer.text

    @pytest.mark.asyncio
    async def test_rankings_embed_empty_lists(self, catalog, store):
        board = RankingBoard(catalog, store)
        await board.refresh()

        values = [f.value for f in create_rankings_embed(board).fields]
        assert any("영웅이 없습니다" in v for v in values)
        assert any("악당이 없습니다" in v for v in values)

    @pytest.mark.asyncio
    async def test_rankings_embed_error(self, catalog):
        store = MagicMock()
        store.fetch_all_votes = AsyncMock(side_effect=Exception("boom"))
        board = RankingBoard(catalog, store)
        await board.refresh()

        embed = create_rankings_embed(board)
        assert RANKING_ERROR_MESSAGE in embed.description


@pytest.mark.unit
class TestRenderFlow:
    """투표 세션 화면 구성 테스트"""

    @pytest.mark.asyncio
    async def test_render_in_progress(self, catalog, identity, store):
        manager = VotingFlowManager(catalog)
        flow = manager.start_session(identity)
        flow.start(set())

        rendered = render_flow(flow, manager, store)

        assert rendered["embed"].title == "Walter White"
        assert isinstance(rendered["view"], CharacterVoteView)

    @pytest.mark.asyncio
    async def test_render_signed_out(self, catalog, store):
        manager = VotingFlowManager(catalog)
        flow = manager.start_session(None)

        rendered = render_flow(flow, manager, store)

        assert isinstance(rendered["view"], SignedOutView)
        urls = [item.url for item in rendered["view"].children]
        assert all(url.startswith("https://discord.com/") for url in urls)

    @pytest.mark.asyncio
    async def test_render_complete(self, catalog, identity, store):
        manager = VotingFlowManager(catalog)
        flow = manager.start_session(identity)
        flow.start({c.key for c in catalog})

        rendered = render_flow(flow, manager, store)
        assert "완료" in rendered["embed"].title
        assert rendered["view"] is None

    @pytest.mark.asyncio
    async def test_render_nothing_out_of_range(self, catalog, identity, store):
        manager = VotingFlowManager(catalog)
        flow = manager.start_session(identity)
        flow.start(set())
        flow.current_index = 99

        rendered = render_flow(flow, manager, store)
        assert rendered == {"content": EMPTY_STATE_MESSAGE, "embed": None, "view": None}


@pytest.mark.unit
class TestOpenVoteTab:
    """투표 탭 진입 테스트"""

    @pytest.mark.asyncio
    async def test_open_vote_tab(self, mock_interaction, catalog, store):
        await store.insert_vote(Vote("Walter-White", "like", "111222333"))
        manager = VotingFlowManager(catalog)

        flow = await open_vote_tab(mock_interaction, manager, store)

        mock_interaction.response.defer.assert_awaited_once_with(ephemeral=True, thinking=True)
        kwargs = mock_interaction.followup.send.call_args.kwargs
        assert kwargs["ephemeral"] is True
        assert kwargs["embed"].title == "Jesse Pinkman"
        assert isinstance(kwargs["view"], CharacterVoteView)
        assert "content" not in kwargs
        assert manager.get_session("111222333") is flow

    @pytest.mark.asyncio
    async def test_open_vote_tab_signed_out(self, mock_interaction, catalog, store):
        mock_interaction.user.bot = True
        manager = VotingFlowManager(catalog)

        flow = await open_vote_tab(mock_interaction, manager, store)

        assert flow.state is FlowState.UNAUTHENTICATED
        kwargs = mock_interaction.followup.send.call_args.kwargs
        assert isinstance(kwargs["view"], SignedOutView)

    @pytest.mark.asyncio
    async def test_open_vote_tab_schema_alert(self, mock_interaction, catalog):
        store = MagicMock()
        store.fetch_user_votes = AsyncMock(side_effect=SchemaError("no user_id", "42703"))
        manager = VotingFlowManager(catalog)

        flow = await open_vote_tab(mock_interaction, manager, store)

        assert flow.current_index == 0
        mock_interaction.followup.send.assert_awaited_with(SCHEMA_ERROR_MESSAGE, ephemeral=True)

    @pytest.mark.asyncio
    async def test_open_vote_tab_all_voted_releases_session(self, mock_interaction, catalog):
        store = InMemoryVoteStore([Vote(c.key, "like", "111222333") for c in catalog])
        manager = VotingFlowManager(catalog)

        flow = await open_vote_tab(mock_interaction, manager, store)

        assert flow.is_complete
        assert "완료" in mock_interaction.followup.send.call_args.kwargs["embed"].title
        assert manager.get_session("111222333") is None


@pytest.mark.unit
class TestCharacterVoteView:
    """캐릭터 카드 뷰 테스트"""

    @pytest.fixture
    def manager(self, catalog):
        return VotingFlowManager(catalog)

    def start(self, manager, voted=()):
        flow = manager.start_session(Identity(user_id="111222333", display_name="테스터"))
        flow.start(voted)
        return flow

    @pytest.mark.asyncio
    async def test_vote_advances_then_saves(self, mock_interaction, manager, store):
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)

        await view._vote(mock_interaction, "like")

        kwargs = mock_interaction.response.edit_message.call_args.kwargs
        assert kwargs["embed"].title == "Jesse Pinkman"
        assert isinstance(kwargs["view"], CharacterVoteView)
        assert "Walter-White" in flow.voted_keys
        saved = await store.fetch_user_votes("111222333")
        assert [(v.character_key, v.vote_type) for v in saved] == [("Walter-White", "like")]

    @pytest.mark.asyncio
    async def test_button_callback(self, mock_interaction, manager, store):
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)

        await view.dislike.callback(mock_interaction)

        saved = await store.fetch_all_votes()
        assert [(v.character_key, v.vote_type) for v in saved] == [("Walter-White", "dislike")]

    @pytest.mark.asyncio
    async def test_last_vote_shows_complete(self, mock_interaction, manager, store, catalog):
        flow = self.start(manager, {c.key for c in catalog[:-1]})
        view = CharacterVoteView(flow, manager, store)

        await view._vote(mock_interaction, "dislike")

        kwargs = mock_interaction.response.edit_message.call_args.kwargs
        assert "완료" in kwargs["embed"].title
        assert kwargs["view"] is None
        assert flow.is_complete
        assert manager.get_session("111222333") is None

    @pytest.mark.asyncio
    async def test_other_user_rejected(self, mock_interaction, manager, store):
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)
        mock_interaction.user.id = 444

        await view._vote(mock_interaction, "like")

        mock_interaction.response.send_message.assert_awaited_once()
        assert flow.current_index == 0
        assert await store.fetch_all_votes() == []

    @pytest.mark.asyncio
    async def test_expired_card(self, mock_interaction, manager, store):
        old_flow = self.start(manager)
        view = CharacterVoteView(old_flow, manager, store)
        self.start(manager)

        await view._vote(mock_interaction, "like")

        kwargs = mock_interaction.response.edit_message.call_args.kwargs
        assert "만료" in kwargs["content"]
        assert await store.fetch_all_votes() == []

    @pytest.mark.asyncio
    async def test_duplicate_vote_silent(self, mock_interaction, manager):
        store = InMemoryVoteStore([Vote("Walter-White", "like", "111222333")])
        flow = self.start(manager)  # 동기화되지 않은 세션
        view = CharacterVoteView(flow, manager, store)

        await view._vote(mock_interaction, "like")

        mock_interaction.followup.send.assert_not_awaited()
        assert flow.current_index == 1
        assert len(await store.fetch_all_votes()) == 1

    @pytest.mark.asyncio
    async def test_schema_error_alert(self, mock_interaction, manager):
        store = MagicMock()
        store.insert_vote = AsyncMock(side_effect=SchemaError("no user_id", "42703"))
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)

        await view._vote(mock_interaction, "like")

        mock_interaction.followup.send.assert_awaited_once_with(SCHEMA_ERROR_MESSAGE, ephemeral=True)
        assert flow.current_index == 1

    @pytest.mark.asyncio
    async def test_double_click_votes_once(self, mock_interaction, manager, store):
        """카드 갱신 전에 두 번 눌러도 화면에 보인 캐릭터에만 한 번 투표"""
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)

        async def slow_edit(**kwargs):
            await asyncio.sleep(0.01)

        mock_interaction.response.edit_message = AsyncMock(side_effect=slow_edit)

        await asyncio.gather(
            view._vote(mock_interaction, "like"),
            view._vote(mock_interaction, "like"),
        )

        saved = await store.fetch_all_votes()
        assert [v.character_key for v in saved] == ["Walter-White"]
        assert flow.current_index == 1
        mock_interaction.response.edit_message.assert_awaited_once()
        mock_interaction.response.send_message.assert_awaited_once_with(
            "⌛ 이미 투표한 카드입니다.", ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_vote_saved_when_card_edit_fails(self, mock_interaction, manager, store):
        """카드 갱신이 실패해도 투표는 저장"""
        flow = self.start(manager)
        view = CharacterVoteView(flow, manager, store)
        mock_interaction.response.edit_message = AsyncMock(
            side_effect=discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown interaction")
        )

        await view._vote(mock_interaction, "like")

        saved = await store.fetch_all_votes()
        assert [(v.character_key, v.vote_type) for v in saved] == [("Walter-White", "like")]
        assert "Walter-White" in flow.voted_keys
        assert flow.current_index == 1


@pytest.mark.unit
class TestStatsTab:
    """통계 탭 및 순위 메시지 갱신 테스트"""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        channel = MagicMock()
        channel.get_partial_message.return_value.edit = AsyncMock()
        client.get_channel.return_value = channel
        return client

    @pytest.mark.asyncio
    async def test_open_stats_tab_tracks_message(self, mock_interaction, catalog, store, client):
        board = RankingBoard(catalog, store)
        tracker = RankingMessageTracker(client)

        await open_stats_tab(mock_interaction, board, tracker)

        mock_interaction.response.defer.assert_awaited_once_with(thinking=True)
        embed = mock_interaction.followup.send.call_args.kwargs["embed"]
        assert "순위" in embed.title
        assert board.loading is False
        assert len(tracker) == 1

    @pytest.mark.asyncio
    async def test_tracked_messages_updated_on_insert(self, catalog, store, client):
        board = RankingBoard(catalog, store)
        tracker = RankingMessageTracker(client)
        board.add_listener(tracker.update_all)
        await store.subscribe_inserts(board.request_refresh)
        tracker.track(987654321, 999888777)

        await store.insert_vote(Vote("Saul-Goodman", "like", "1"))
        await board.wait_idle()

        channel = client.get_channel.return_value
        channel.get_partial_message.assert_called_with(999888777)
        embed = channel.get_partial_message.return_value.edit.call_args.kwargs["embed"]
        assert any("Saul Goodman" in f.value for f in embed.fields)

    @pytest.mark.asyncio
    async def test_deleted_message_forgotten(self, catalog, store, client):
        board = RankingBoard(catalog, store)
        tracker = RankingMessageTracker(client)
        tracker.track(987654321, 999888777)
        not_found = discord.NotFound(MagicMock(status=404, reason="Not Found"), "Unknown Message")
        client.get_channel.return_value.get_partial_message.return_value.edit = AsyncMock(side_effect=not_found)

        await tracker.update_all(board)

        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_missing_channel_forgotten(self, catalog, store, client):
        client.get_channel.return_value = None
        tracker = RankingMessageTracker(client)
        tracker.track(1, 2)

        await tracker.update_all(RankingBoard(catalog, store))

        assert len(tracker) == 0

    def test_tracker_limit(self, client):
        tracker = RankingMessageTracker(client, max_messages=2)
        tracker.track(1, 1)
        tracker.track(1, 2)
        tracker.track(1, 3)
        assert len(tracker) == 2


@pytest.mark.unit
class TestMainPanelView:
    """메인 패널 뷰 테스트"""

    @pytest.mark.asyncio
    async def test_panel_is_persistent(self, catalog, store):
        view = MainPanelView(VotingFlowManager(catalog), store, RankingBoard(catalog, store), MagicMock())
        assert view.timeout is None
        assert view.is_persistent()

    @pytest.mark.asyncio
    async def test_vote_tab_button(self, mock_interaction, catalog, store):
        manager = VotingFlowManager(catalog)
        view = MainPanelView(manager, store, RankingBoard(catalog, store), MagicMock())

        await view.vote_tab.callback(mock_interaction)

        assert manager.get_session("111222333").state is FlowState.IN_PROGRESS
