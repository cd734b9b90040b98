"""
캐릭터 투표 시스템 UI 컴포넌트

주요 클래스:
- MainPanelView: 투표 / 통계 탭 선택 패널
- CharacterVoteView: 캐릭터 카드 (좋아요 / 싫어요)
- SignedOutView: 로그인 / 가입 안내

탭 진입 함수:
- open_vote_tab: 사용자별 투표 세션 시작 후 첫 캐릭터 표시
- open_stats_tab: 전체 순위 새로고침 후 표시
"""
import logging
from typing import Any, Dict

import discord
from discord.ui import Button, View

from .constants import (
    VOTE_LIKE,
    VOTE_DISLIKE,
    VOTE_LABELS,
    VOTE_VIEW_TIMEOUT,
    DISCORD_LOGIN_URL,
    DISCORD_REGISTER_URL,
    SCHEMA_ERROR_MESSAGE,
)
from .embeds import (
    create_character_embed,
    create_complete_embed,
    create_signed_out_embed,
    create_rankings_embed,
)
from .identity import resolve_identity
from .models import FlowState, InvalidFlowState, VoteOutcome, VotingFlow, VotingFlowManager
from .ranking import RankingBoard
from .store import VoteStore
from .utils import RankingMessageTracker

logger = logging.getLogger(__name__)

EMPTY_STATE_MESSAGE = "표시할 캐릭터가 없습니다."


def render_flow(flow: VotingFlow, manager: VotingFlowManager, store: VoteStore) -> Dict[str, Any]:
    """
    투표 세션 상태에 맞는 메시지 구성

    Returns:
        content / embed / view 키워드 인자
    """
    if flow.state is FlowState.UNAUTHENTICATED:
        return {"content": None, "embed": create_signed_out_embed(), "view": SignedOutView()}

    if flow.state is FlowState.COMPLETE:
        return {"content": None, "embed": create_complete_embed(), "view": None}

    character = flow.current_character
    if character is None:
        # 카탈로그가 비었거나 위치가 범위를 벗어난 경우
        return {"content": EMPTY_STATE_MESSAGE, "embed": None, "view": None}

    return {
        "content": None,
        "embed": create_character_embed(flow, character),
        "view": CharacterVoteView(flow, manager, store),
    }


def _send_kwargs(rendered: Dict[str, Any]) -> Dict[str, Any]:
    """followup.send는 None 값을 받지 않으므로 제거"""
    return {k: v for k, v in rendered.items() if v is not None}


async def open_vote_tab(
    interaction: discord.Interaction,
    manager: VotingFlowManager,
    store: VoteStore
) -> VotingFlow:
    """
    투표 탭 열기

    - 로그인 확인 → 기존 투표 조회 → 첫 미투표 캐릭터 표시
    - 조회 중에는 Discord "생각 중..." 상태가 로딩 표시 역할
    """
    await interaction.response.defer(ephemeral=True, thinking=True)

    flow = manager.start_session(resolve_identity(interaction.user))
    failure = None
    if flow.state is FlowState.AWAITING_FIRST_INDEX:
        failure = await flow.load(store)

    manager.release_if_complete(flow)

    rendered = render_flow(flow, manager, store)
    await interaction.followup.send(**_send_kwargs(rendered), ephemeral=True)

    if failure is VoteOutcome.SCHEMA_ERROR:
        await interaction.followup.send(SCHEMA_ERROR_MESSAGE, ephemeral=True)

    logger.info(f"투표 탭 열기: {interaction.user.name} (상태: {flow.state.value})")
    return flow


async def open_stats_tab(
    interaction: discord.Interaction,
    board: RankingBoard,
    tracker: RankingMessageTracker
) -> None:
    """통계 탭 열기 (전체 재계산 후 표시, 이후 새 투표마다 자동 갱신)"""
    await interaction.response.defer(thinking=True)

    await board.refresh()

    message = await interaction.followup.send(embed=create_rankings_embed(board), wait=True)
    tracker.track(message.channel.id, message.id)

    logger.info(f"통계 탭 열기: {interaction.user.name} (추적 메시지 {len(tracker)}개)")


class SignedOutView(View):
    """로그인 / 가입 안내 뷰 (링크 버튼)"""

    def __init__(self):
        super().__init__(timeout=None)
        self.add_item(Button(label="로그인", style=discord.ButtonStyle.link, url=DISCORD_LOGIN_URL))
        self.add_item(Button(label="가입하기", style=discord.ButtonStyle.link, url=DISCORD_REGISTER_URL))


class CharacterVoteView(View):
    """캐릭터 카드 뷰 (본인 전용)"""

    def __init__(self, flow: VotingFlow, manager: VotingFlowManager, store: VoteStore):
        super().__init__(timeout=VOTE_VIEW_TIMEOUT)
        self.flow = flow
        self.manager = manager
        self.store = store
        # 이 카드가 보여주는 캐릭터 위치
        self.current_index = flow.current_index

    @discord.ui.button(label=VOTE_LABELS[VOTE_LIKE], style=discord.ButtonStyle.success)
    async def like(self, interaction: discord.Interaction, button: Button):
        """좋아요 버튼"""
        await self._vote(interaction, VOTE_LIKE)

    @discord.ui.button(label=VOTE_LABELS[VOTE_DISLIKE], style=discord.ButtonStyle.danger)
    async def dislike(self, interaction: discord.Interaction, button: Button):
        """싫어요 버튼"""
        await self._vote(interaction, VOTE_DISLIKE)

    async def _vote(self, interaction: discord.Interaction, vote_type: str) -> None:
        # 본인 세션 확인
        if str(interaction.user.id) != self.flow.user_id:
            await interaction.response.send_message("❌ 본인의 투표 카드만 누를 수 있습니다!", ephemeral=True)
            return

        # 이미 투표가 처리된 카드 (연속 클릭 등)
        if self.flow.state is not FlowState.IN_PROGRESS or self.flow.current_index != self.current_index:
            await interaction.response.send_message("⌛ 이미 투표한 카드입니다.", ephemeral=True)
            return

        # 새 세션이 시작되면 이전 카드는 만료
        if self.manager.get_session(self.flow.user_id) is not self.flow:
            await interaction.response.edit_message(
                content="⌛ 새 투표 세션이 시작되어 이 카드는 만료되었습니다.",
                embed=None,
                view=None
            )
            return

        try:
            pending = self.flow.cast_vote(vote_type)
        except InvalidFlowState:
            await interaction.response.send_message("❌ 투표할 캐릭터가 없습니다!", ephemeral=True)
            return
        self.stop()
        self.manager.release_if_complete(self.flow)

        # 다음 캐릭터를 먼저 보여주고 저장은 그 다음에 진행
        try:
            await interaction.response.edit_message(**render_flow(self.flow, self.manager, self.store))
        except discord.HTTPException as e:
            logger.warning(f"⚠️ 투표 카드 갱신 실패 - 저장은 계속 진행: {e}")

        outcome = await self.flow.submit(self.store, pending)
        if outcome is VoteOutcome.SCHEMA_ERROR:
            await interaction.followup.send(SCHEMA_ERROR_MESSAGE, ephemeral=True)


class MainPanelView(View):
    """메인 패널 뷰 (투표 / 통계 탭)"""

    def __init__(
        self,
        manager: VotingFlowManager,
        store: VoteStore,
        board: RankingBoard,
        tracker: RankingMessageTracker
    ):
        super().__init__(timeout=None)
        self.manager = manager
        self.store = store
        self.board = board
        self.tracker = tracker

    @discord.ui.button(
        label="투표",
        emoji="🗳️",
        style=discord.ButtonStyle.primary,
        custom_id="character_vote_tab_btn"
    )
    async def vote_tab(self, interaction: discord.Interaction, button: Button):
        """투표 탭 버튼"""
        await open_vote_tab(interaction, self.manager, self.store)

    @discord.ui.button(
        label="통계",
        emoji="📊",
        style=discord.ButtonStyle.secondary,
        custom_id="character_stats_tab_btn"
    )
    async def stats_tab(self, interaction: discord.Interaction, button: Button):
        """통계 탭 버튼"""
        await open_stats_tab(interaction, self.board, self.tracker)
