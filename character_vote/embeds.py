"""
캐릭터 투표 시스템 Embed 생성 함수

주요 기능:
- 캐릭터 카드 Embed 생성
- 투표 완료 / 로그인 안내 Embed 생성
- 순위 Embed 생성
"""
import logging
from typing import List

import discord

from config import DISCORD_FIELD_MAX_LENGTH
from .catalog import Character
from .models import VotingFlow
from .ranking import RankingBoard, RankedCharacter

logger = logging.getLogger(__name__)


def create_panel_embed() -> discord.Embed:
    """메인 패널 Embed (투표 / 통계 탭 선택)"""
    embed = discord.Embed(
        title="🗳️ 캐릭터 투표",
        description="캐릭터마다 👍 좋아요 / 👎 싫어요를 눌러주세요!\n전체 사용자의 투표로 순위가 매겨집니다.",
        color=discord.Color.blurple()
    )
    embed.add_field(name="투표", value="아직 투표하지 않은 캐릭터를 순서대로 보여드립니다.", inline=True)
    embed.add_field(name="통계", value="좋아요 - 싫어요 순점수 순위를 보여드립니다.", inline=True)
    return embed


def create_character_embed(flow: VotingFlow, character: Character) -> discord.Embed:
    """
    캐릭터 카드 Embed 생성

    Args:
        flow: 투표 세션 (진행 상황 표시용)
        character: 현재 투표 대상

    Returns:
        캐릭터 카드 Embed
    """
    embed = discord.Embed(
        title=character.full_name,
        color=discord.Color.blue()
    )
    embed.set_image(url=character.image)
    embed.set_footer(
        text=f"{flow.current_index + 1}/{len(flow.catalog)} | 남은 캐릭터: {flow.remaining}명"
    )
    return embed


def create_complete_embed() -> discord.Embed:
    """모든 캐릭터 투표 완료 Embed"""
    return discord.Embed(
        title="🎉 모두 완료!",
        description="모든 캐릭터에 투표하셨습니다.\n`/통계`에서 전체 순위를 확인해보세요!",
        color=discord.Color.green()
    )


def create_signed_out_embed() -> discord.Embed:
    """로그인 안내 Embed"""
    return discord.Embed(
        title="캐릭터 투표에 오신 것을 환영합니다!",
        description="투표하려면 Discord 계정으로 로그인해주세요.\n계정이 없다면 아래 버튼에서 가입할 수 있습니다.",
        color=discord.Color.light_grey()
    )


def create_rankings_embed(board: RankingBoard) -> discord.Embed:
    """
    순위 Embed 생성

    Args:
        board: 순위 보드

    Returns:
        호감 / 비호감 / 중립 필드를 가진 Embed
    """
    embed = discord.Embed(
        title="📊 전체 순위 (순점수)",
        color=discord.Color.gold()
    )

    if board.loading:
        embed.description = "점수를 불러오는 중..."
        return embed

    if board.error:
        embed.description = f"❌ {board.error}"
        embed.color = discord.Color.red()

    rankings = board.rankings
    embed.add_field(
        name="💚 호감 캐릭터 (양수)",
        value=_format_ranked(rankings.beloved) or "아직 영웅이 없습니다...",
        inline=True
    )
    embed.add_field(
        name="💔 비호감 캐릭터 (음수)",
        value=_format_ranked(rankings.hated) or "아직 악당이 없습니다...",
        inline=True
    )

    if rankings.neutral:
        embed.add_field(
            name="😐 중립 / 점수 없음",
            value=_truncate(", ".join(r.character.first_name for r in rankings.neutral)),
            inline=False
        )

    embed.set_footer(text=f"총 {board.vote_count}개의 투표 | 새 투표가 들어오면 자동으로 갱신됩니다")
    logger.debug(
        f"순위 Embed 생성 (호감 {len(rankings.beloved)}, 비호감 {len(rankings.hated)}, "
        f"중립 {len(rankings.neutral)})"
    )
    return embed


def _format_ranked(ranked: List[RankedCharacter]) -> str:
    """순위 목록을 텍스트로 포맷팅"""
    lines = []
    for idx, item in enumerate(ranked, 1):
        lines.append(f"`{idx:2d}.` {item.character.full_name} **{item.score:+d}**")
    return _truncate("\n".join(lines))


def _truncate(text: str) -> str:
    """Embed 필드 길이 제한에 맞게 자르기"""
    if len(text) <= DISCORD_FIELD_MAX_LENGTH:
        return text
    return text[:DISCORD_FIELD_MAX_LENGTH - 1] + "…"
