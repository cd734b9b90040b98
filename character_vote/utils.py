"""
캐릭터 투표 시스템 유틸리티

주요 기능:
- 게시된 순위 메시지 추적 및 자동 갱신
"""
import logging
from collections import OrderedDict
from typing import Tuple

import discord

from .constants import MAX_TRACKED_RANKING_MESSAGES
from .embeds import create_rankings_embed
from .ranking import RankingBoard

logger = logging.getLogger(__name__)


class RankingMessageTracker:
    """순위 메시지 목록 (오래된 것부터 밀려남)"""

    def __init__(self, client: discord.Client, max_messages: int = MAX_TRACKED_RANKING_MESSAGES):
        self.client = client
        self.max_messages = max_messages
        # {(channel_id, message_id): None}
        self._messages: "OrderedDict[Tuple[int, int], None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._messages)

    def track(self, channel_id: int, message_id: int) -> None:
        self._messages[(channel_id, message_id)] = None
        while len(self._messages) > self.max_messages:
            self._messages.popitem(last=False)

    def forget(self, channel_id: int, message_id: int) -> None:
        self._messages.pop((channel_id, message_id), None)

    async def update_all(self, board: RankingBoard) -> None:
        """
        추적 중인 순위 메시지를 모두 갱신 (RankingBoard 리스너)

        Note:
            - 삭제된 메시지/채널은 추적 목록에서 제거
            - 그 외 실패는 로깅만 하고 다음 메시지 진행
        """
        if not self._messages:
            return

        embed = create_rankings_embed(board)
        for channel_id, message_id in list(self._messages):
            channel = self.client.get_channel(channel_id)
            if channel is None:
                logger.debug(f"채널을 찾을 수 없음 - 추적 해제 (channel_id: {channel_id})")
                self.forget(channel_id, message_id)
                continue

            try:
                await channel.get_partial_message(message_id).edit(embed=embed)
            except discord.NotFound:
                logger.info(f"순위 메시지가 삭제됨 - 추적 해제 (message_id: {message_id})")
                self.forget(channel_id, message_id)
            except discord.Forbidden:
                logger.error(f"순위 메시지 갱신 실패: 권한 없음 (message_id: {message_id})")
                self.forget(channel_id, message_id)
            except discord.HTTPException as e:
                logger.warning(f"순위 메시지 갱신 실패: {e} (message_id: {message_id})")

        logger.debug(f"순위 메시지 {len(self._messages)}개 갱신")
