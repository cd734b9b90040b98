"""
사용자 식별 (Discord 계정 기반)
"""
from dataclasses import dataclass
from typing import Optional, Union

import discord


@dataclass(frozen=True)
class Identity:
    """로그인한 사용자 정보"""
    user_id: str
    display_name: str


def resolve_identity(user: Optional[Union[discord.User, discord.Member]]) -> Optional[Identity]:
    """
    Discord 사용자를 투표자 정보로 변환

    Args:
        user: Interaction의 사용자 (없을 수 있음)

    Returns:
        Identity (사용자가 없거나 봇 계정이면 None = 로그아웃 상태)
    """
    if user is None or getattr(user, "bot", False):
        return None
    return Identity(user_id=str(user.id), display_name=user.display_name)
