"""pytest 공통 설정 및 fixtures"""
from unittest.mock import AsyncMock, MagicMock

import pytest

try:
    import discord
except ImportError:
    raise ImportError(
        "discord.py가 설치되지 않았습니다.\n"
        "실행: pip install -e .[test]"
    )

from character_vote.catalog import Character
from character_vote.identity import Identity
from character_vote.models import Vote
from character_vote.store import InMemoryVoteStore


def make_character(first_name: str, last_name: str) -> Character:
    return Character(first_name, last_name, f"https://picsum.photos/seed/{first_name}-{last_name}/400/500")


def make_votes(pairs, user_prefix: str = "user") -> list[Vote]:
    """[(캐릭터 키, 투표 종류), ...] → 서로 다른 사용자의 Vote 목록"""
    return [
        Vote(key, vote_type, f"{user_prefix}{idx}")
        for idx, (key, vote_type) in enumerate(pairs)
    ]


# ==================== Discord Mock Fixtures ====================

@pytest.fixture
def mock_user():
    """Mock Discord User"""
    user = MagicMock(spec=discord.Member)
    user.id = 111222333
    user.name = "tester"
    user.display_name = "테스터"
    user.bot = False
    return user


@pytest.fixture
def mock_interaction(mock_user):
    """Mock Discord Interaction (response / followup 포함)"""
    interaction = MagicMock(spec=discord.Interaction)
    interaction.user = mock_user

    interaction.response = MagicMock()
    interaction.response.defer = AsyncMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.edit_message = AsyncMock()
    interaction.response.is_done = MagicMock(return_value=False)

    sent_message = MagicMock()
    sent_message.id = 999888777
    sent_message.channel.id = 987654321
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock(return_value=sent_message)
    return interaction


# ==================== 테스트 데이터 Fixtures ====================

@pytest.fixture
def catalog():
    """샘플 캐릭터 카탈로그 (4명)"""
    return [
        make_character("Walter", "White"),
        make_character("Jesse", "Pinkman"),
        make_character("Saul", "Goodman"),
        make_character("Hank", "Schrader"),
    ]


@pytest.fixture
def identity():
    return Identity(user_id="111222333", display_name="테스터")


@pytest.fixture
def store():
    """빈 메모리 저장소"""
    return InMemoryVoteStore()
