"""Who may read and write which messages, and which roles a viewer may see.

Every function here is pure: (viewer, message or category, phase) in, answer out.
A viewer of None is someone watching the room without a seat.
"""

from typing import Iterable

from game.rules import MessageCategory, Phase, PlayerStatus, Role
from game.state import Message, Player

# Announcements every viewer sees in every phase
_PUBLIC_CATEGORIES = (MessageCategory.SYSTEM, MessageCategory.PHASE)


def can_view(viewer: Player | None, message: Message, phase: Phase) -> bool:
    """True when viewer is entitled to see message during phase."""
    category = message.category
    if category in _PUBLIC_CATEGORIES:
        return True
    if category == MessageCategory.GLOBAL:
        return phase != Phase.NIGHT
    if viewer is None or phase != Phase.NIGHT:
        return False
    if category == MessageCategory.ROLE:
        return viewer.role == Role.MAFIA
    if category == MessageCategory.INSPECT:
        return viewer.role == Role.POLICE and message.author_id == viewer.id
    return False


def filter_messages(
    viewer: Player | None,
    messages: Iterable[Message],
    phase: Phase,
) -> list[Message]:
    return [m for m in messages if can_view(viewer, m, phase)]


def send_denial(
    viewer: Player | None,
    category: MessageCategory,
    phase: Phase,
) -> str | None:
    """Reason viewer may not send in category during phase, or None if allowed."""
    if viewer is None:
        return "Only seated players can send messages."
    if viewer.status == PlayerStatus.DEAD:
        return "You are eliminated and cannot send messages."
    if viewer.status != PlayerStatus.ALIVE:
        return "Spectators cannot send messages."
    if category == MessageCategory.ROLE:
        if phase != Phase.NIGHT:
            return "Role chat is only open during the night."
        if viewer.role != Role.MAFIA:
            return "Only mafia players can send in role chat during night."
        return None
    if category == MessageCategory.GLOBAL:
        if phase == Phase.NIGHT:
            return "Global chat is closed during the night."
        return None
    return f"Players cannot send {category.value} messages."


def default_category(phase: Phase) -> MessageCategory:
    """Chat box target: role chat at night, global otherwise."""
    return MessageCategory.ROLE if phase == Phase.NIGHT else MessageCategory.GLOBAL


def visible_role(viewer: Player | None, player: Player, phase: Phase) -> Role | None:
    """
    Role of player as shown to viewer: your own, fellow mafia if you are mafia,
    and everyone's once the game has ended.
    """
    if phase == Phase.ENDED:
        return player.role
    if viewer is None:
        return None
    if viewer.id == player.id:
        return player.role
    if viewer.role == Role.MAFIA and player.role == Role.MAFIA:
        return player.role
    return None
