"""Daily, weekly and story quests tracked against the character's counters.

Story quests complete once per character and are remembered as
``quest:<id>`` achievements, so they travel with the remote record. Daily
and weekly quests measure progress from a baseline taken when their period
starts; that baseline lives only in the session.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field

from shared.exceptions import NotFoundError

from .events import StateChange, StateEvent
from .state import CharacterState

logger = Logger(child=True)

QUEST_ACHIEVEMENT_PREFIX = "quest:"

# Changes that can move quest progress
PROGRESS_EVENTS = (
    StateEvent.BATTLE_WON,
    StateEvent.LEVEL_UP,
    StateEvent.GOLD_CHANGED,
    StateEvent.XP_CHANGED,
    StateEvent.DUNGEON_COMPLETED,
)

Clock = Callable[[], datetime]


class QuestType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    STORY = "story"
    ACHIEVEMENT = "achievement"


class RequirementType(str, Enum):
    BATTLES_WON = "battles_won"
    LEVEL_REACH = "level_reach"
    GOLD_EARN = "gold_earn"
    XP_EARN = "xp_earn"
    DUNGEON_COMPLETE = "dungeon_complete"


class QuestDefinition(BaseModel):
    """A quest: what to do, what it pays, and when it is offered."""

    id: str
    name: str
    description: str
    quest_type: QuestType
    requirement_type: RequirementType
    requirement_value: int = Field(ge=1)
    reward_xp: int = Field(default=0, ge=0)
    reward_gold: int = Field(default=0, ge=0)
    is_repeatable: bool = False
    unlock_level: int = Field(default=1, ge=1)


class QuestProgress(BaseModel):
    """Progress towards one quest."""

    quest_id: str
    current: int
    required: int
    completed: bool

    @property
    def percent(self) -> int:
        return min(100, self.current * 100 // self.required)


def _quest(quest_id, name, description, quest_type, requirement, value, xp, gold, repeatable=False):
    return QuestDefinition(
        id=quest_id,
        name=name,
        description=description,
        quest_type=quest_type,
        requirement_type=requirement,
        requirement_value=value,
        reward_xp=xp,
        reward_gold=gold,
        is_repeatable=repeatable,
    )


QUEST_CATALOG: dict[str, QuestDefinition] = {
    q.id: q
    for q in (
        _quest("daily_battles_3", "Battle Practice", "Win 3 battles today.",
               QuestType.DAILY, RequirementType.BATTLES_WON, 3, 75, 35, repeatable=True),
        _quest("weekly_dungeon", "Dungeon Master", "Complete a dungeon this week.",
               QuestType.WEEKLY, RequirementType.DUNGEON_COMPLETE, 1, 400, 200, repeatable=True),
        _quest("weekly_battles_20", "Battle Veteran", "Win 20 battles this week.",
               QuestType.WEEKLY, RequirementType.BATTLES_WON, 20, 350, 175, repeatable=True),
        _quest("story_first_battle", "First Blood", "Win your first battle.",
               QuestType.STORY, RequirementType.BATTLES_WON, 1, 100, 50),
        _quest("story_level_5", "Rising Star", "Reach level 5.",
               QuestType.STORY, RequirementType.LEVEL_REACH, 5, 200, 100),
        _quest("story_level_10", "Seasoned Adventurer", "Reach level 10.",
               QuestType.STORY, RequirementType.LEVEL_REACH, 10, 400, 200),
        _quest("story_first_dungeon", "Dungeon Crawler", "Complete your first dungeon.",
               QuestType.STORY, RequirementType.DUNGEON_COMPLETE, 1, 300, 150),
        _quest("story_level_25", "Elite Warrior", "Reach level 25.",
               QuestType.STORY, RequirementType.LEVEL_REACH, 25, 800, 400),
        _quest("story_level_50", "Legendary Hero", "Reach the maximum level.",
               QuestType.STORY, RequirementType.LEVEL_REACH, 50, 2000, 1000),
    )
}


def period_start(quest_type: QuestType, now: datetime) -> date | None:
    """First day of the period a repeatable quest resets on.

    Daily quests reset each day and weekly quests each Monday. Other quest
    types never reset and return None.
    """
    today = now.date()
    if quest_type == QuestType.DAILY:
        return today
    if quest_type == QuestType.WEEKLY:
        return today - timedelta(days=today.weekday())
    return None


def _utc_now() -> datetime:
    return datetime.now(UTC)


class QuestLog:
    """Tracks quest progress for one character and pays out rewards."""

    def __init__(
        self,
        state: CharacterState,
        catalog: dict[str, QuestDefinition] | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        """Initialize quest log.

        Args:
            state: Character whose counters drive progress
            catalog: Quests on offer (the built-in catalog if omitted)
            clock: Source of the current time, for daily and weekly resets
        """
        self.state = state
        self.catalog = catalog if catalog is not None else QUEST_CATALOG
        self.clock = clock
        self._baselines: dict[str, int] = {}
        self._periods: dict[str, date | None] = {}
        self._completed_this_period: set[str] = set()
        self._checking = False
        self._attached = False
        self.rebaseline()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_quest(self, quest_id: str) -> QuestDefinition:
        """Look up a quest.

        Raises:
            NotFoundError: If the quest is not in the catalog
        """
        quest = self.catalog.get(quest_id)
        if quest is None:
            raise NotFoundError("Quest", quest_id)
        return quest

    def is_completed(self, quest_id: str) -> bool:
        quest = self.get_quest(quest_id)
        if quest.is_repeatable:
            self._roll_periods()
            return quest_id in self._completed_this_period
        return self.state.has_achievement(QUEST_ACHIEVEMENT_PREFIX + quest_id)

    def progress(self, quest_id: str) -> QuestProgress:
        """Current progress towards ``quest_id``."""
        quest = self.get_quest(quest_id)
        self._roll_periods()
        return QuestProgress(
            quest_id=quest_id,
            current=min(self._measure_progress(quest), quest.requirement_value),
            required=quest.requirement_value,
            completed=self.is_completed(quest_id),
        )

    def available(self) -> list[QuestDefinition]:
        """Unlocked quests not yet completed (this period, for repeatable ones)."""
        return [
            quest
            for quest in self.catalog.values()
            if quest.unlock_level <= self.state.level and not self.is_completed(quest.id)
        ]

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def check_completions(self) -> list[QuestDefinition]:
        """Complete every quest whose requirement is met and pay its reward.

        Rewards can themselves finish further quests (XP that levels the
        character up), so this repeats until nothing new completes. Calls
        made while rewards are being paid out are ignored.

        Returns:
            Quests completed by this call, in completion order
        """
        if self._checking:
            return []
        self._checking = True
        completed: list[QuestDefinition] = []
        try:
            while True:
                ready = [q for q in self.available() if self._measure_progress(q) >= q.requirement_value]
                if not ready:
                    break
                for quest in ready:
                    self._complete(quest)
                    completed.append(quest)
        finally:
            self._checking = False
        return completed

    def rebaseline(self) -> None:
        """Restart every repeatable quest's progress from the current counters."""
        now = self.clock()
        self._completed_this_period.clear()
        for quest in self.catalog.values():
            if quest.is_repeatable:
                self._baselines[quest.id] = self._counter(quest.requirement_type)
                self._periods[quest.id] = period_start(quest.quest_type, now)

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Check for completions whenever progress may have moved."""
        if self._attached:
            return
        for event in PROGRESS_EVENTS:
            self.state.subscribe(event, self._on_progress)
        self.state.subscribe(StateEvent.RESET, self._on_new_character)
        self.state.subscribe(StateEvent.CLOUD_LOADED, self._on_new_character)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event in PROGRESS_EVENTS:
            self.state.unsubscribe(event, self._on_progress)
        self.state.unsubscribe(StateEvent.RESET, self._on_new_character)
        self.state.unsubscribe(StateEvent.CLOUD_LOADED, self._on_new_character)
        self._attached = False

    def _on_progress(self, change: StateChange) -> None:
        self.check_completions()

    def _on_new_character(self, change: StateChange) -> None:
        self.rebaseline()
        self.check_completions()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _counter(self, requirement: RequirementType) -> int:
        state = self.state
        if requirement == RequirementType.BATTLES_WON:
            return state.battles_won
        if requirement == RequirementType.LEVEL_REACH:
            return state.level
        if requirement == RequirementType.GOLD_EARN:
            return state.total_gold_earned
        if requirement == RequirementType.XP_EARN:
            return state.xp
        return state.dungeons_completed

    def _measure_progress(self, quest: QuestDefinition) -> int:
        value = self._counter(quest.requirement_type)
        if quest.is_repeatable and quest.requirement_type != RequirementType.LEVEL_REACH:
            value -= self._baselines.get(quest.id, 0)
        return max(0, value)

    def _roll_periods(self) -> None:
        now = self.clock()
        for quest in self.catalog.values():
            if not quest.is_repeatable:
                continue
            start = period_start(quest.quest_type, now)
            if self._periods.get(quest.id) != start:
                self._periods[quest.id] = start
                self._baselines[quest.id] = self._counter(quest.requirement_type)
                self._completed_this_period.discard(quest.id)
                logger.debug("Quest period reset", extra={"quest_id": quest.id})

    def _complete(self, quest: QuestDefinition) -> None:
        if quest.is_repeatable:
            self._completed_this_period.add(quest.id)
        else:
            self.state.award_achievement(QUEST_ACHIEVEMENT_PREFIX + quest.id)

        logger.info(
            "Quest completed",
            extra={"quest_id": quest.id, "reward_xp": quest.reward_xp, "reward_gold": quest.reward_gold},
        )
        if quest.reward_gold:
            self.state.add_gold(quest.reward_gold)
        if quest.reward_xp:
            self.state.add_xp(quest.reward_xp)
        self.state.notify(
            StateEvent.QUEST_COMPLETED,
            quest_id=quest.id,
            reward_xp=quest.reward_xp,
            reward_gold=quest.reward_gold,
        )
