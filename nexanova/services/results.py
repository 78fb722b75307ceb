"""Plain result structures returned by the rewards engine."""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass(frozen=True)
class GrantedBadge:
    id: Optional[int]
    category: str
    title: str
    description: Optional[str] = None


@dataclass(frozen=True)
class AwardResult:
    delta: int
    reason: str
    total: int
    level: int
    previous_level: int

    @property
    def leveled_up(self) -> bool:
        return self.level > self.previous_level


@dataclass
class HabitState:
    habit_id: int
    streak: int
    longest_streak: int
    total_completions: int
    last_completed: Optional[date]


@dataclass
class CompletionResult:
    habit_id: int
    day: date
    streak: int
    longest_streak: int
    total_completions: int
    last_completed: Optional[date]
    points: Optional[int] = None
    level: Optional[int] = None
    leveled_up: bool = False
    points_awarded: int = 0
    badges_granted: List[GrantedBadge] = field(default_factory=list)
    already_completed: bool = False
    # Names of best-effort steps (badges, points) that failed and were rolled back
    secondary_failures: List[str] = field(default_factory=list)


@dataclass
class SavingsProgressResult:
    goal_id: int
    title: str
    target_amount: float
    current_amount: float
    is_completed: bool
    just_completed: bool = False
    points: Optional[int] = None
    level: Optional[int] = None
    leveled_up: bool = False
    points_awarded: int = 0
    badges_granted: List[GrantedBadge] = field(default_factory=list)
    secondary_failures: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressSummary:
    user_id: int
    total_points: int
    level: int
    next_level_at: Optional[int]
    points_to_next_level: Optional[int]
