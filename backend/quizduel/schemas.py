
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from .models import BonusPolicyName, FinaleState, Media, PlayerState, Question, Side, Stage


class CreateSessionIn(BaseModel):
    session_id: str = Field(min_length=1)
    bonus_policy: Optional[BonusPolicyName] = None


class AdminUpsertQuestionsIn(BaseModel):
    session_id: str
    questions: List[Question]


class ResetSessionIn(BaseModel):
    session_id: str


class SideIn(BaseModel):
    side: Side


class AwardIn(SideIn):
    amount: Literal[1, 2, 3]


class AdjustIn(SideIn):
    delta: int


class WagerIn(SideIn):
    amount: int


class FinalizeIn(SideIn):
    outcome: Literal["correct", "wrong"]


class RenameIn(SideIn):
    name: str


class QuestionOut(BaseModel):
    id: str
    category: str
    points: int
    prompt: str
    media: Optional[Media] = None
    # revealed from the ANSWER stage on
    answer: Optional[str] = None
    fact: Optional[str] = None


class PowerOut(BaseModel):
    available: bool
    armed_index: Optional[int]
    can_arm: bool


class ResultsOut(BaseModel):
    winner: Optional[Side]
    draw: bool
    scores: Dict[str, int]
    longest_streaks: Dict[str, int]


class PublicGameOut(BaseModel):
    id: str
    stage: Stage
    index: int
    total_questions: int
    is_finale: bool
    bonus_policy: BonusPolicyName
    question: QuestionOut
    players: Dict[str, PlayerState]
    last_correct: Optional[Side]
    multipliers: Dict[str, int]
    power: Dict[str, PowerOut]
    finale: FinaleState
    question_deadline_ts: Optional[float]
    results: Optional[ResultsOut] = None


class ActionOut(BaseModel):
    accepted: bool
    game: PublicGameOut
