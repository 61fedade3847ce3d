from datetime import date
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from finance_tracker.errors import FinanceError, GoalCompleted, GoalNotFound, Unauthorized
from finance_tracker.models import GoalContribution, GoalStatus, GroupGoal, NotificationType
from finance_tracker.schemas import GoalCreate
from finance_tracker.services.groups import GroupService
from finance_tracker.services.notifications import NotificationService

logger = structlog.get_logger(__name__)


class GoalService:
    def __init__(self, db: Session):
        self.db = db
        self.groups = GroupService(db)

    def create_goal(self, group_id: int, user_id: int, data: GoalCreate, today: date = None) -> GroupGoal:
        self.groups.require_member(group_id, user_id)
        goal = GroupGoal(
            group_id=group_id,
            account_id=data.account_id,
            name=data.name,
            description=data.description,
            target_amount=data.target_amount,
            current_amount=0.0,
            start_date=today or date.today(),
            target_date=data.target_date,
            status=GoalStatus.ACTIVE.value,
            created_by_id=user_id,
        )
        self.db.add(goal)
        self.db.commit()
        self.db.refresh(goal)
        return goal

    def get_group_goals(self, group_id: int, user_id: int) -> List[GroupGoal]:
        self.groups.require_member(group_id, user_id)
        return (
            self.db.query(GroupGoal)
            .filter(GroupGoal.group_id == group_id)
            .order_by(GroupGoal.target_date.is_(None), GroupGoal.target_date, GroupGoal.id)
            .all()
        )

    def get_goal(self, goal_id: int, user_id: int) -> GroupGoal:
        goal = self.db.query(GroupGoal).filter(GroupGoal.id == goal_id).first()
        if not goal:
            raise GoalNotFound()
        self.groups.require_member(goal.group_id, user_id)
        return goal

    def _get_modifiable(self, goal_id: int, user_id: int) -> GroupGoal:
        goal = self.get_goal(goal_id, user_id)
        if goal.created_by_id != user_id and not self.groups.is_admin(goal.group_id, user_id):
            raise Unauthorized("sem permissão para alterar esta meta")
        return goal

    def update_goal(
        self,
        goal_id: int,
        user_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        target_amount: Optional[float] = None,
        target_date: Optional[date] = None,
        status: Optional[GoalStatus] = None,
    ) -> GroupGoal:
        goal = self._get_modifiable(goal_id, user_id)
        if name:
            goal.name = name
        if description is not None:
            goal.description = description
        if target_amount is not None:
            if target_amount <= 0:
                raise FinanceError("Valor da meta deve ser positivo")
            goal.target_amount = target_amount
        if target_date is not None:
            goal.target_date = target_date
        if status is not None:
            goal.status = GoalStatus(status).value
        self.db.commit()
        return goal

    def delete_goal(self, goal_id: int, user_id: int) -> None:
        goal = self._get_modifiable(goal_id, user_id)
        self.db.delete(goal)
        self.db.commit()

    def add_contribution(self, goal_id: int, user_id: int, amount: float) -> GroupGoal:
        goal = self.get_goal(goal_id, user_id)
        if goal.is_completed:
            raise GoalCompleted()
        if goal.status != GoalStatus.ACTIVE.value:
            raise FinanceError("meta não está ativa")
        if amount <= 0:
            raise FinanceError("Valor da contribuição deve ser positivo")

        self.db.add(GoalContribution(goal_id=goal.id, user_id=user_id, amount=amount))
        self.db.flush()
        goal.current_amount = float(
            self.db.query(func.coalesce(func.sum(GoalContribution.amount), 0.0))
            .filter(GoalContribution.goal_id == goal.id)
            .scalar()
        )

        reached = goal.current_amount >= goal.target_amount
        if reached:
            goal.status = GoalStatus.COMPLETED.value
        self.db.commit()

        if reached:
            logger.info("goal_reached", goal_id=goal.id, group_id=goal.group_id)
            NotificationService(self.db).notify_users(
                self.groups.member_ids(goal.group_id),
                NotificationType.GOAL_REACHED,
                "Meta atingida!",
                f'A meta "{goal.name}" foi atingida (R$ {goal.current_amount:.2f})',
                link=f"/groups/{goal.group_id}/goals",
                group_id=goal.group_id,
            )
        return goal

    def contributions_by_member(self, goal: GroupGoal) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for contribution in goal.contributions:
            name = contribution.user.name
            totals[name] = totals.get(name, 0.0) + contribution.amount
        return totals
