from datetime import date

import pytest

from finance_tracker.errors import FinanceError, GoalCompleted, NotGroupMember, Unauthorized
from finance_tracker.models import GoalContribution, GoalStatus, Notification, NotificationType
from finance_tracker.schemas import GoalCreate
from finance_tracker.services.goals import GoalService
from finance_tracker.services.groups import GroupService


@pytest.fixture
def members(db, user, make_user):
    partner = make_user(name="Bruno")
    groups = GroupService(db)
    group = groups.create_group(user.id, "Família")
    groups.accept_invite(groups.generate_invite(group.id, user.id).code, partner.id)
    return group, partner


@pytest.fixture
def service(db):
    return GoalService(db)


@pytest.fixture
def goal(service, members, user, today):
    group, _ = members
    return service.create_goal(
        group.id, user.id, GoalCreate(name="Viagem", target_amount=1000), today
    )


def goal_notifications(db):
    return (
        db.query(Notification)
        .filter(Notification.type == NotificationType.GOAL_REACHED.value)
        .all()
    )


class TestGoals:
    def test_create(self, goal, user, today):
        assert goal.status == GoalStatus.ACTIVE.value
        assert goal.current_amount == 0
        assert goal.start_date == today
        assert goal.created_by_id == user.id

    def test_outsider_cannot_create(self, service, members, make_user):
        group, _ = members
        with pytest.raises(NotGroupMember):
            service.create_goal(group.id, make_user().id, GoalCreate(name="x", target_amount=1))

    def test_ordering_puts_undated_goals_last(self, service, members, user, goal):
        group, _ = members
        dated = service.create_goal(
            group.id,
            user.id,
            GoalCreate(name="Carro", target_amount=5000, target_date=date(2025, 1, 1)),
        )
        assert service.get_group_goals(group.id, user.id) == [dated, goal]

    def test_plain_member_cannot_delete_others_goal(self, service, members, goal):
        _, partner = members
        with pytest.raises(Unauthorized):
            service.delete_goal(goal.id, partner.id)

    def test_update(self, service, goal, user):
        updated = service.update_goal(goal.id, user.id, name="Férias", target_amount=2000)
        assert (updated.name, updated.target_amount) == ("Férias", 2000)


class TestContributions:
    def test_contributions_accumulate(self, db, service, members, goal, user):
        _, partner = members
        service.add_contribution(goal.id, user.id, 300)
        service.add_contribution(goal.id, partner.id, 200)

        assert goal.current_amount == pytest.approx(500)
        assert goal.progress_percentage == pytest.approx(50)
        assert db.query(GoalContribution).count() == 2
        assert service.contributions_by_member(goal) == {"Ana": 300, "Bruno": 200}
        assert goal_notifications(db) == []

    def test_reaching_target_completes_and_notifies_all(self, db, service, members, goal, user):
        _, partner = members
        service.add_contribution(goal.id, user.id, 600)
        service.add_contribution(goal.id, partner.id, 500)

        assert goal.status == GoalStatus.COMPLETED.value
        assert goal.progress_percentage == 100
        assert goal.remaining_amount == 0
        assert {n.user_id for n in goal_notifications(db)} == {user.id, partner.id}

    def test_completed_goal_rejects_contributions(self, service, goal, user):
        service.add_contribution(goal.id, user.id, 1000)
        with pytest.raises(GoalCompleted):
            service.add_contribution(goal.id, user.id, 10)

    def test_amount_must_be_positive(self, service, goal, user):
        with pytest.raises(FinanceError):
            service.add_contribution(goal.id, user.id, 0)
