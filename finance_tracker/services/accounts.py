from dataclasses import dataclass
from datetime import date
from typing import List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from finance_tracker.errors import AccountAccessDenied, AccountNotFound, NotGroupMember
from finance_tracker.models import Account, AccountType, GroupMember, User
from finance_tracker.services.summary import get_account_balance

logger = structlog.get_logger(__name__)

INDIVIDUAL_ACCOUNT_NAME = "Conta Pessoal"


@dataclass
class AccountWithBalance:
    account: Account
    balance: float


class AccountService:
    def __init__(self, db: Session):
        self.db = db

    def _group_ids(self, user_id: int) -> List[int]:
        return [
            row.group_id
            for row in self.db.query(GroupMember.group_id).filter(GroupMember.user_id == user_id)
        ]

    def get_user_accounts(self, user_id: int) -> List[Account]:
        """Individual accounts of the user plus joint accounts of their groups.

        Joint accounts left behind by a deleted group stay with their creator.
        """
        group_ids = self._group_ids(user_id)
        conditions = [
            (Account.user_id == user_id)
            & ((Account.type == AccountType.INDIVIDUAL.value) | Account.group_id.is_(None))
        ]
        if group_ids:
            conditions.append(
                (Account.type == AccountType.JOINT.value) & Account.group_id.in_(group_ids)
            )
        return self.db.query(Account).filter(or_(*conditions)).order_by(Account.type, Account.name).all()

    def get_user_account_ids(self, user_id: int) -> List[int]:
        return [a.id for a in self.get_user_accounts(user_id)]

    def get_individual_account(self, user_id: int) -> Optional[Account]:
        return (
            self.db.query(Account)
            .filter(Account.user_id == user_id, Account.type == AccountType.INDIVIDUAL.value)
            .order_by(Account.id)
            .first()
        )

    def ensure_individual_account(self, user: User) -> Account:
        account = self.get_individual_account(user.id)
        if account:
            return account
        account = Account(
            name=INDIVIDUAL_ACCOUNT_NAME, type=AccountType.INDIVIDUAL.value, user_id=user.id
        )
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        return account

    def get_account(self, account_id: int) -> Account:
        account = self.db.query(Account).filter(Account.id == account_id).first()
        if not account:
            raise AccountNotFound()
        return account

    def can_access(self, user_id: int, account: Account) -> bool:
        if account.is_individual:
            return account.user_id == user_id
        if account.group_id is None:
            return account.user_id == user_id
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == account.group_id, GroupMember.user_id == user_id)
            .first()
            is not None
        )

    def get_accessible_account(self, user_id: int, account_id: int) -> Account:
        account = self.get_account(account_id)
        if not self.can_access(user_id, account):
            raise AccountAccessDenied()
        return account

    def resolve_account(self, user: User, account_id: Optional[int]) -> Account:
        """Account chosen on a form, or the user's individual account."""
        if account_id:
            return self.get_accessible_account(user.id, account_id)
        return self.ensure_individual_account(user)

    def get_account_members(self, account: Account) -> List[User]:
        if account.is_joint and account.group_id is not None:
            return (
                self.db.query(User)
                .join(GroupMember, GroupMember.user_id == User.id)
                .filter(GroupMember.group_id == account.group_id)
                .order_by(User.name)
                .all()
            )
        return [account.user]

    def get_account_member_ids(self, account: Account) -> List[int]:
        return [u.id for u in self.get_account_members(account)]

    def create_joint_account(self, group_id: int, user_id: int, name: str) -> Account:
        is_member = (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .first()
        )
        if not is_member:
            raise NotGroupMember()
        account = Account(
            name=name, type=AccountType.JOINT.value, user_id=user_id, group_id=group_id
        )
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        logger.info("joint_account_created", account_id=account.id, group_id=group_id)
        return account

    def get_group_joint_accounts(self, group_id: int) -> List[Account]:
        return (
            self.db.query(Account)
            .filter(Account.group_id == group_id, Account.type == AccountType.JOINT.value)
            .order_by(Account.name)
            .all()
        )

    def delete_joint_account(self, account_id: int, group_id: int, user_id: int) -> None:
        account = self.get_account(account_id)
        if not account.is_joint or account.group_id != group_id:
            raise AccountNotFound()
        if not self.can_access(user_id, account):
            raise AccountAccessDenied()
        self.db.delete(account)
        self.db.commit()

    def set_budget_limit(self, user_id: int, account_id: int, limit: Optional[float]) -> Account:
        account = self.get_accessible_account(user_id, account_id)
        account.budget_limit = limit if limit and limit > 0 else None
        self.db.commit()
        return account

    def with_balances(self, accounts: List[Account], today: date = None) -> List[AccountWithBalance]:
        return [AccountWithBalance(a, get_account_balance(self.db, a.id, today)) for a in accounts]
