from dataclasses import dataclass
from datetime import date
from typing import List, Sequence

from sqlalchemy.orm import Session

from finance_tracker.errors import CardNotFound, InstallmentNotFound
from finance_tracker.models import CreditCard, Installment, User
from finance_tracker.schemas import CreditCardCreate, InstallmentCreate
from finance_tracker.services.accounts import AccountService
from finance_tracker.services.summary import installments_for_accounts


@dataclass
class CardWithTotal:
    card: CreditCard
    month_total: float


class CreditCardService:
    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountService(db)

    def list_cards(self, account_ids: Sequence[int]) -> List[CreditCard]:
        if not account_ids:
            return []
        return (
            self.db.query(CreditCard)
            .filter(CreditCard.account_id.in_(account_ids))
            .order_by(CreditCard.name)
            .all()
        )

    def cards_with_totals(self, account_ids: Sequence[int], today: date = None) -> List[CardWithTotal]:
        today = today or date.today()
        return [
            CardWithTotal(
                card,
                sum(i.installment_amount for i in card.installments if i.is_active(today)),
            )
            for card in self.list_cards(account_ids)
        ]

    def active_installments(self, account_ids: Sequence[int], today: date = None) -> List[Installment]:
        today = today or date.today()
        return [i for i in installments_for_accounts(self.db, account_ids) if i.is_active(today)]

    def create_card(self, user: User, data: CreditCardCreate) -> CreditCard:
        account = self.accounts.ensure_individual_account(user)
        card = CreditCard(
            account_id=account.id,
            name=data.name,
            closing_day=data.closing_day,
            due_day=data.due_day,
            limit_amount=data.limit_amount,
        )
        self.db.add(card)
        self.db.commit()
        self.db.refresh(card)
        return card

    def _get_card(self, card_id: int, user_id: int) -> CreditCard:
        card = self.db.query(CreditCard).filter(CreditCard.id == card_id).first()
        if not card or not self.accounts.can_access(user_id, card.account):
            raise CardNotFound()
        return card

    def delete_card(self, card_id: int, user_id: int) -> None:
        card = self._get_card(card_id, user_id)
        # installments go with the card
        self.db.delete(card)
        self.db.commit()

    def create_installment(self, user_id: int, data: InstallmentCreate) -> Installment:
        card = self._get_card(data.credit_card_id, user_id)
        installment = Installment(
            credit_card_id=card.id,
            description=data.description,
            total_amount=data.total_amount,
            installment_amount=data.total_amount / data.total_installments,
            total_installments=data.total_installments,
            start_date=data.start_date,
            category=data.category,
        )
        self.db.add(installment)
        self.db.commit()
        self.db.refresh(installment)
        return installment

    def delete_installment(self, installment_id: int, user_id: int) -> None:
        installment = self.db.query(Installment).filter(Installment.id == installment_id).first()
        if not installment or not self.accounts.can_access(user_id, installment.credit_card.account):
            raise InstallmentNotFound()
        self.db.delete(installment)
        self.db.commit()
