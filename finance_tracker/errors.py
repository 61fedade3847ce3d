"""Domain errors raised by the service layer.

Each error carries the Portuguese message shown to the user and the HTTP
status the web layer answers with.
"""


class FinanceError(Exception):
    status_code = 400
    message = "Dados inválidos"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotFoundError(FinanceError):
    status_code = 404
    message = "Registro não encontrado"


class ForbiddenError(FinanceError):
    status_code = 403
    message = "Acesso negado"


class ConflictError(FinanceError):
    status_code = 409
    message = "Conflito"


# accounts
class AccountNotFound(NotFoundError):
    message = "Conta não encontrada"


class AccountAccessDenied(ForbiddenError):
    message = "Acesso negado à conta selecionada"


class Unauthorized(ForbiddenError):
    message = "sem permissão para acessar esta conta"


# groups and invites
class GroupNotFound(NotFoundError):
    message = "grupo não encontrado"


class InviteNotFound(NotFoundError):
    message = "convite não encontrado"


class InviteExpired(FinanceError):
    message = "convite expirado"


class InviteInvalid(FinanceError):
    message = "convite inválido"


class InviteMaxUsed(FinanceError):
    message = "convite atingiu o limite de usos"


class NotGroupAdmin(ForbiddenError):
    message = "você não é administrador deste grupo"


class NotGroupMember(ForbiddenError):
    message = "você não é membro deste grupo"


class AlreadyMember(ConflictError):
    message = "você já é membro deste grupo"


class LastAdminCannotLeave(FinanceError):
    message = "você é o único administrador e não pode sair do grupo"


class CannotRemoveSelf(FinanceError):
    message = "use a opção sair do grupo para remover a si mesmo"


# budgets
class BudgetNotFound(NotFoundError):
    message = "orçamento não encontrado"


class CategoryNotFound(NotFoundError):
    message = "categoria não encontrada"


class InvalidBudgetMonth(FinanceError):
    message = "mês inválido (deve estar entre 1-12)"


class InvalidBudgetYear(FinanceError):
    message = "ano inválido"


# expenses, incomes, cards
class ExpenseNotFound(NotFoundError):
    message = "Despesa não encontrada"


class InvalidSplit(FinanceError):
    message = "A soma dos percentuais deve ser 100%"


class IncomeNotFound(NotFoundError):
    message = "Recebimento não encontrado"


class CardNotFound(NotFoundError):
    message = "Cartão não encontrado"


class InstallmentNotFound(NotFoundError):
    message = "Parcelamento não encontrado"


class RecurringNotFound(NotFoundError):
    message = "Transação recorrente não encontrada"


# goals
class GoalNotFound(NotFoundError):
    message = "meta não encontrada"


class GoalCompleted(FinanceError):
    message = "meta já foi concluída"


class NotificationNotFound(NotFoundError):
    message = "Notificação não encontrada"


# auth
class UserExists(ConflictError):
    message = "email já cadastrado"


class InvalidCredentials(FinanceError):
    status_code = 401
    message = "credenciais inválidas"


class AccountLocked(FinanceError):
    status_code = 423
    message = "conta bloqueada temporariamente"


class WeakPassword(FinanceError):
    message = "senha fraca"


class NotAuthenticated(Exception):
    """Raised by the auth dependency when no valid session exists."""
