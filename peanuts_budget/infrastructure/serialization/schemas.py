"""Pydantic schemas for the persisted ledger document"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from peanuts_budget.utils.date_utils import parse_iso8601, to_iso8601

IsoDateTime = Annotated[
    datetime,
    BeforeValidator(parse_iso8601),
    PlainSerializer(to_iso8601, return_type=str),
]

# Older documents wrote null for empty text fields
Text = Annotated[str, BeforeValidator(lambda v: "" if v is None else v)]

Status = Literal["open", "cleared"]


class DocumentModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AccountSchema(DocumentModel):
    id: str
    name: str
    type: Literal["budget", "tracking"] = "budget"
    archived: bool = False


class BudgetCategorySchema(DocumentModel):
    id: str
    name: str


class BudgetSchema(DocumentModel):
    id: str
    name: str
    budget_category_id: Optional[str] = None
    is_to_be_budgeted: bool = False


class PayeeSchema(DocumentModel):
    id: str
    name: str


class TransactionSchema(DocumentModel):
    id: str
    account_id: Optional[str] = None
    payee_id: Optional[str] = None
    transaction_posting_ids: List[str]
    status: Status = "open"
    date: IsoDateTime
    recurring_template_id: Optional[str] = None


class TransactionPostingSchema(DocumentModel):
    id: str
    budget_id: Optional[str] = None
    amount: int
    note: Text = ""


class RecurringTemplateSchema(DocumentModel):
    id: str
    rrule_string: Optional[str] = None
    next_scheduled_date: IsoDateTime
    start_date: IsoDateTime
    end_date: Optional[IsoDateTime] = None
    account_id: Optional[str] = None
    amount: int = 0
    budget_id: Optional[str] = None
    payee_id: Optional[str] = None
    note: Text = ""


class AssignmentSchema(DocumentModel):
    id: str
    date: IsoDateTime
    budget_id: Optional[str] = None
    amount: int


class TransferSchema(DocumentModel):
    id: str
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    amount: int  # unsigned magnitude
    from_status: Status = "open"
    to_status: Status = "open"
    date: IsoDateTime
    note: Text = ""
    budget_id: Optional[str] = None


class GoalSchema(DocumentModel):
    id: str
    type: Literal["monthly_assignment", "available"] = "available"
    target_amount: int
    budget_id: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[IsoDateTime] = None


class LedgerDocument(DocumentModel):
    """Whole budget file; every collection except goals is required"""

    name: Text = ""
    accounts: List[AccountSchema]
    budget_categories: List[BudgetCategorySchema]
    budgets: List[BudgetSchema]
    payees: List[PayeeSchema]
    transactions: List[TransactionSchema]
    transaction_postings: List[TransactionPostingSchema]
    recurring_templates: List[RecurringTemplateSchema]
    assignments: List[AssignmentSchema]
    transfers: List[TransferSchema]
    goals: List[GoalSchema] = Field(default_factory=list)
