"""Monthly report series for charts"""

from dataclasses import dataclass
from datetime import date
from typing import List

from peanuts_budget.domain.ledger import Ledger
from peanuts_budget.utils.date_utils import end_of_month, get_timezone, is_same_month, local_day, months_in_year


@dataclass
class MonthlyValue:
    month: date
    value: int


@dataclass
class MonthlyFlow:
    month: date
    inflow: int
    outflow: int  # absolute value


def net_worth_by_month(ledger: Ledger, year: int) -> List[MonthlyValue]:
    """Net worth at the end of each month of `year`"""
    return [
        MonthlyValue(month=month, value=ledger.net_worth(end_of_month(month)))
        for month in months_in_year(year)
    ]


def inflow_outflow_by_month(ledger: Ledger, year: int) -> List[MonthlyFlow]:
    """
    Money in and out per month of `year`.

    Based on transaction amounts only; transfers move money between
    accounts and are left out.
    """
    tz = get_timezone()
    flows = []
    for month in months_in_year(year):
        amounts = [t.amount for t in ledger.transactions if is_same_month(local_day(t.date, tz), month)]
        flows.append(
            MonthlyFlow(
                month=month,
                inflow=sum(a for a in amounts if a > 0),
                outflow=abs(sum(a for a in amounts if a < 0)),
            )
        )
    return flows
