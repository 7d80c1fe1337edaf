"""
Account display preferences.

A linked account is shown either as one balance line ("consolidated", the
default) or as its individual holdings ("holdings").
"""

from typing import Dict, Iterable, List, Mapping, Optional

from networth.domain.models import (
    Account,
    AccountSummaryRow,
    DisplayPreference,
    HoldingRecord,
    PortfolioRow,
)


def summary_row_id(account_id: str) -> str:
    return f"account-summary-{account_id}"


def _preference(
    account: Account,
    overrides: Optional[Mapping[str, DisplayPreference]],
) -> DisplayPreference:
    if overrides and account.id in overrides:
        return DisplayPreference(overrides[account.id])
    return account.display_preference


def build_display_rows(
    holdings: Iterable[HoldingRecord],
    accounts: Iterable[Account],
    preferences: Optional[Mapping[str, DisplayPreference]] = None,
) -> List[PortfolioRow]:
    """
    Apply account preferences to a holding list.

    Holdings of a consolidated account are replaced by a single
    AccountSummaryRow placed first in the account's container. Unlinked
    holdings and holdings whose account is unknown are always kept.
    """
    account_map: Dict[str, Account] = {a.id: a for a in accounts}
    consolidated = {
        account_id
        for account_id, account in account_map.items()
        if _preference(account, preferences) is DisplayPreference.CONSOLIDATED
    }

    rows: List[PortfolioRow] = []
    for account_id in sorted(consolidated, key=lambda aid: account_map[aid].name):
        account = account_map[account_id]
        rows.append(
            AccountSummaryRow(
                id=summary_row_id(account.id),
                account_id=account.id,
                name=account.name,
                balance=account.balance,
                container_id=account.container_id,
                position=0,
                institution=account.institution,
            )
        )

    for holding in holdings:
        if holding.account_id and holding.account_id in consolidated:
            continue
        rows.append(holding)
    return rows
