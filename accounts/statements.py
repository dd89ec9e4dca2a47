# accounts/statements.py
"""
Daily and account statements with running balances.
"""
from collections import defaultdict
from datetime import timedelta

from django.db.models import Sum

from reports.utils import ZERO, apply_running_balance, clamp_date_range, sum_column
from .models import Account, FundTransaction, Transaction

# Named credit and debit columns of the daily statement. Categories not listed
# fall into "other income" / "other expense".
DAILY_STATEMENT_COLUMNS = {
    Account.HOSPITAL: {
        'income': ['OPD Income', 'Medicine Income', 'Optics Income', 'Medical Test', 'Operation Income'],
        'expense': ['Medicine Purchase', 'Optics Purchase', 'Fixed Asset Purchase', 'House Rent'],
    },
    Account.MEDICINE: {
        'income': ['Medicine Sale'],
        'expense': ['Medicine Purchase'],
    },
    Account.OPTICS: {
        'income': ['Optics Sale', 'Fitting Charge'],
        'expense': ['Optics Purchase'],
    },
}


MAX_STATEMENT_DAYS = 366


def _empty_day(day, columns):
    return {
        'date': day,
        'fund_in': ZERO,
        'income': {name: ZERO for name in columns['income']},
        'other_income': ZERO,
        'fund_out': ZERO,
        'expense': {name: ZERO for name in columns['expense']},
        'other_expense': ZERO,
    }


def build_daily_statement(account, from_date, to_date):
    """
    One row per day in the range with credit and debit columns, the day's
    totals and a running balance seeded from the opening balance.

    Ranges longer than MAX_STATEMENT_DAYS keep their end date and start
    MAX_STATEMENT_DAYS days earlier; ``clamped`` flags that case.
    """
    from_date, to_date, clamped = clamp_date_range(from_date, to_date, MAX_STATEMENT_DAYS)
    columns = DAILY_STATEMENT_COLUMNS[account.kind]
    opening_balance = account.opening_balance_before(from_date)

    days = {}
    day = from_date
    while day <= to_date:
        days[day] = _empty_day(day, columns)
        day += timedelta(days=1)

    funds = (
        account.fund_transactions.between(from_date, to_date)
        .values('date', 'type')
        .annotate(total=Sum('amount'))
        .order_by()
    )
    for entry in funds:
        row = days[entry['date']]
        key = 'fund_in' if entry['type'] == FundTransaction.FUND_IN else 'fund_out'
        row[key] += entry['total']

    txns = (
        account.transactions.between(from_date, to_date)
        .values('transaction_date', 'type', 'category_name')
        .annotate(total=Sum('amount'))
        .order_by()
    )
    for entry in txns:
        row = days[entry['transaction_date']]
        group = 'income' if entry['type'] == Transaction.INCOME else 'expense'
        if entry['category_name'] in row[group]:
            row[group][entry['category_name']] += entry['total']
        else:
            row[f'other_{group}'] += entry['total']

    rows = []
    for day in sorted(days):
        row = days[day]
        row['total_credit'] = row['fund_in'] + sum(row['income'].values(), ZERO) + row['other_income']
        row['total_debit'] = row['fund_out'] + sum(row['expense'].values(), ZERO) + row['other_expense']
        rows.append(row)

    closing_balance = apply_running_balance(rows, opening_balance, 'total_credit', 'total_debit')

    totals = {
        'fund_in': sum_column(rows, 'fund_in'),
        'income': {name: sum((row['income'][name] for row in rows), ZERO) for name in columns['income']},
        'other_income': sum_column(rows, 'other_income'),
        'fund_out': sum_column(rows, 'fund_out'),
        'expense': {name: sum((row['expense'][name] for row in rows), ZERO) for name in columns['expense']},
        'other_expense': sum_column(rows, 'other_expense'),
        'total_credit': sum_column(rows, 'total_credit'),
        'total_debit': sum_column(rows, 'total_debit'),
    }

    return {
        'columns': columns,
        'rows': rows,
        'totals': totals,
        'opening_balance': opening_balance,
        'closing_balance': closing_balance,
        'from_date': from_date,
        'to_date': to_date,
        'clamped': clamped,
    }


def daily_statement_export_rows(statement):
    columns = statement['columns']
    headers = (
        ['Date', 'Fund In'] + columns['income'] + ['Other Income', 'Total Credit', 'Fund Out']
        + columns['expense'] + ['Other Expense', 'Total Debit', 'Balance']
    )
    data = []
    for row in statement['rows']:
        data.append(
            [row['date'].strftime('%d-%m-%Y'), row['fund_in']]
            + [row['income'][name] for name in columns['income']]
            + [row['other_income'], row['total_credit'], row['fund_out']]
            + [row['expense'][name] for name in columns['expense']]
            + [row['other_expense'], row['total_debit'], row['balance']]
        )
    totals = statement['totals']
    total_row = (
        ['TOTAL', totals['fund_in']]
        + [totals['income'][name] for name in columns['income']]
        + [totals['other_income'], totals['total_credit'], totals['fund_out']]
        + [totals['expense'][name] for name in columns['expense']]
        + [totals['other_expense'], totals['total_debit'], statement['closing_balance']]
    )
    return headers, data, total_row


def _user_name(user):
    if user is None:
        return ''
    return user.get_full_name() or user.username


def build_account_statement(account, from_date, to_date):
    """
    Fund and regular transactions merged by date with deposit, withdraw and
    running balance columns.
    """
    opening_balance = account.opening_balance_before(from_date)
    entries = []

    for fund in account.fund_transactions.between(from_date, to_date).select_related('added_by'):
        entries.append({
            'date': fund.date,
            'created_at': fund.created_at,
            'voucher_no': fund.voucher_no,
            'type': fund.get_type_display(),
            'description': ' - '.join(part for part in [fund.purpose, fund.description] if part),
            'deposit': fund.amount if fund.is_fund_in else ZERO,
            'withdraw': ZERO if fund.is_fund_in else fund.amount,
            'created_by': _user_name(fund.added_by),
        })

    for txn in account.transactions.between(from_date, to_date).select_related('created_by'):
        entries.append({
            'date': txn.transaction_date,
            'created_at': txn.created_at,
            'voucher_no': txn.voucher_no,
            'type': txn.get_type_display(),
            'description': ' - '.join(part for part in [txn.category_name, txn.description] if part),
            'deposit': txn.amount if txn.is_income else ZERO,
            'withdraw': ZERO if txn.is_income else txn.amount,
            'created_by': _user_name(txn.created_by),
        })

    entries.sort(key=lambda entry: (entry['date'], entry['created_at']))
    closing_balance = apply_running_balance(entries, opening_balance, 'deposit', 'withdraw')

    summary = {
        'opening_balance': opening_balance,
        'total_deposit': sum_column(entries, 'deposit'),
        'total_withdraw': sum_column(entries, 'withdraw'),
        'closing_balance': closing_balance,
        'transaction_count': len(entries),
    }
    return {'transactions': entries, 'summary': summary}
