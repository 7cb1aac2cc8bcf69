import pandas as pd

COLUMNS = ['date', 'amount', 'type']


def records_frame(records):
    """Build a DataFrame (date, amount, type, month) from transaction-shaped dicts.

    ``date`` is kept as the ISO string so the month key is simply its first
    seven characters. Rows keep their input order.
    """
    rows = [{
        'date': str(r.get('date') or ''),
        'amount': r.get('amount'),
        'type': r.get('type'),
    } for r in records or []]
    if not rows:
        return pd.DataFrame(columns=COLUMNS + ['month'])
    df = pd.DataFrame(rows, columns=COLUMNS)
    df['amount'] = pd.to_numeric(df['amount'], errors='coerce').fillna(0.0).astype(float)
    df['month'] = df['date'].str.slice(0, 7)
    return df


def balance_of(records):
    """Sum of income amounts minus sum of expense amounts."""
    total = 0.0
    for r in records or []:
        if r.get('type') == 'income':
            total += float(r.get('amount') or 0)
        elif r.get('type') == 'expense':
            total -= float(r.get('amount') or 0)
    return total


def monthly_summary(records):
    """Income, expense and balance per ``YYYY-MM``.

    Months are listed in order of first appearance in ``records``, not
    chronologically. Rows with an unknown type or no date do not count.
    """
    df = records_frame(records)
    df = df[df['type'].isin(['income', 'expense']) & (df['month'] != '')]
    if df.empty:
        return []
    df = df.assign(
        income=df['amount'].where(df['type'] == 'income', 0.0),
        expense=df['amount'].where(df['type'] == 'expense', 0.0),
    )
    grouped = df.groupby('month', sort=False)[['income', 'expense']].sum()
    return [{
        'month': month,
        'income': float(row['income']),
        'expense': float(row['expense']),
        'balance': float(row['income'] - row['expense']),
    } for month, row in grouped.iterrows()]


def available_months(records):
    df = records_frame(records)
    return [m for m in df['month'].drop_duplicates().tolist() if m]


def month_breakdown(records, month):
    """Income/expense totals of a single month, the data behind the pie chart."""
    df = records_frame(records)
    df = df[df['month'] == month]
    return {
        'income': float(df.loc[df['type'] == 'income', 'amount'].sum()),
        'expense': float(df.loc[df['type'] == 'expense', 'amount'].sum()),
    }
