from sklearn.linear_model import LinearRegression
from ml.summary import records_frame


def predict_next_month_expense(records):
    df = records_frame(records)
    if df.empty:
        return 0.0
    # Create monthly expense totals
    expenses = df[df['type'] == 'expense'].copy()
    expenses = expenses[expenses['month'].str.len() == 7]
    if expenses.empty:
        return 0.0
    m = expenses.groupby('month')['amount'].sum().reset_index()
    if len(m) < 2:
        # Not enough data to fit
        return float(m['amount'].iloc[-1])
    # Turn months into an integer index
    m['idx'] = range(1, len(m) + 1)
    X = m[['idx']].values
    y = m['amount'].values
    model = LinearRegression().fit(X, y)
    next_idx = m['idx'].max() + 1
    pred = float(model.predict([[next_idx]])[0])
    return max(pred, 0.0)
