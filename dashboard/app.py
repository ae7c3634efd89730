"""
Ledger dashboard: cash, positions, pending orders and recent journal activity per user.
Run from repo root: streamlit run dashboard/app.py
Or with data dir: LEDGER_DASHBOARD_DATA_DIR=/path/to/data streamlit run dashboard/app.py
"""

import streamlit as st

from data_reader import (
    get_cash,
    get_pending_orders,
    get_positions,
    get_recent_journal_events,
    get_recent_trades,
    list_users,
    _data_dir,
)

st.set_page_config(page_title="Ledger Dashboard", layout="wide")
st.title("Paper Trading Ledger")

data_dir = _data_dir()
users = list_users(data_dir)

if not users:
    st.warning(f"No ledger found under: `{data_dir}`")
    st.caption("Expect data/ledger.db. Run 'ledger init' first, or point LEDGER_DASHBOARD_DATA_DIR at the data directory.")
    st.stop()

col_refresh, col_auto = st.columns([1, 3])
with col_refresh:
    if st.button("Refresh"):
        st.rerun()
with col_auto:
    auto_refresh = st.checkbox("Auto-refresh every 30s", value=False)

for user in users:
    user_id = user["id"]
    cash = get_cash(user_id, data_dir)
    positions = get_positions(user_id, data_dir)
    pending = get_pending_orders(user_id, data_dir)

    with st.container():
        st.subheader(user["username"])
        c1, c2, c3 = st.columns(3)
        with c1:
            st.metric("Cash", f"{cash:,.2f}" if cash is not None else "—")
        with c2:
            invested = sum(float(p["current_value"]) for p in positions)
            st.metric("Invested (at cost)", f"{invested:,.2f}")
        with c3:
            st.metric("Pending orders", len(pending))

        with st.expander("Positions", expanded=True):
            if not positions:
                st.caption("No open positions.")
            else:
                for p in positions:
                    st.text(f"{p['symbol']}/{p['exchange']}  {p['quantity']} @ {float(p['average_price']):,.2f}")

        with st.expander("Pending orders", expanded=False):
            if not pending:
                st.caption("No pending orders.")
            else:
                for o in pending:
                    ts = (o.get("created_at") or "")[:19]
                    st.text(f"#{o['id']}  {ts}  {o['side']} {o['quantity']} {o['symbol']}/{o['exchange']} @ {o['limit_price']}")

        with st.expander("Recent trades", expanded=False):
            trades = get_recent_trades(user_id, limit=15, data_dir=data_dir)
            if not trades:
                st.caption("No trades yet.")
            else:
                for t in trades:
                    ts = (t.get("executed_at") or "")[:19]
                    st.text(f"{ts}  {t['side']}  {t['quantity']} {t['symbol']} @ {t['price']}  (total {t['total_value']})")

    st.divider()

with st.expander("Rejections", expanded=False):
    rejections = get_recent_journal_events(event_type="order_rejected", limit=10, data_dir=data_dir)
    if not rejections:
        st.caption("No rejections yet.")
    else:
        for e in rejections:
            ts = e.get("ts_utc", "")[:19]
            st.text(f"{ts}  order #{e.get('order_id')}: {e.get('reason', '')}")

with st.expander("Journal", expanded=False):
    for e in get_recent_journal_events(limit=30, data_dir=data_dir):
        ts = e.get("ts_utc", "")[:19]
        st.text(f"{ts}  {e.get('event')}  order #{e.get('order_id', '')}")

if auto_refresh:
    import time
    time.sleep(30)
    st.rerun()
