"""Streamlit dashboard for the SPX premium screener.

Run with: streamlit run app.py
"""

from datetime import date
from pathlib import Path

import plotly.graph_objects as go
import streamlit as st

from spx_screener.analytics.bid_levels import distance_ladder, summarize_bid_levels
from spx_screener.criteria.expression import ExpressionCriteria
from spx_screener.criteria.query import parse_query
from spx_screener.criteria.ranges import RangeCriteria, TargetBid
from spx_screener.data.providers import CSVChainProvider, create_provider
from spx_screener.market.trading_calendar import create_calendar
from spx_screener.output.frames import (
    bid_levels_frame,
    candidates_frame,
    context_frame,
    ladder_frame,
)
from spx_screener.scanning.runner import RetryPolicy, run_scan
from spx_screener.utils.config import load_config
from spx_screener.utils.error_handling import ConfigurationError, CriteriaError, MarketDataError

STATUS_COLORS = {
    'qualifies': '#2ca02c',
    'partial': '#ff7f0e',
    'context': '#9e9e9e',
    'target': '#1f77b4',
}

# Page config
st.set_page_config(
    page_title="SPX Premium Screener",
    page_icon="🎯",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.title("🎯 SPX Premium Screener")
st.markdown("*Find deep out-of-the-money SPX puts that still pay a premium*")

config = load_config()

# Sidebar - Configuration
st.sidebar.header("⚙️ Configuration")

st.sidebar.subheader("📁 Data Source")
source = st.sidebar.radio("Select source:", ["Yahoo Finance", "Tradier", "Upload CSV"])

csv_file = None
spot_override = None
csv_expiration = None
if source == "Upload CSV":
    uploaded_file = st.sidebar.file_uploader(
        "Upload put chain CSV",
        type=['csv'],
        help="Columns: strike, bid, ask, expiration (others optional)"
    )
    if uploaded_file:
        temp_path = Path("/tmp") / uploaded_file.name
        with open(temp_path, 'wb') as f:
            f.write(uploaded_file.getbuffer())
        csv_file = temp_path
    spot_override = st.sidebar.number_input("Spot price", min_value=0.0, value=6000.0, step=1.0)
    if st.sidebar.checkbox("File has no expiration column"):
        csv_expiration = st.sidebar.date_input("Chain expiration", value=date.today())

today = st.sidebar.date_input("Reference date", value=date.today())

st.sidebar.subheader("🔍 Criteria")
mode = st.sidebar.radio("Mode:", ["Range", "Query", "Expression", "Target bid"])

trading_days = 0
criteria = None
input_error = None
try:
    if mode == "Range":
        preset_names = ["custom"] + sorted(config.presets)
        preset_name = st.sidebar.selectbox("Preset", preset_names)
        preset = config.presets.get(preset_name)
        trading_days = st.sidebar.number_input(
            "Trading days out", min_value=0, max_value=30,
            value=preset.trading_days if preset else 0, step=1,
        )
        min_distance = st.sidebar.number_input(
            "Min distance (pts)", min_value=0.0,
            value=float(preset.criteria.min_distance or 0) if preset else config.query_defaults.min_distance,
            step=5.0,
        )
        min_premium = st.sidebar.number_input(
            "Min bid", min_value=0.0,
            value=float(preset.criteria.min_premium or 0) if preset else config.query_defaults.min_premium,
            step=0.05,
        )
        criteria = RangeCriteria(min_premium=min_premium, min_distance=min_distance)
    elif mode == "Query":
        text = st.sidebar.text_input("Query", "tradingdays=1 AND minbid>=2.00 AND distance>=300")
        request = parse_query(text, config.query_defaults)
        trading_days, criteria = request.trading_days, request.criteria
    elif mode == "Expression":
        trading_days = st.sidebar.number_input("Trading days out", min_value=0, max_value=30, value=0)
        text = st.sidebar.text_input("Expression", "bid>=0.05 AND distance_from_spx BETWEEN 250 AND 400")
        criteria = ExpressionCriteria.from_string(text)
    else:
        trading_days = st.sidebar.number_input("Trading days out", min_value=0, max_value=30, value=0)
        target = st.sidebar.number_input("Target bid", min_value=0.05, value=0.05, step=0.05)
        criteria = TargetBid(target)
except CriteriaError as e:
    input_error = str(e)
    st.sidebar.error(f"❌ {e}")

context_size = st.sidebar.slider("Context strikes", 0, 10, config.context_size)

ready = criteria is not None and input_error is None and (source != "Upload CSV" or csv_file)

if ready and st.sidebar.button("🚀 Run Scan", type="primary"):
    try:
        if source == "Upload CSV":
            provider = CSVChainProvider(csv_file, spot=spot_override, expiration=csv_expiration)
        elif source == "Tradier":
            provider = create_provider('tradier', sandbox=config.tradier_sandbox)
        else:
            provider = create_provider('yfinance')
        calendar = create_calendar(config.calendar)
    except ConfigurationError as e:
        st.error(f"❌ {e}")
        st.stop()

    with st.spinner("Fetching option chain..."):
        try:
            outcome = run_scan(
                provider,
                config.symbol,
                int(trading_days),
                criteria,
                calendar,
                today=today,
                context_size=context_size,
                strike_step=config.strike_step,
                retry=RetryPolicy(config.max_retries, config.backoff_factor, config.max_wait),
            )
        except MarketDataError as e:
            st.error(f"❌ Market data unavailable: {e}")
            st.stop()

    if outcome.result is None:
        st.warning(f"No {int(trading_days)}DTE expiration available. No trade recommended.")
        st.stop()

    result = outcome.result
    choice = outcome.expiration

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Spot", f"{outcome.spot:,.2f}")
    col2.metric("Expiration", choice.expiration.strftime('%a %m/%d'),
                None if choice.is_exact_match else f"target {choice.target_date:%m/%d}")
    col3.metric("Candidates", len(result.candidates))
    if result.best:
        col4.metric("Best", f"{result.best.strike:g}P @ {result.best.bid:.2f}",
                    f"{result.best.distance:.0f} pts")
    else:
        col4.metric("Best", "No trade")

    st.caption(f"Criteria: {criteria.describe()}")

    if result.best:
        st.success(f"💡 SELL 1x {result.best.strike:g}P for ${result.best.bid:.2f} "
                   f"(credit ${result.best.quote.credit:.0f})")
    else:
        st.warning("⚠️ No trade recommended with these criteria")

    st.header("📋 Chain Context")
    window = context_frame(result, criteria, dte=int(trading_days))
    st.dataframe(window, use_container_width=True, hide_index=True)

    st.header("📈 Bids by Strike")
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=window['Strike'],
        y=window['Bid'],
        marker_color=[STATUS_COLORS[s] for s in window['Status']],
        text=window['Marker'],
        hovertext=window['Safety'],
        name="Bid",
    ))
    if result.best:
        fig.add_vline(x=result.best.strike, line_dash="dash", line_color="black",
                      annotation_text="Best", annotation_position="top")
    fig.update_layout(
        xaxis_title="Strike",
        yaxis_title="Bid",
        height=400,
        showlegend=False,
    )
    st.plotly_chart(fig, use_container_width=True)

    if result.candidates:
        with st.expander(f"All {len(result.candidates)} candidates"):
            st.dataframe(candidates_frame(result), use_container_width=True, hide_index=True)

    try:
        chain = provider.get_put_chain(config.symbol, choice.expiration)
    except MarketDataError as e:
        st.warning(f"⚠️ Could not load chain summaries: {e}")
        st.stop()

    col_a, col_b = st.columns(2)
    with col_a:
        st.subheader("Bid Levels")
        levels = summarize_bid_levels(chain, config.bid_levels)
        st.dataframe(bid_levels_frame(levels, outcome.spot), use_container_width=True, hide_index=True)
    with col_b:
        st.subheader("Distance Ladder")
        rungs = distance_ladder(outcome.spot, chain, config.ladder_distances, config.strike_step)
        st.dataframe(ladder_frame(rungs), use_container_width=True, hide_index=True)

elif not ready:
    st.info("👈 Choose a data source and criteria to get started")

    st.markdown("""
    ### How to use:

    1. **Pick data**: Yahoo Finance, Tradier (set `TRADIER_SANDBOX_TOKEN`) or an uploaded CSV
    2. **Set criteria**: a preset/range, a query string, an expression or a target bid
    3. **Run scan**: click "Run Scan"
    4. **Review**: the best strike, the surrounding chain and the premium landscape

    ### Query examples:
    - `tradingdays=1 AND minbid>=2.00 AND distance>=300`
    - `td0 minbid0.80 distance200`
    - `bid>=0.05 AND distance_from_spx BETWEEN 250 AND 400` (expression mode)
    """)
