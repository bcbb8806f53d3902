"""
Triage Slot Planner - Demand-to-Capacity Dashboard
Turns a Smart Triage export into the appointment capacity each weekday actually needs.

Translation rules:
- RED:    same opening (weekend requests land on the next open day)
- AMBER:  next calendar day; collapses to same-day RED when that day is closed
- YELLOW: 3rd opening after submission
- GREEN:  5th opening after submission
"""

import io
import json
import pandas as pd
import streamlit as st

from triage_capacity.config import WEEKDAYS, URGENCY_TIERS, RECOMMENDATION_BUFFER_PCT
from triage_capacity.models import OperatingCalendar
from triage_capacity.data_loader import load_triage_export, validate_requests
from triage_capacity.gaps import default_slot_capacity
from triage_capacity.engine import run_slot_analysis

TIER_ICONS = {"RED": "🔴", "AMBER": "🟠", "YELLOW": "🟡", "GREEN": "🟢"}

# =============================================================================
# DATA LOADING
# =============================================================================

@st.cache_data
def load_requests(file_bytes: bytes, filename: str):
    return load_triage_export(io.BytesIO(file_bytes), filename=filename)


def capacity_frame(config: dict, days: list) -> pd.DataFrame:
    return pd.DataFrame(
        [[config.get(day, {}).get(tier, 0) for tier in URGENCY_TIERS] for day in days],
        index=days, columns=list(URGENCY_TIERS)
    )


def tier_frame(table: dict, days: list, with_total: bool = True) -> pd.DataFrame:
    columns = list(URGENCY_TIERS) + (['total'] if with_total else [])
    return pd.DataFrame(
        [[table[day].get(c, 0) for c in columns] for day in days],
        index=days, columns=columns
    )

# =============================================================================
# STREAMLIT APP
# =============================================================================

st.set_page_config(
    page_title="Triage Slot Planner",
    page_icon="🩺",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.title("🩺 Triage Slot Planner")
st.caption("Optimise your triage slots based on demand patterns")

uploaded = st.file_uploader("Upload your Smart Triage export", type=["xlsx", "csv"])
if uploaded is None:
    st.info("Upload an export to begin. Only Medical requests with an urgency drive the slot analysis.")
    st.stop()

try:
    requests = load_requests(uploaded.getvalue(), uploaded.name)
except ValueError as exc:
    st.error(str(exc))
    st.stop()

ok, message = validate_requests(requests)
if not ok:
    st.error(message)
    st.stop()
st.success(message)

# Sidebar owns all mutable configuration
with st.sidebar:
    st.markdown("### ⚙️ Practice Settings")

    open_day_names = st.multiselect(
        "Open days", options=list(WEEKDAYS), default=list(WEEKDAYS[:5]), key="open_days"
    )
    if not open_day_names:
        st.warning("Select at least one open day.")
        st.stop()
    calendar = OperatingCalendar.from_names(open_day_names)

    accept_weekend = st.toggle(
        "Accept requests on closed days", value=False, key="accept_weekend_requests",
        help="When off, requests submitted on closed days are excluded from the capacity profile."
    )

    if "slot_capacity" not in st.session_state:
        st.session_state.slot_capacity = default_slot_capacity(calendar)
    current = default_slot_capacity(calendar)
    current.update({d: c for d, c in st.session_state.slot_capacity.items() if d in current})

    st.markdown("### 🗓️ Configured Slots")
    edited = st.data_editor(
        capacity_frame(current, calendar.open_day_names),
        use_container_width=True,
        column_config={
            tier: st.column_config.NumberColumn(f"{TIER_ICONS[tier]} {tier}", min_value=0, step=1)
            for tier in URGENCY_TIERS
        },
        key="slot_capacity_editor"
    )
    st.session_state.slot_capacity = {
        day: {tier: 0 if pd.isna(edited.at[day, tier]) else int(edited.at[day, tier]) for tier in URGENCY_TIERS}
        for day in calendar.open_day_names
    }

with st.spinner('🔄 Translating demand into capacity...'):
    results = run_slot_analysis(
        requests,
        slot_capacity=st.session_state.slot_capacity,
        accept_weekend_requests=accept_weekend,
        calendar=calendar
    )

demand = results['demand']
days = calendar.open_day_names

with st.sidebar:
    st.markdown("---")
    st.markdown("### 📊 Quick Summary")
    st.metric("Submissions", f"{demand['total_submissions']:,}")
    st.metric("Medical", f"{demand['medical_submissions']:,}")
    st.metric("Weeks observed", demand['num_weeks'])
    st.download_button(
        "⬇️ Download results (JSON)",
        data=json.dumps(results, indent=2),
        file_name="triage_slot_analysis.json",
        mime="application/json"
    )

# =============================================================================
# TABS
# =============================================================================

tab1, tab2, tab3, tab4, tab5 = st.tabs(
    ["📈 Overview", "🎯 Slot Analysis", "⏰ Timing", "🧭 Pathways", "📥 Non-automated Inbox"]
)

with tab1:
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Submissions", f"{demand['total_submissions']:,}")
    col2.metric("Medical", f"{demand['medical_submissions']:,}")
    col3.metric("Adult Medical", f"{demand['adult_medical_submissions']:,}")
    avg = demand['avg_resolution_mins']
    col4.metric("Avg Time to Process", f"{avg} min" if avg is not None else "n/a")

    st.markdown("### Submissions by Day")
    st.bar_chart(pd.Series(demand['by_day_of_week']))

    st.markdown("### Urgency Mix")
    st.bar_chart(pd.Series(demand['urgency_counts']))

    automation = pd.DataFrame(demand['automation_by_urgency']).T
    st.dataframe(automation, use_container_width=True)

with tab2:
    st.markdown("### Capacity Needed (average per week)")
    if not accept_weekend:
        st.caption("Requests submitted on closed days are excluded.")
    st.caption("AMBER requests whose next calendar day is closed are counted as same-day RED demand.")
    st.dataframe(tier_frame(results['capacity_needed'], days), use_container_width=True)

    st.markdown("### Gap vs Configured Slots")
    gap_rows = []
    for row in results['gaps']:
        gap_rows.append({
            'Day': row['day'],
            **{f"{TIER_ICONS[t]} {t}": f"{row['gap'][t]:+d} ({row['status'][t]})" for t in URGENCY_TIERS},
            'Total': f"{row['gap']['total']:+d}",
        })
    st.dataframe(pd.DataFrame(gap_rows), use_container_width=True, hide_index=True)

    short_days = results['gap_summary']['days_with_shortfall']
    if short_days:
        st.warning(f"Shortfall on: {', '.join(short_days)}")
    else:
        st.success("Configured slots cover average demand on every open day. 🎉")

    st.markdown(f"### Recommended Slots (+{RECOMMENDATION_BUFFER_PCT}% buffer)")
    st.caption("A flat margin over the weekly average, rounded up. Not a statistical safety stock.")
    st.dataframe(capacity_frame(results['recommended_capacity'], days), use_container_width=True)
    if st.button("Apply recommendation"):
        st.session_state.slot_capacity = results["recommended_capacity"]
        st.session_state.pop("slot_capacity_editor", None)
        st.rerun()

with tab3:
    st.markdown("### Submissions by Hour")
    st.bar_chart(pd.Series({int(h): v for h, v in demand['by_hour'].items()}))

    st.markdown("### Day × Hour Heatmap")
    heatmap = pd.DataFrame(demand['heatmap']).T
    st.dataframe(heatmap, use_container_width=True)

    if demand['rolling_7_day']:
        st.markdown("### Rolling 7-Day Average")
        rolling = pd.DataFrame(demand['rolling_7_day']).set_index('date')
        st.line_chart(rolling['value'])

with tab4:
    st.markdown("### Pareto Analysis (Top Symptoms)")
    if demand['pareto']:
        pareto = pd.DataFrame(demand['pareto']).set_index('symptom')
        st.bar_chart(pareto['count'])
        st.dataframe(
            pareto,
            use_container_width=True,
            column_config={
                'percentage': st.column_config.NumberColumn('Share', format="%.1f%%"),
                'cumulative': st.column_config.ProgressColumn('Cumulative', format="%.0f%%", min_value=0, max_value=100),
            }
        )
    else:
        st.info("No Medical requests to rank.")

    if demand['by_month_symptom']:
        st.markdown("### Month-on-Month by Symptom")
        st.dataframe(pd.DataFrame(demand['by_month_symptom']).fillna(0).astype(int), use_container_width=True)

with tab5:
    consistency = results['consistency']
    st.metric("Manually triaged requests", consistency['total_non_automated'])

    st.markdown("### What clinicians book for each urgency")
    for tier in URGENCY_TIERS:
        entry = consistency['urgency_to_slot_type'][tier]
        with st.expander(f"{TIER_ICONS[tier]} {tier} ({entry['total']})"):
            if entry['slot_types']:
                st.dataframe(pd.DataFrame(entry['slot_types']), use_container_width=True, hide_index=True)

    st.markdown("### Most inconsistent pathway + urgency combinations")
    st.caption("Variation score = 100 − share of the most common slot type. Groups with fewer than 3 requests are hidden.")
    records = consistency['pathway_consistency']
    if records:
        st.dataframe(
            pd.DataFrame([{
                'Pathway': r['pathway'], 'Urgency': r['urgency'], 'Total': r['total'],
                'Top Slot Type': r['top_slot_type'], 'Variation': r['variation_score'],
                'Mismatch': r['mismatch'] or '',
            } for r in records]),
            use_container_width=True, hide_index=True,
            column_config={'Variation': st.column_config.ProgressColumn('Variation', format="%.0f%%", min_value=0, max_value=100)}
        )

    st.markdown("### Urgency mismatches")
    st.caption("Inferred from slot type names; unrecognised names are never flagged.")
    if consistency['mismatches']:
        st.dataframe(
            pd.DataFrame([{
                'Pathway': m['pathway'], 'Recommended': m['recommended_urgency'],
                'Assigned': m['assigned_urgency'], 'Direction': m['direction'], 'Count': m['count'],
            } for m in consistency['mismatches']]),
            use_container_width=True, hide_index=True
        )
    else:
        st.success("No significant urgency mismatches detected.")
