# conveyance/ui/transaction_progress.py

import pandas as pd
import plotly.express as px
import streamlit as st

from conveyance.core.progress import TransactionState, can_access_stage, progress_percentage
from conveyance.core.stages import WORKFLOW, StageStatus

STATUS_COLORS = {
    StageStatus.COMPLETED.value: "#16a34a",
    StageStatus.IN_PROGRESS.value: "#f59e0b",
    StageStatus.PENDING.value: "#cbd5e1",
    StageStatus.BLOCKED.value: "#dc2626",
}


def progress_frame(state: TransactionState) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "step": index + 1,
            "stage": stage.title,
            "status": state.status_of(stage).value,
            "accessible": can_access_stage(state, stage),
            "current": stage == state.current_stage,
        }
        for index, stage in enumerate(WORKFLOW)
    ])


def render_transaction_progress(state: TransactionState) -> None:
    percent = progress_percentage(state)

    col1, col2 = st.columns([1, 3])
    with col1:
        st.metric("Progress", f"{percent}%")
        st.caption(f"Current stage: **{state.current_stage.title}**")
    with col2:
        st.progress(percent / 100)

    df = progress_frame(state)
    df["value"] = 1

    fig = px.bar(
        df,
        x="value",
        y="stage",
        color="status",
        orientation="h",
        color_discrete_map=STATUS_COLORS,
        category_orders={"stage": [s.title for s in WORKFLOW]},
        hover_data={"value": False, "step": True, "accessible": True},
        title="📋 Transaction Stages",
    )
    fig.update_layout(xaxis_visible=False, height=420, showlegend=True, margin=dict(l=10, r=10, t=40, b=10))

    st.plotly_chart(fig, use_container_width=True)
