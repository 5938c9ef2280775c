# logguard/dashboard.py
"""
LogGuard Review Dashboard
=========================

Streamlit front end for the anomaly triage workflow.

Features:
- Log file upload, history and retry
- Traditional, Advanced ML and AI analysis per log file
- Severity and detection-category charts
- Filterable anomaly table with bulk status actions and CSV download
- Single-anomaly review form
- Pipeline health metrics, processing jobs and webhook integrations

Run with: logguard dashboard (or streamlit run logguard/dashboard.py)
"""

import asyncio
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List

import pandas as pd
import plotly.express as px
import streamlit as st

# Allow `streamlit run logguard/dashboard.py` from a source checkout
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logguard.core.cache import QueryCache, STATS
from logguard.core.classification import CATEGORY_STYLES, SEVERITY_COLORS, DetectionCategory, Severity
from logguard.core.config import settings
from logguard.core.models import (
    AIConfig,
    AIProvider,
    AITier,
    Anomaly,
    AnomalyStatus,
    LogFileStatus,
    MetricsTimeRange,
    Priority,
    WebhookProvider,
)
from logguard.client.api import LogGuardClient
from logguard.client.errors import LogGuardError, OperationInProgressError
from logguard.services.anomaly_list import (
    AnomalyFilter,
    AnomalyListView,
    TimeRange,
    category_counts,
    severity_counts,
)
from logguard.services.api_keys import PROVIDER_NAMES, ApiKeyService
from logguard.services.bulk_update import BULK_ACTIONS, BulkStatusUpdateCoordinator
from logguard.services.dispatch import AnalysisDispatchGateway, AnalysisStrategy
from logguard.services.log_files import (
    LogFileService,
    format_duration,
    format_file_size,
    format_time_ago,
    job_progress_text,
    status_text,
)
from logguard.services.metrics import TIME_RANGE_LABELS, MetricsService, format_rate, provider_rows
from logguard.services.notifications import Notifier
from logguard.services.poller import ProcessingPoller
from logguard.services.review import AnomalyReviewSession
from logguard.services.webhooks import WebhookService


# ============================================================
# PAGE CONFIGURATION
# ============================================================
st.set_page_config(
    page_title="LogGuard",
    page_icon="🛡️",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .stMetric {
        background: linear-gradient(135deg, #1a1a2e 0%, #16213e 100%);
        padding: 15px;
        border-radius: 10px;
        border: 1px solid #2d3748;
    }

    .stMetric label {
        color: #a0aec0 !important;
    }

    .raw-log {
        font-family: 'Monaco', 'Consolas', monospace;
        font-size: 12px;
    }
</style>
""", unsafe_allow_html=True)


# ============================================================
# SESSION STATE INITIALIZATION
# ============================================================
def init_session_state():
    """Build the workflow services once per browser session."""
    if "client" not in st.session_state:
        client = LogGuardClient()
        cache = QueryCache()
        notifier = Notifier()
        notifier.add_listener(lambda n: st.session_state.pending_toasts.append(n))

        view = AnomalyListView(client, cache)
        st.session_state.client = client
        st.session_state.cache = cache
        st.session_state.notifier = notifier
        st.session_state.view = view
        st.session_state.bulk = BulkStatusUpdateCoordinator(client, cache, view.selection, notifier)
        st.session_state.gateway = AnalysisDispatchGateway(client, cache, notifier)
        st.session_state.files = LogFileService(client, cache, notifier)
        st.session_state.keys = ApiKeyService(client, cache, notifier)
        st.session_state.poller = ProcessingPoller(client, cache)
        st.session_state.webhooks = WebhookService(client, cache, notifier)
        st.session_state.metrics = MetricsService(client, cache)

    if "pending_toasts" not in st.session_state:
        st.session_state.pending_toasts = []


init_session_state()


# ============================================================
# HELPER FUNCTIONS
# ============================================================
def run(coro):
    """Run a workflow coroutine from Streamlit's synchronous script."""
    return asyncio.run(coro)


def flush_toasts():
    """Show notifications raised during this run."""
    for notification in st.session_state.pending_toasts:
        icon = "⚠️" if notification.is_error else "✅"
        text = notification.title
        if notification.description:
            text += f": {notification.description}"
        st.toast(text, icon=icon)
    st.session_state.pending_toasts = []


def anomalies_frame(anomalies: List[Anomaly]) -> pd.DataFrame:
    selection = st.session_state.view.selection
    rows = []
    for a in anomalies:
        rows.append({
            "Select": selection.is_selected(a.id),
            "Raw": selection.is_expanded(a.id),
            "ID": a.id,
            "Time": a.timestamp,
            "Type": a.type_label,
            "Description": a.description,
            "Risk": a.risk_badge,
            "Method": a.category.value,
            "Status": a.status_label,
            "Source IP": a.source_value("sourceIP"),
            "User": a.source_value("user"),
        })
    return pd.DataFrame(rows)


# ============================================================
# SIDEBAR
# ============================================================
def render_sidebar():
    """Upload, log file list, analysis buttons and AI settings."""
    files: LogFileService = st.session_state.files
    gateway: AnalysisDispatchGateway = st.session_state.gateway

    st.sidebar.title("LogGuard")

    # --- Upload ---
    st.sidebar.subheader("Upload Log File")
    uploaded_file = st.sidebar.file_uploader(
        "Choose a log file",
        type=[ext.lstrip(".") for ext in settings.allowed_upload_extensions],
        help=f"Max {settings.max_upload_size_mb} MB"
    )
    if uploaded_file is not None and st.sidebar.button("Upload", type="primary", use_container_width=True):
        upload_dir = settings.data_dir / "uploads"
        upload_dir.mkdir(parents=True, exist_ok=True)
        target = upload_dir / Path(uploaded_file.name).name
        target.write_bytes(uploaded_file.getvalue())
        with st.spinner("Uploading..."):
            run(files.upload(target))

    st.sidebar.divider()

    # --- Log files ---
    st.sidebar.subheader("Log Files")
    try:
        log_files = run(files.list_files())
    except LogGuardError as e:
        st.sidebar.error(f"Could not load log files: {e}")
        return

    if not log_files:
        st.sidebar.info("No log files uploaded yet")
        return

    labels = {
        lf.id: f"{lf.display_name} · {format_file_size(lf.file_size)} · {format_time_ago(lf.uploaded_at)}"
        for lf in log_files
    }
    log_file_id = st.sidebar.selectbox("Log file", list(labels), format_func=labels.get)
    log_file = next(lf for lf in log_files if lf.id == log_file_id)
    st.sidebar.caption(status_text(log_file.status, log_file.error_message))

    # --- AI settings ---
    with st.sidebar.expander("AI settings"):
        provider = st.selectbox(
            "Provider",
            list(AIProvider),
            index=list(AIProvider).index(AIProvider(settings.default_ai_provider)),
            format_func=lambda p: PROVIDER_NAMES[p],
            key="ai-provider",
        )
        tier = st.selectbox("Tier", list(AITier), format_func=lambda t: t.value.title(), key="ai-tier")

    # --- Analysis ---
    col1, col2, col3 = st.sidebar.columns(3)
    strategy = None
    if col1.button("Traditional", use_container_width=True,
                   disabled=gateway.is_running(AnalysisStrategy.TRADITIONAL, log_file.id)):
        strategy = AnalysisStrategy.TRADITIONAL
    if col2.button("Advanced ML", use_container_width=True,
                   disabled=gateway.is_running(AnalysisStrategy.ADVANCED_ML, log_file.id)):
        strategy = AnalysisStrategy.ADVANCED_ML
    if col3.button("AI", use_container_width=True,
                   disabled=gateway.is_running(AnalysisStrategy.AI, log_file.id)):
        strategy = AnalysisStrategy.AI

    if strategy is not None:
        ai_config = AIConfig(provider=provider, tier=tier, temperature=settings.ai_temperature)
        with st.spinner(f"Running {strategy.value} analysis..."):
            try:
                summary = run(gateway.dispatch(strategy, log_file.id, ai_config))
            except OperationInProgressError as e:
                st.sidebar.warning(e.message)
                summary = None
        if summary is not None and summary.completed:
            st.sidebar.success(
                f"{summary.anomalies_found} anomalies in {summary.log_entries_analyzed} entries"
            )

    if log_file.status in (LogFileStatus.PENDING, LogFileStatus.PROCESSING):
        if st.sidebar.button("Wait for processing", use_container_width=True):
            with st.spinner(f"Waiting for {log_file.display_name}..."):
                result = run(st.session_state.poller.wait_for(log_file.id))
            if result.timed_out:
                st.sidebar.warning("Still processing; check again later")
            elif result.succeeded:
                st.rerun()
            else:
                st.sidebar.error(status_text(result.log_file.status, result.log_file.error_message)
                                 if result.log_file else "Log file no longer listed")

    if log_file.status == LogFileStatus.FAILED:
        if st.sidebar.button("Retry processing", use_container_width=True):
            run(files.retry(log_file, AIConfig(provider=provider, tier=tier)))

    if st.sidebar.button("Refresh", use_container_width=True):
        st.session_state.cache.clear()

    st.sidebar.divider()
    render_key_settings()


def render_key_settings():
    """Key status and entry for the AI providers."""
    keys: ApiKeyService = st.session_state.keys

    st.sidebar.subheader("AI Provider Keys")
    try:
        status = run(keys.status())
    except LogGuardError as e:
        st.sidebar.error(f"Could not load key status: {e}")
        return

    for provider in AIProvider:
        key_status = status.for_provider(provider)
        state = "working" if key_status.working else ("configured" if key_status.configured else "not configured")
        st.sidebar.caption(f"{PROVIDER_NAMES[provider]}: {state}")

    with st.sidebar.form("api-key-form", clear_on_submit=True):
        provider = st.selectbox("Provider", list(AIProvider), format_func=lambda p: PROVIDER_NAMES[p],
                                key="key-provider")
        api_key = st.text_input("API key", type="password")
        save_col, test_col = st.columns(2)
        save = save_col.form_submit_button("Save")
        test = test_col.form_submit_button("Test")
    if save:
        run(keys.save(provider, api_key))
    if test:
        run(keys.test(provider))


# ============================================================
# OVERVIEW
# ============================================================
def render_overview_metrics():
    """Backend-wide numbers from /api/stats."""
    st.subheader("Overview")

    cache: QueryCache = st.session_state.cache
    client: LogGuardClient = st.session_state.client
    try:
        stats = run(cache.get(STATS, client.get_stats))
    except LogGuardError as e:
        st.error(f"Could not load stats: {e}")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric(label="Log Entries", value=f"{stats.total_logs:,}")
    with col2:
        st.metric(label="Anomalies Detected", value=stats.anomalies_detected)
    with col3:
        st.metric(
            label="Average Risk Score",
            value=f"{stats.average_risk_score:.1f}",
            help="0-10; 9 and above is Critical"
        )


def render_charts(anomalies: List[Anomaly]):
    """Severity and detection-category breakdown."""
    if not anomalies:
        return

    col1, col2 = st.columns(2)

    with col1:
        counts = severity_counts(anomalies)
        fig = px.bar(
            x=[s.value for s in counts],
            y=list(counts.values()),
            title="By Severity",
            color=[s.value for s in counts],
            color_discrete_map={s.value: SEVERITY_COLORS[s] for s in Severity}
        )
        fig.update_layout(
            template="plotly_dark",
            height=300,
            paper_bgcolor='rgba(0,0,0,0)',
            margin=dict(l=10, r=10, t=40, b=10),
            showlegend=False,
            xaxis_title="",
            yaxis_title="Count"
        )
        st.plotly_chart(fig, use_container_width=True)

    with col2:
        counts = {c: n for c, n in category_counts(anomalies).items() if n}
        fig = px.pie(
            values=list(counts.values()),
            names=[c.value for c in counts],
            title="By Detection Method",
            hole=0.5,
            color=[c.value for c in counts],
            color_discrete_map={c.value: CATEGORY_STYLES[c][0] for c in DetectionCategory}
        )
        fig.update_layout(
            template="plotly_dark",
            height=300,
            paper_bgcolor='rgba(0,0,0,0)',
            margin=dict(l=10, r=10, t=40, b=10),
            legend=dict(orientation="h", yanchor="bottom", y=-0.3)
        )
        fig.update_traces(textposition='inside', textinfo='value')
        st.plotly_chart(fig, use_container_width=True)


# ============================================================
# ANOMALY TABLE
# ============================================================
def render_filters() -> AnomalyFilter:
    col1, col2, col3, col4, col5 = st.columns([1, 1, 1, 1, 2])
    with col1:
        risk = st.selectbox("Risk Level", [None] + list(Severity),
                            format_func=lambda s: "All Levels" if s is None else s.value)
    with col2:
        time_range = st.selectbox("Time Range", list(TimeRange), index=list(TimeRange).index(TimeRange.ALL),
                                  format_func=lambda t: {"24h": "Last 24 hours", "7d": "Last 7 days",
                                                         "30d": "Last 30 days", "all": "All time"}[t.value])
    with col3:
        status = st.selectbox("Status", [None] + list(AnomalyStatus), key="filter-status",
                              format_func=lambda s: "All" if s is None else s.value.replace("_", " ").title())
    with col4:
        category = st.selectbox("Method", [None] + list(DetectionCategory),
                                format_func=lambda c: "All Methods" if c is None else c.value)
    with col5:
        search = st.text_input("Search", placeholder="Type or description")

    return AnomalyFilter(risk_level=risk, status=status, category=category,
                         time_range=time_range, search=search)


def render_anomaly_table():
    """Filterable table with checkbox selection, bulk actions and export."""
    st.subheader("Anomaly Analysis")

    view: AnomalyListView = st.session_state.view
    bulk: BulkStatusUpdateCoordinator = st.session_state.bulk

    filters = render_filters()
    try:
        run(view.refresh())
    except LogGuardError as e:
        st.error(f"Could not load anomalies: {e}")
        return
    visible = view.set_filter(filters)

    render_charts(visible)

    if not visible:
        st.info("No anomalies found. Try adjusting your filters or upload log files for analysis.")
        return

    frame = anomalies_frame(visible)
    edited = st.data_editor(
        frame,
        hide_index=True,
        use_container_width=True,
        disabled=[c for c in frame.columns if c not in ("Select", "Raw")],
        column_config={
            "Select": st.column_config.CheckboxColumn("", width="small"),
            "Raw": st.column_config.CheckboxColumn("Raw", width="small", help="Show the raw log line"),
            "Time": st.column_config.DatetimeColumn("Time", format="YYYY-MM-DD HH:mm"),
        },
        key="anomaly-table",
    )
    view.selection.select_all(edited.loc[edited["Select"], "ID"].tolist())

    # Raw checkbox shows the row's log line below the table
    for anomaly_id, wants_raw in zip(edited["ID"], edited["Raw"]):
        if bool(wants_raw) != view.selection.is_expanded(anomaly_id):
            view.selection.toggle_expand(anomaly_id)
    for anomaly_id in view.selection.expanded_ids:
        anomaly = view.get(anomaly_id)
        line_no = f" line {anomaly.log_line_number}" if anomaly.log_line_number else ""
        st.caption(f"{anomaly.type_label} · {anomaly_id}{line_no}")
        st.code(anomaly.raw_log_entry or "No raw log entry recorded", language=None)

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        action = st.selectbox(
            f"Bulk action ({view.selection.count} selected)",
            list(BULK_ACTIONS),
            disabled=view.selection.is_empty,
        )
    with col2:
        st.write("")
        if st.button("Apply", disabled=not bulk.can_submit, use_container_width=True):
            run(bulk.apply_action(action))
            st.rerun()
    with col3:
        st.write("")
        export = view.export()
        st.download_button(
            "Export CSV",
            data=export.to_bytes() if export else b"",
            file_name=export.filename if export else "anomalies.csv",
            mime=export.mime_type if export else "text/csv",
            disabled=export is None,
            use_container_width=True,
        )


# ============================================================
# REVIEW FORM
# ============================================================
def render_review():
    """Detail view and review form for one anomaly."""
    view: AnomalyListView = st.session_state.view
    if not view.visible:
        return

    st.subheader("Review Anomaly")
    anomaly_id = st.selectbox(
        "Anomaly",
        [a.id for a in view.visible],
        format_func=lambda i: f"{view.get(i).type_label} · {view.get(i).risk_badge} · {i}",
    )

    session_key = f"review-{anomaly_id}"
    if session_key not in st.session_state:
        st.session_state[session_key] = AnomalyReviewSession(
            st.session_state.client, st.session_state.cache, st.session_state.notifier, anomaly_id
        )
    session: AnomalyReviewSession = st.session_state[session_key]

    anomaly = run(session.load()) if session.is_open else session.anomaly
    if anomaly is None:
        st.error(f"Failed to load anomaly details: {session.load_error}")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.markdown(f"**{anomaly.type_label}** · {anomaly.risk_badge} · {anomaly.category.value}")
        st.write(anomaly.description)
        if anomaly.source_data:
            st.json(anomaly.source_data, expanded=False)
        if anomaly.raw_log_entry:
            st.code(anomaly.raw_log_entry, language=None)
        if anomaly.ai_analysis:
            with st.expander("AI analysis"):
                st.json(anomaly.ai_analysis)

    with col2:
        with st.form(f"review-form-{anomaly_id}"):
            status = st.selectbox("Status", [None] + list(AnomalyStatus), key=f"review-status-{anomaly_id}",
                                  format_func=lambda s: "Choose a status" if s is None else s.value.replace("_", " ").title())
            priority = st.selectbox("Priority", [None] + list(Priority),
                                    format_func=lambda p: "Unchanged" if p is None else p.value.title())
            notes = st.text_area("Analyst notes", value=session.form.analyst_notes or (anomaly.analyst_notes or ""))
            submitted = st.form_submit_button("Update Anomaly")

        if submitted:
            if status is None:
                st.warning("Choose a status first")
            else:
                session.set_status(status)
                session.set_priority(priority)
                session.set_notes(notes)
                run(session.submit())
                if not session.is_open:
                    del st.session_state[session_key]
                    st.rerun()


# ============================================================
# PIPELINE METRICS
# ============================================================
def render_pipeline_metrics():
    """Success rates from /api/metrics for the chosen window."""
    metrics: MetricsService = st.session_state.metrics

    header, picker = st.columns([3, 1])
    header.subheader("Pipeline Health")
    time_range = picker.selectbox("Window", list(MetricsTimeRange), index=1,
                                  format_func=TIME_RANGE_LABELS.get, key="metrics-range")
    try:
        summary = run(metrics.summary(time_range))
    except LogGuardError as e:
        st.error(f"Could not load metrics: {e}")
        return

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Overall Success", f"{summary.overall_success_rate:.1f}%",
                  help=f"{summary.overall_total} uploads, views and AI runs")
    with col2:
        st.metric("File Uploads", format_rate(summary.file_uploads), summary.upload_health,
                  delta_color="normal" if summary.upload_health == "Healthy" else "inverse")
    with col3:
        st.metric("AI Analysis", format_rate(summary.ai_analysis), summary.ai_health,
                  delta_color="normal" if summary.ai_health == "Healthy" else "inverse")
    with col4:
        st.metric("Anomaly Detection", format_rate(summary.anomaly_detection),
                  help=f"Avg: {summary.anomaly_detection.avg_anomalies:.1f} anomalies")

    rows = provider_rows(summary)
    if rows:
        frame = pd.DataFrame([
            {"Provider": name, "Success": counts.success, "Failure": counts.failure}
            for name, counts in rows
        ])
        fig = px.bar(frame, x="Provider", y=["Success", "Failure"], title="AI Runs by Provider",
                     color_discrete_map={"Success": "#22c55e", "Failure": "#ef4444"})
        fig.update_layout(
            template="plotly_dark",
            height=260,
            paper_bgcolor='rgba(0,0,0,0)',
            margin=dict(l=10, r=10, t=40, b=10),
            xaxis_title="",
            yaxis_title="Runs",
            legend_title_text=""
        )
        st.plotly_chart(fig, use_container_width=True)


# ============================================================
# PROCESSING JOBS
# ============================================================
def render_processing_jobs():
    """Recent processing runs from /api/processing-jobs."""
    files: LogFileService = st.session_state.files

    with st.expander("Processing Jobs"):
        try:
            jobs = run(files.processing_jobs())
        except LogGuardError as e:
            st.error(f"Could not load processing jobs: {e}")
            return
        if not jobs:
            st.info("No processing jobs yet")
            return
        st.dataframe(
            pd.DataFrame([{
                "Job": job.id,
                "Log File": job.log_file_id,
                "Method": job.detection_method or "-",
                "Status": job_progress_text(job),
                "Entries": job.log_entries_processed,
                "Anomalies": job.anomalies_found,
                "Time": format_duration(job.analysis_time_ms),
                "Started": format_time_ago(job.started_at) if job.started_at else "-",
            } for job in jobs]),
            hide_index=True,
            use_container_width=True,
        )


# ============================================================
# WEBHOOKS
# ============================================================
def render_webhooks():
    """List, add, toggle, test and delete webhook integrations."""
    webhooks: WebhookService = st.session_state.webhooks

    with st.expander("Webhook Integrations"):
        try:
            hooks = run(webhooks.list())
        except LogGuardError as e:
            st.error(f"Could not load webhooks: {e}")
            return

        for hook in hooks:
            col1, col2, col3, col4 = st.columns([4, 1, 1, 1])
            with col1:
                st.markdown(f"**{hook.name}** · {hook.provider.value}")
                st.caption(f"{hook.trigger_conditions.describe()} · last triggered "
                           f"{format_time_ago(hook.last_triggered)}")
            with col2:
                active = st.toggle("Active", value=hook.is_active, key=f"webhook-active-{hook.id}")
                if active != hook.is_active:
                    run(webhooks.set_active(hook.id, active))
                    st.rerun()
            with col3:
                if st.button("Test", key=f"webhook-test-{hook.id}", use_container_width=True):
                    run(webhooks.test(hook.id))
            with col4:
                if st.button("Delete", key=f"webhook-delete-{hook.id}", use_container_width=True):
                    run(webhooks.delete(hook.id))
                    st.rerun()

        with st.form("webhook-form", clear_on_submit=True):
            st.markdown("**Add webhook**")
            name = st.text_input("Name")
            url = st.text_input("Webhook URL", placeholder="https://hooks.zapier.com/hooks/catch/...")
            provider = st.selectbox("Provider", list(WebhookProvider), format_func=lambda p: p.value.title())
            min_risk = st.slider("Minimum risk score", 0.0, 10.0, 5.0, 0.5)
            priorities = st.multiselect("Priorities", list(Priority), default=[Priority.HIGH, Priority.CRITICAL],
                                        format_func=lambda p: p.value.title())
            keywords = st.text_input("Keywords", help="Comma separated; empty matches any description")
            if st.form_submit_button("Create Webhook"):
                run(webhooks.create(
                    name,
                    url,
                    provider=provider,
                    min_risk_score=min_risk,
                    priorities=priorities,
                    keywords=[k.strip() for k in keywords.split(",") if k.strip()],
                ))


# ============================================================
# MAIN APPLICATION
# ============================================================
def main():
    """Main application entry point."""
    render_sidebar()

    st.title("🛡️ LogGuard")
    render_overview_metrics()
    render_pipeline_metrics()

    st.divider()
    render_anomaly_table()
    render_processing_jobs()
    render_webhooks()

    st.divider()
    render_review()

    flush_toasts()

    st.divider()
    st.caption(
        f"Dashboard loaded at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} | "
        f"Backend: {settings.api_base_url}"
    )


if __name__ == "__main__":
    main()
