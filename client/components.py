# client/components.py
import streamlit as st

STATUS_ICONS = {"success": "✅", "not_found": "❔", "error": "⚠️"}

def show_json(obj, caption: str | None = None):
    if caption:
        st.caption(caption)
    st.json(obj)

def show_summary(summary: dict):
    """Per-status counts from a /normalize response as metrics."""
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Names", summary.get("total", 0))
    c2.metric(f"{STATUS_ICONS['success']} Resolved", summary.get("success", 0))
    c3.metric(f"{STATUS_ICONS['not_found']} Not found", summary.get("not_found", 0))
    c4.metric(f"{STATUS_ICONS['error']} Errors", summary.get("error", 0))

def show_result(res: dict):
    """One NormalizationResult."""
    icon = STATUS_ICONS.get(res.get("status"), "")
    if res.get("status") == "success":
        st.success(f"{icon} **{res['original_name']}** → **{res['generic_name']}** (RxCUI {res['rxcui']})")
    elif res.get("status") == "not_found":
        st.info(f"{icon} **{res['original_name']}**: {res.get('error_message')}")
    else:
        st.error(f"{icon} **{res['original_name']}**: {res.get('error_message')}")
