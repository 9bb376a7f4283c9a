# client/streamlit_app.py
import os
import requests
import streamlit as st

st.set_page_config(page_title="Drug Name Normalizer", layout="wide")
st.title("💊 Drug Name Normalizer")

st.markdown("""
Standardize medication names using the **RxNorm API**.

Use the **sidebar Pages** to open:
- **📄 Normalize** — Upload a CSV (or generate sample data), pick the medication column, and add a `GENERIC_NAME` column. Shows progress, per-status counts, and lets you download the result.
- **🔎 Lookup** — Normalize a single drug name and see the RxCUI it resolved through.
""")

with st.sidebar:
    st.header("Settings")
    api_url = os.getenv("API_BASE_URL", "http://localhost:8000")
    st.text_input("API Base URL (from env)", value=api_url, disabled=True)
    if st.button("Health check"):
        try:
            r = requests.get(f"{api_url}/healthz", params={"deep": "true"}, timeout=30)
            st.success(r.json())
        except Exception as e:
            st.error(f"Health check failed: {e}")

st.info("Tip: set `API_BASE_URL` in `client/.env` (copy from `.env.sample`) or export it before starting Streamlit.")
