import streamlit as st, requests, time
import pandas as pd
import api as API
from gen_data import gen_sample_rows
from components import show_summary, show_json
from app.normalizers import NormalizationResult, NormalizationStatus, summarize
from app.tabular import (
    CSVProcessingError, GENERIC_NAME_COLUMN, add_generic_name_column, build_generic_name_map,
    detect_medication_column, extract_column_values, generate_csv, read_csv_upload,
    validate_csv_structure, ParsedTable,
)

st.title("📄 Normalize")

# ------------------------
# Session state
# ------------------------
for key, default in [("table", None), ("source_name", ""), ("results", []), ("normalized_rows", None)]:
    if key not in st.session_state:
        st.session_state[key] = default

def _reset():
    st.session_state.table = None
    st.session_state.source_name = ""
    st.session_state.results = []
    st.session_state.normalized_rows = None

def _load(table: ParsedTable, source: str):
    st.session_state.table = table
    st.session_state.source_name = source
    st.session_state.results = []
    st.session_state.normalized_rows = None

# ------------------------
# Helpers
# ------------------------
def _chunked(seq, size):
    for i in range(0, len(seq), size):
        yield seq[i:i+size]

def _error_results(names, msg):
    return [NormalizationResult.error(n, msg) for n in names]

def _run(names, chunk_size, prog, eta_text):
    """POST names to /normalize in chunks; returns NormalizationResult list in input order."""
    out = []
    total = len(names)
    start = time.time()
    for chunk in _chunked(names, chunk_size):
        eta_text.caption(f"Processing: {chunk[0]}" + (f" … (+{len(chunk)-1})" if len(chunk) > 1 else ""))
        try:
            resp = API.normalize(chunk)
            out.extend(NormalizationResult.from_dict(r) for r in resp["results"])
        except requests.HTTPError as e:
            msg = e.response.text[:400] if e.response is not None else str(e)
            st.error(f"HTTP error: {msg}")
            out.extend(_error_results(chunk, msg))
        except Exception as e:
            st.error(str(e))
            out.extend(_error_results(chunk, str(e)))

        # progress + ETA
        done = len(out)
        prog.progress(done / total if total else 1.0, text=f"Progress: {done} / {total}")
        elapsed = time.time() - start
        rate_now = (done / elapsed) if elapsed > 0 else 0.0
        eta = ((total - done) / rate_now) if rate_now > 0 else 0
        eta_text.caption(f"Progress: {done}/{total} (~{rate_now:.1f} names/s) | ETA ~ {eta:.1f}s")
    return out

# ------------------------
# Load data
# ------------------------
if st.session_state.table is None:
    cA, cB = st.columns(2)
    with cA:
        st.subheader("Try sample data")
        n = st.number_input("Rows", 5, 1000, 50, key="sample_rows")
        seed = st.number_input("Random seed", 0, 999999, 0, key="sample_seed")
        if st.button("🎲 Generate sample data", key="btn_sample"):
            rows = gen_sample_rows(int(n), seed=int(seed) if seed else None)
            _load(ParsedTable(rows=rows, columns=list(rows[0].keys())), "sample")
            st.rerun()
    with cB:
        st.subheader("Upload CSV")
        up = st.file_uploader("CSV file (max 10MB)", type=["csv"], key="upload")
        if up is not None and st.button("Load file", key="btn_load"):
            try:
                _load(read_csv_upload(up.name, up.type, up.getvalue()), up.name)
                st.rerun()
            except CSVProcessingError as e:
                st.error(f"Failed to parse CSV: {e}")
    st.stop()

table: ParsedTable = st.session_state.table

# ------------------------
# Column selection
# ------------------------
if st.session_state.normalized_rows is None:
    st.subheader("Select medication column")
    st.write(f"Found **{len(table.rows)}** rows with **{len(table.columns)}** columns ({st.session_state.source_name}).")
    for w in validate_csv_structure(table)["warnings"]:
        st.warning(w)

    detected = detect_medication_column(table.columns)
    idx = table.columns.index(detected) if detected else 0
    column = st.selectbox("Column", table.columns, index=idx, key="norm_column")

    with st.expander("Advanced options"):
        chunk_size = st.number_input("Names per request", 1, 200, 10, key="norm_chunk")
        server_side = st.checkbox("Send the whole CSV in one request (no live progress)", key="norm_server")

    unique_names = extract_column_values(table.rows, column)
    st.caption(f"{len(unique_names)} distinct value(s) to look up.")

    c1, c2 = st.columns(2)
    with c1:
        go = st.button("➡️ Normalize drug names", key="btn_norm", disabled=not unique_names)
    with c2:
        st.button("Start over", key="btn_reset_top", on_click=_reset)

    if go and server_side:
        try:
            with st.spinner(f"Normalizing {len(unique_names)} name(s) on the server..."):
                name = st.session_state.source_name
                resp = API.normalize_csv(
                    name if name.endswith(".csv") else f"{name}.csv",
                    generate_csv(table.rows).encode("utf-8"), column, output="json",
                )
            st.session_state.results = [NormalizationResult.from_dict(r) for r in resp["results"]]
            st.session_state.normalized_rows = resp["rows"]
            st.session_state.norm_used_column = resp["column"]
            st.rerun()
        except requests.HTTPError as e:
            st.error(f"Normalization failed: {e.response.text[:400] if e.response is not None else e}")
    elif go:
        prog = st.progress(0.0, text=f"Progress: 0 / {len(unique_names)}")
        eta_text = st.empty()
        results = _run(unique_names, int(chunk_size), prog, eta_text)
        st.session_state.results = results
        st.session_state.normalized_rows = add_generic_name_column(
            table.rows, column, build_generic_name_map(results)
        )
        st.session_state.norm_used_column = column
        st.rerun()
    st.stop()

# ------------------------
# Results
# ------------------------
rows = st.session_state.normalized_rows
results = st.session_state.results
column = st.session_state.get("norm_used_column")

st.subheader("✓ Normalization complete")
st.write(f"Processed **{len(rows)}** rows.")
show_summary(summarize(results))

preview = pd.DataFrame([{"Original": r.get(column), "Generic Name": r[GENERIC_NAME_COLUMN]} for r in rows[:10]])
st.dataframe(preview, use_container_width=True)
if len(rows) > 10:
    st.caption(f"Showing 10 of {len(rows)} rows")

failed = [r for r in results if not r.ok]
if failed:
    with st.expander(f"{len(failed)} name(s) not resolved"):
        show_json([r.to_dict() for r in failed])

    # Retry only the ones that errored; not_found won't change on retry
    errored = [r.original_name for r in failed if r.status is NormalizationStatus.ERROR]
    if errored and st.button(f"🔁 Retry {len(errored)} errored name(s)", key="btn_retry"):
        retry = _run(errored, 10, st.progress(0.0), st.empty())
        by_name = {r.original_name: r for r in retry}
        results = [by_name.get(r.original_name, r) for r in results]
        st.session_state.results = results
        st.session_state.normalized_rows = add_generic_name_column(
            st.session_state.table.rows, column, build_generic_name_map(results)
        )
        st.rerun()

st.divider()
c1, c2 = st.columns(2)
with c1:
    st.download_button(
        "⬇️ Download normalized CSV",
        data=generate_csv(rows),
        file_name="normalized-medications.csv",
        mime="text/csv",
    )
with c2:
    st.button("Process another file", key="btn_reset", on_click=_reset)
