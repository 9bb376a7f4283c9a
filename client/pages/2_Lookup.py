# client/pages/2_Lookup.py
import streamlit as st
import api as API  # client/api.py
from components import show_result, show_json

st.title("🔎 Lookup")

name = st.text_input("Drug name", placeholder="Tylenol, advil 200mg, HCTZ ...")

if st.button("Normalize", disabled=not name.strip()):
    try:
        res = API.lookup(name)   # one NormalizationResult as JSON
        show_result(res)
        with st.expander("Raw response"):
            show_json(res)
    except Exception as e:
        st.error(e)
