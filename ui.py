import math

import streamlit as st

from config import CSS_PATH


def inject_css():
    if CSS_PATH.exists():
        st.markdown(f"<style>{CSS_PATH.read_text(encoding='utf-8')}</style>", unsafe_allow_html=True)


def app_header(title: str, subtitle: str = ""):
    cols = st.columns([6, 2])
    with cols[0]:
        st.markdown(f"## {title}")
        if subtitle:
            st.caption(subtitle)
    with cols[1]:
        st.markdown(
            "<div class='badge'>IRS 2026</div> "
            "<div class='badge'>Continente</div> "
            "<div class='badge'>Benefícios flexíveis</div>",
            unsafe_allow_html=True,
        )


def helptext(text: str):
    st.caption(text)


def format_eur(value) -> str:
    """1000.5 -> '1 000,50 €'; blanks and NaN show as zero."""
    if value is None or value == "":
        return "0,00 €"
    try:
        num = float(value)
    except (TypeError, ValueError):
        return "0,00 €"
    if math.isnan(num):
        return "0,00 €"
    integer, decimals = f"{num:,.2f}".split(".")
    return f"{integer.replace(',', ' ')},{decimals} €"


def kpi_card(col, caption: str, value: str, note: str = ""):
    note_html = f"<div class='caption'>{note}</div>" if note else ""
    col.markdown(
        f"<div class='card'><div class='caption'>{caption}</div>"
        f"<div class='kpi'>{value}</div>{note_html}</div>",
        unsafe_allow_html=True,
    )
