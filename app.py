# app.py
import streamlit as st
import plotly.graph_objects as go

from config import APP_NAME, DATASET_PATH, DEFAULTS, configure_logging
from errors import SimulatorError
from ui import inject_css, app_header, helptext, format_eur, kpi_card
from tax_models import CalculationInput, load_dataset, table_to_df
from taxes import WithholdingEngine, pick_table_id
from simulation import ReverseCalculationInput, get_proposals, missed_target, proposals_for_annual_cost
from scenarios import to_rows, rows_to_df, compare, net_curve
from exporters import export_proposals, export_inputs

configure_logging()

# ------------- Page setup -------------
st.set_page_config(page_title=APP_NAME, page_icon="💶", layout="wide")
inject_css()
app_header(APP_NAME, "Custo anual para a empresa, salário bruto, IRS, Segurança Social e benefícios flexíveis")


@st.cache_resource(show_spinner=False)
def get_engine():
    # The rate tables are read once per process and shared by every rerun
    return WithholdingEngine(load_dataset(DATASET_PATH))


engine = get_engine()

with st.expander("Como funciona (30 segundos)"):
    st.write("""
- Partimos do **custo anual para a empresa** (ou do **líquido mensal** que pretende receber).
- Retiramos o **subsídio de refeição** e a **TSU** da entidade patronal e distribuímos o resto por salário base, IHT e benefícios flexíveis.
- A retenção de **IRS** usa as tabelas de retenção na fonte de 2026 (continente).
- Para cada percentagem de benefícios (0% a 30%) mostramos um intervalo: **máximo** (benefícios isentos) e **mínimo** (benefícios sujeitos a IRS).
    """)

# ------------- Sidebar (inputs) -------------
st.sidebar.header("O que quer calcular?")
calculate_by = st.sidebar.radio(
    "Calcular a partir de", ["Custo anual para a empresa", "Salário líquido pretendido"],
    index=0 if DEFAULTS["calculate_by"] == "annual_cost" else 1,
)
by_cost = calculate_by == "Custo anual para a empresa"
if by_cost:
    annual_cost = st.sidebar.number_input(
        "Custo anual (€)", min_value=1_000, max_value=1_000_000, value=DEFAULTS["annual_cost"], step=500,
        help="Tudo o que a empresa gasta por ano consigo: salário, TSU, benefícios e subsídio de refeição."
    )
else:
    target_net = st.sidebar.number_input(
        "Líquido mensal pretendido (€)", min_value=100, max_value=50_000, value=DEFAULTS["target_net_salary"], step=50,
        help="Valor máximo que recebe por mês, com subsídio de refeição e benefícios."
    )

st.sidebar.header("O seu agregado")
marital = st.sidebar.selectbox("Estado civil", ["Não casado", "Casado"])
dependents = st.sidebar.number_input("Dependentes", min_value=0, max_value=10, value=DEFAULTS["dependents"], step=1)
holders = "Dois titulares"
if marital == "Casado":
    holders = st.sidebar.selectbox("Titulares de rendimento", ["Dois titulares", "Único titular"])
has_disability = st.sidebar.checkbox("Pessoa com deficiência", value=DEFAULTS["has_disability"])
location = st.sidebar.selectbox(
    "Localização", ["continente", "madeira", "acores"],
    help="As tabelas incluídas são apenas do continente."
)

st.sidebar.header("Salário")
has_duodecimos = st.sidebar.checkbox(
    "Subsídios em duodécimos (12 pagamentos)", value=DEFAULTS["has_duodecimos"],
    help="Sem duodécimos o salário é pago em 14 meses."
)
iht_pct = st.sidebar.slider("IHT (%)", 0, 50, DEFAULTS["iht_percentage"], 5,
                            help="Isenção de horário de trabalho, em % do salário base.")
include_meal = st.sidebar.checkbox("Incluir subsídio de refeição", value=DEFAULTS["include_meal_allowance"])

if marital == "Casado":
    marital_status = "married_one_holder" if holders == "Único titular" else "married_two_holders"
else:
    marital_status = "single"

request = ReverseCalculationInput(
    location=location,
    marital_status=marital_status,
    dependents=int(dependents),
    has_duodecimos=has_duodecimos,
    meal_allowance_daily=DEFAULTS["meal_allowance_daily"] if include_meal else 0.0,
    meal_allowance_days=DEFAULTS["meal_allowance_days"],
    meal_allowance_months=DEFAULTS["meal_allowance_months"],
    iht_percentage=iht_pct,
    tsu=DEFAULTS["tsu"],
    ss_rate=DEFAULTS["ss_rate_pct"] / 100.0,
    target_net_salary=None if by_cost else float(target_net),
    has_disability=has_disability,
)

# ------------- Run (auto) -------------
try:
    with st.spinner("A calcular propostas…"):
        if by_cost:
            proposals = proposals_for_annual_cost(engine, request, float(annual_cost))
        else:
            proposals = get_proposals(engine, request)
except SimulatorError as exc:
    st.error(str(exc))
    st.stop()

if not by_cost:
    missed = missed_target(proposals, float(target_net))
    if missed:
        pcts = ", ".join(f"{p}%" for p in missed)
        ceiling = format_eur(DEFAULTS["solver_upper_annual_cost"])
        st.warning(
            f"O líquido de {format_eur(float(target_net))} não é atingível com um custo anual até {ceiling} "
            f"(benefícios: {pcts}). Os valores mostrados são os mais próximos."
        )

rows = to_rows(proposals, has_duodecimos)
df = rows_to_df(rows)

st.markdown("### 1) Propostas por percentagem de benefícios flexíveis")
table_id = pick_table_id(marital_status, int(dependents), has_disability)
helptext(f"Tabela de retenção aplicada: {table_id}. Valores mensais, exceto o custo anual.")

best = max(rows, key=lambda r: r.total_max)
c1, c2, c3 = st.columns(3)
kpi_card(c1, "Custo anual para a empresa", format_eur(rows[0].annual_cost), "sem benefícios flexíveis")
kpi_card(c2, "Líquido mensal (0% benefícios)", format_eur(rows[0].total_max), "com subsídio de refeição")
kpi_card(c3, f"Melhor líquido máximo ({best.flex_benefits_percentage}%)", format_eur(best.total_max),
         f"mínimo {format_eur(best.total_min)}")

labels = {
    "flex_benefits_percentage": "Benefícios (%)",
    "salary_base": "Salário base",
    "iht": "IHT",
    "duodecimo_sf": "Duodécimo SF",
    "duodecimo_sn": "Duodécimo SN",
    "irs": "IRS",
    "net_salary": "Líquido salário",
    "monthly_benefits": "Benefícios",
    "monthly_meal_allowance": "Subs. refeição",
    "total_max": "Total máximo",
    "total_min": "Total mínimo",
    "salary_base_and_iht": "Base + IHT",
    "income": "Rendimento",
    "annual_cost": "Custo anual",
}
shown = df.rename(columns=labels)
if not has_duodecimos:
    shown = shown.drop(columns=["Duodécimo SF", "Duodécimo SN"])
money_cols = [c for c in shown.columns if c != "Benefícios (%)"]
st.dataframe(shown.style.format({c: format_eur for c in money_cols}), use_container_width=True, hide_index=True)

# ------------- Charts -------------
figR = go.Figure()
figR.add_trace(go.Bar(x=df["flex_benefits_percentage"], y=df["total_min"], name="Total mínimo (benefícios tributados)"))
figR.add_trace(go.Bar(x=df["flex_benefits_percentage"], y=df["total_max"] - df["total_min"],
                      name="Margem até ao máximo (benefícios isentos)", base=df["total_min"]))
figR.update_layout(
    title="Líquido mensal por % de benefícios flexíveis", xaxis_title="Benefícios flexíveis (%)",
    yaxis_title="€ por mês", barmode="overlay", hovermode="x unified", margin=dict(l=30, r=20, t=60, b=30)
)
st.plotly_chart(figR, use_container_width=True)

st.markdown("### 2) Do bruto ao líquido")
helptext("Como o líquido mensal evolui com o salário bruto, para o seu agregado.")
gross_now = max(rows[0].salary_base_and_iht, 1.0)
curve = net_curve(
    engine,
    CalculationInput(gross_salary=gross_now, marital_status=marital_status, location=location,
                     dependents=int(dependents), has_disability=has_disability,
                     social_security_rate=request.ss_rate),
    low=max(100.0, gross_now * 0.5), high=gross_now * 1.5,
)
figC = go.Figure()
figC.add_trace(go.Scatter(x=curve["gross"], y=curve["net"], mode="lines", name="Líquido"))
figC.add_trace(go.Scatter(x=curve["gross"], y=curve["irs"], mode="lines", name="IRS", line=dict(dash="dot")))
figC.add_vline(x=gross_now, line_dash="dash", line_color="green")
figC.update_layout(
    title="Salário líquido vs. bruto (mensal)", xaxis_title="Bruto (€)", yaxis_title="€",
    hovermode="x unified", margin=dict(l=30, r=20, t=60, b=30)
)
st.plotly_chart(figC, use_container_width=True)

with st.expander(f"Tabela de retenção {table_id}"):
    table = engine.dataset.table(table_id)
    st.caption(table.audience)
    st.dataframe(table_to_df(table), use_container_width=True, hide_index=True)

# ------------- Quick what-ifs -------------
st.markdown("### 3) E se…")
if st.button("Comparar com / sem duodécimos"):
    variants = [("Com duodécimos", {"has_duodecimos": True}), ("Sem duodécimos", {"has_duodecimos": False})]
    results = compare(engine, request, variants, annual_cost=float(annual_cost) if by_cost else None)
    st.write({name: format_eur(props[0].total_max if by_cost else props[0].annual_cost) for name, props in results.items()})

# ------------- Export -------------
st.markdown("### 4) Exportar")
name_csv, data_csv = export_proposals(rows)
st.download_button("⬇️ Descarregar propostas (CSV)", data_csv, file_name=name_csv, mime="text/csv")
name_cfg, data_cfg = export_inputs(request)
st.download_button("⬇️ Descarregar parâmetros (JSON)", data_cfg, file_name=name_cfg, mime="application/json")

st.markdown("---")
st.caption(f"Tabelas de retenção na fonte {engine.dataset.meta.valid_from:%Y} ({engine.dataset.meta.region}). "
           "Simulação indicativa; não substitui o apuramento anual de IRS.")
