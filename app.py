import html
from datetime import date

import streamlit as st
import pandas as pd
from pydantic import ValidationError

from config import DEFAULT_STORE_ID
from database import init_db
from logging_config import get_logger

# Logger para este módulo
logger = get_logger(__name__)

# Importar Servicios y Esquemas
from calendar_view import CalendarView, PendingDepositStep, PendingMarkReady
from preferences import PreferencesService, SqlKeyValueStore
from schemas import BookingCreate, DepositCreate, DisplayPreferences, DEFAULT_STATUS_COLORS
from services import AuthService, BookingService, DepositService
from transitions import DepositStep, STATUS_LABELS

# --- 1. CONFIGURACIÓN INICIAL ---
st.set_page_config(page_title="PMS Kalender", page_icon="🏨", layout="wide")
init_db()

# --- 2. CONSTANTES ---
HARI = ["Sen", "Sel", "Rab", "Kam", "Jum", "Sab", "Min"]
IDENTITY_TYPES = ["KTP", "SIM", "Paspor", "Lainnya"]
CELL_WIDTH = {"compact": 64, "normal": 88, "large": 120}
FONT_WEIGHT = {"normal": 400, "medium": 500, "semibold": 600, "bold": 700}


@st.cache_resource
def get_preferences_service() -> PreferencesService:
    return PreferencesService(SqlKeyValueStore())


# --- 3. CSS PERSONALIZADO ---
def inject_custom_css(prefs: DisplayPreferences):
    """Inyecta CSS de la grilla según las preferencias de visualización."""
    width = CELL_WIDTH[prefs.display_size]
    st.markdown(f"""
    <style>
    .kalender {{ border-collapse: collapse; font-family: {prefs.font_family}, sans-serif; }}
    .kalender th {{
        background: {prefs.primary_color};
        color: white;
        font-size: 12px;
        padding: 4px;
        min-width: {width}px;
    }}
    .kalender th.today {{ box-shadow: inset 0 -3px 0 #F59E0B; }}
    .kalender td {{ border: 1px solid #E5E7EB; padding: 4px; font-size: 12px; text-align: center; }}
    .kalender td.room {{ font-weight: bold; text-align: left; white-space: nowrap; }}
    .kalender td.blocked {{ background: #F3F4F6; color: #9CA3AF; }}
    .kalender td.booking {{
        color: {prefs.booking_text_color};
        font-weight: {FONT_WEIGHT[prefs.font_weight]};
        border-radius: 6px;
        text-align: left;
    }}
    .kalender td.booking.synthetic {{ border-left: 3px dashed #6B7280; }}
    .kalender td.kotor {{ background: #FEE2E2; color: #B91C1C; }}
    .kalender td.ready {{ background: {prefs.ready_used_color}33; color: {prefs.ready_used_color}; }}
    .deposit-badge {{ color: #B45309; }}
    </style>
    """, unsafe_allow_html=True)


# --- 4. FUNCIONES AUXILIARES UI ---
def _format_validation_error(e: ValidationError) -> str:
    """Extrae mensajes legibles de ValidationError de Pydantic."""
    messages = []
    for err in e.errors():
        field = " -> ".join(str(loc) for loc in err['loc']) or "form"
        messages.append(f"• {field}: {err['msg']}")
    return "Error validasi:\n" + "\n".join(messages)


def notify(kind: str, message: str):
    st.session_state.toasts.append((kind, message))


def show_toasts():
    for kind, message in st.session_state.toasts:
        if kind == "success":
            st.success(message)
        else:
            st.error(message)
    st.session_state.toasts = []


def logout():
    view = st.session_state.get("view")
    if view is not None:
        view.close()
    st.session_state.logged_in = False
    st.session_state.user = None
    st.session_state.view = None
    st.rerun()


# --- 5. GRILLA DEL CALENDARIO ---
def render_grid(view: CalendarView, prefs: DisplayPreferences):
    """Renderiza la grilla habitaciones × 14 días como tabla HTML con colspans."""
    grid = view.grid()
    today = date.today()

    header = "".join(
        f'<th class="{"today" if d == today else ""}">{HARI[d.weekday()]}<br>{d.strftime("%d/%m")}</th>'
        for d in grid.dates
    )
    rows_html = []
    for row in grid.rows:
        badge = ' <span class="deposit-badge">💰</span>' if row.has_deposit else ""
        cells = [f'<td class="room">{html.escape(row.room.name)}{badge}</td>']
        for cell in row.cells:
            if cell.kind == "START":
                b = cell.booking
                color = prefs.status_colors.get(b.status, DEFAULT_STATUS_COLORS["BO"])
                css = "booking synthetic" if cell.synthetic else "booking"
                title = html.escape(f"{b.customer_name} · {STATUS_LABELS.get(b.status, b.status)} · {b.duration} malam")
                cells.append(
                    f'<td class="{css}" colspan="{cell.colspan}" style="background:{color}" title="{title}">'
                    f'{html.escape(b.customer_name)}<br><small>{b.status}</small></td>'
                )
            elif cell.door_status == "DIRTY":
                cells.append('<td class="kotor">Kotor</td>')
            elif row.blocked:
                cells.append(f'<td class="blocked">{html.escape(cell.label or "")}</td>')
            elif cell.highlight:
                by = html.escape(cell.ready_by or "")
                cells.append(f'<td class="ready" title="Ready oleh {by}">Ready</td>')
            else:
                cells.append(f'<td>{html.escape(cell.label or "-")}</td>')
        rows_html.append("<tr>" + "".join(cells) + "</tr>")

    st.markdown(
        f'<table class="kalender"><tr><th>Kamar</th>{header}</tr>{"".join(rows_html)}</table>',
        unsafe_allow_html=True,
    )
    if grid.conflicts:
        st.warning(f"⚠️ {len(grid.conflicts)} booking bertabrakan di kamar yang sama. Periksa data.")
    return grid


def render_navigation(view: CalendarView):
    cols = st.columns([1, 1, 1, 1, 1, 2])
    if cols[0].button("⏪ -7", key="nav_prev_week"):
        view.prev_week()
    if cols[1].button("Kemarin", key="nav_yesterday"):
        view.yesterday()
    if cols[2].button("Hari ini", key="nav_today"):
        view.today()
    if cols[3].button("Besok", key="nav_tomorrow"):
        view.tomorrow()
    if cols[4].button("+7 ⏩", key="nav_next_week"):
        view.next_week()
    picked = cols[5].date_input("Tanggal", value=view.selected_date, key="nav_date", label_visibility="collapsed")
    if picked != view.selected_date:
        view.go_to(picked)


def render_pending(view: CalendarView):
    """Paso pendiente: depósito de check-in / check-out o confirmación de Ready."""
    pending = view.pending
    if isinstance(pending, PendingMarkReady):
        st.info(f"Tandai kamar {pending.room.name} tanggal {pending.day.strftime('%d/%m/%Y')} sebagai Ready?")
        c1, c2 = st.columns(2)
        if c1.button("✅ Ya, Ready", key="confirm_ready", type="primary"):
            view.confirm_mark_ready()
            st.rerun()
        if c2.button("Batal", key="cancel_ready"):
            view.cancel_pending()
            st.rerun()
        return

    if not isinstance(pending, PendingDepositStep):
        return

    b = pending.booking
    if pending.step == DepositStep.CAPTURE:
        st.markdown(f"### 💰 Deposit Check In - {b.customer_name}")
        with st.form("form_deposit_ci"):
            tipo = st.radio("Jenis deposit", ["uang", "identitas"], horizontal=True,
                            format_func=lambda x: "Uang" if x == "uang" else "Identitas")
            amount = st.number_input("Nominal (Rp)", min_value=0.0, step=50000.0)
            identity_type = st.selectbox("Jenis identitas", IDENTITY_TYPES)
            owner = st.text_input("Nama pemilik identitas", value=b.customer_name)
            notes = st.text_area("Catatan")
            c1, c2, c3 = st.columns(3)
            save = c1.form_submit_button("Simpan & Check In", type="primary")
            skip = c2.form_submit_button("Lewati")
            cancel = c3.form_submit_button("Batal")
        if save:
            try:
                deposit = DepositCreate(
                    deposit_type=tipo,
                    amount=amount if tipo == "uang" else None,
                    identity_type=identity_type if tipo == "identitas" else None,
                    identity_owner_name=owner,
                    notes=notes or None,
                )
            except ValidationError as e:
                st.error(_format_validation_error(e))
                return
            view.confirm_checkin_deposit(deposit)
            st.rerun()
        if skip:
            view.confirm_checkin_deposit(None)
            st.rerun()
        if cancel:
            view.cancel_pending()
            st.rerun()
    else:
        st.markdown(f"### 💰 Pengembalian Deposit - {b.customer_name}")
        for d in pending.active_deposits:
            st.write(f"• {d.description}" + (f" · {d.notes}" if d.notes else ""))
        c1, c2, c3 = st.columns(3)
        if c1.button("Kembalikan & Check Out", key="co_return", type="primary"):
            view.confirm_checkout_return(True)
            st.rerun()
        if c2.button("Lewati pengembalian", key="co_skip"):
            view.confirm_checkout_return(False)
            st.rerun()
        if c3.button("Batal", key="co_cancel"):
            view.cancel_pending()
            st.rerun()


def render_actions(view: CalendarView, grid):
    """Acciones sobre reservas visibles y habitaciones Kotor."""
    col_booking, col_kotor = st.columns(2)

    with col_booking:
        st.markdown("#### 🛎️ Status Booking")
        cards = [(row.room, c) for row in grid.rows for c in row.cells if c.kind == "START"]
        if not cards:
            st.caption("Tidak ada booking di jendela ini.")
        for room, cell in cards:
            b = cell.booking
            with st.expander(f"{room.name} · {b.customer_name} · {STATUS_LABELS.get(b.status, b.status)}"):
                st.write(f"**Check in:** {b.date.strftime('%d/%m/%Y')} · {b.duration} malam · {b.phone or '-'}")
                st.write(f"**Dibuat oleh:** {b.admin_name or '-'}")
                buttons = st.columns(max(len(cell.available_transitions), 1))
                for i, target in enumerate(cell.available_transitions):
                    if buttons[i].button(STATUS_LABELS[target], key=f"st_{b.id}_{target}"):
                        view.request_status_change(b.id, target)
                        st.rerun()

    with col_kotor:
        st.markdown("#### 🧹 Kamar Kotor")
        dirty = [(row.room, c) for row in grid.rows for c in row.cells if c.action == "mark_ready"]
        if not dirty:
            st.caption("Semua kamar bersih.")
        for room, cell in dirty:
            if st.button(f"Set Ready · {room.name} · {cell.date.strftime('%d/%m')}", key=f"ready_{room.id}_{cell.date}"):
                view.request_mark_ready(room.id, cell.date)
                st.rerun()


def render_new_booking(view: CalendarView):
    st.markdown("### 📞 Booking Baru")
    rooms = [r for r in view.rooms if not r.is_blocked]
    with st.form("form_booking", clear_on_submit=True):
        c1, c2 = st.columns(2)
        with c1:
            room = st.selectbox("Kamar", rooms, format_func=lambda r: r.name)
            check_in = st.date_input("Check in", value=view.selected_date)
            duration = st.number_input("Malam", min_value=1, max_value=365, value=1)
            price = st.number_input("Harga", min_value=0.0, step=50000.0)
        with c2:
            name = st.text_input("Nama tamu")
            phone = st.text_input("Telepon")
            bid = st.text_input("Kode booking")
            is_ota = st.checkbox("Booking OTA")
        note = st.text_area("Catatan")
        paid = st.checkbox("Lunas")

        if st.form_submit_button("Simpan Booking", type="primary"):
            try:
                data = BookingCreate(
                    store_id=view.store_id,
                    room_id=room.id if room else "",
                    date=check_in,
                    duration=duration,
                    customer_name=name,
                    phone=phone,
                    bid=bid or None,
                    note=note or None,
                    price=price,
                    payment_status="lunas" if paid else "belum_lunas",
                    is_ota=is_ota,
                )
                BookingService.create_booking(data, view.user)
                st.success(f"Booking {data.customer_name} tersimpan")
                view.refresh_bookings()
            except ValidationError as e:
                st.error(_format_validation_error(e))
            except Exception as e:
                logger.error(f"Error al crear booking: {e}", exc_info=True)
                st.error(str(e))


def render_search(view: CalendarView):
    st.markdown("### 🔎 Cari Booking")
    q = st.text_input("Kode booking, nama atau telepon", key="search_q")
    if q:
        results = view.search(q)
        if not results:
            st.info("Tidak ada hasil.")
            return
        df = pd.DataFrame([{
            "Kode": r.bid or "-",
            "Nama": r.customer_name,
            "Telepon": r.phone or "-",
            "Kamar": r.room_name,
            "Check in": r.date,
            "Malam": r.duration,
            "Status": STATUS_LABELS.get(r.status, r.status),
        } for r in results])
        st.dataframe(df, use_container_width=True, hide_index=True)

        labels = {f"{r.customer_name} · {r.room_name} · {r.date.strftime('%d/%m/%Y')}": r for r in results}
        chosen = st.selectbox("Buka di kalender", options=list(labels.keys()), key="search_pick")
        if st.button("Buka", key="search_open"):
            view.select_search_result(labels[chosen])
            st.rerun()


def render_deposits(view: CalendarView):
    st.markdown("### 💰 Deposit Aktif")
    deposits = DepositService.list_active(view.store_id)
    if not deposits:
        st.info("Tidak ada deposit aktif.")
        return
    room_names = {r.id: r.name for r in view.rooms}
    df = pd.DataFrame([{
        "Kamar": room_names.get(d.room_id, d.room_id),
        "Jenis": d.deposit_type,
        "Deposit": d.description,
        "Catatan": d.notes or "",
    } for d in deposits])
    st.dataframe(df, use_container_width=True, hide_index=True)
    for d in deposits:
        if st.button(f"Kembalikan · {room_names.get(d.room_id, d.room_id)} · {d.description}", key=f"ret_{d.id}"):
            try:
                DepositService.return_deposit(d.id, view.user)
                st.success("Deposit dikembalikan")
                st.rerun()
            except Exception as e:
                logger.error(f"Error al devolver depósito: {e}")
                st.error(str(e))


def render_settings(prefs_service: PreferencesService, prefs: DisplayPreferences):
    st.markdown("### ⚙️ Tampilan")
    with st.form("form_prefs"):
        size = st.selectbox("Ukuran", ["compact", "normal", "large"],
                            index=["compact", "normal", "large"].index(prefs.display_size))
        primary = st.color_picker("Warna utama", prefs.primary_color)
        text_color = st.color_picker("Warna teks booking", prefs.booking_text_color)
        ready_color = st.color_picker("Warna Ready", prefs.ready_used_color)
        weight = st.selectbox("Ketebalan huruf", list(FONT_WEIGHT.keys()),
                              index=list(FONT_WEIGHT.keys()).index(prefs.font_weight))
        status_colors = {
            s: st.color_picker(STATUS_LABELS[s], prefs.status_colors.get(s, DEFAULT_STATUS_COLORS[s]))
            for s in DEFAULT_STATUS_COLORS
        }
        if st.form_submit_button("Simpan"):
            try:
                prefs_service.update(
                    display_size=size,
                    primary_color=primary,
                    booking_text_color=text_color,
                    ready_used_color=ready_color,
                    font_weight=weight,
                    status_colors=status_colors,
                )
                st.rerun()
            except ValidationError as e:
                st.error(_format_validation_error(e))


# --- 6. EJECUCIÓN PRINCIPAL ---

# A. Control de Login
if 'logged_in' not in st.session_state:
    st.session_state.logged_in = False
    st.session_state.user = None
    st.session_state.view = None
    st.session_state.toasts = []

if not st.session_state.logged_in:
    st.markdown("## 🏨 PMS Kalender - Login")
    with st.form("login_form"):
        u = st.text_input("Username")
        p = st.text_input("Password", type="password")
        if st.form_submit_button("Masuk", type="primary"):
            user_dto = AuthService.authenticate(u, p)
            if user_dto:
                st.session_state.logged_in = True
                st.session_state.user = user_dto
                st.session_state.view = CalendarView(DEFAULT_STORE_ID, user_dto, notify=notify)
                st.rerun()
            else:
                st.error("Username atau password salah")
    st.stop()

view: CalendarView = st.session_state.view
prefs_service = get_preferences_service()
prefs = prefs_service.load()

# B. Inyectar CSS
inject_custom_css(prefs)

# C. Sidebar
with st.sidebar:
    st.write(f"👤 **{st.session_state.user.name}** ({st.session_state.user.role})")
    if st.button("Keluar"):
        logout()
    st.divider()
    render_settings(prefs_service, prefs)

# D. Interfaz principal
st.title("🏨 PMS Kalender")
show_toasts()

tab_kalender, tab_booking, tab_deposit = st.tabs(["📅 KALENDER", "📞 BOOKING", "💰 DEPOSIT"])

with tab_kalender:
    render_navigation(view)
    render_pending(view)
    grid = render_grid(view, prefs)
    st.divider()
    render_actions(view, grid)

with tab_booking:
    render_search(view)
    st.divider()
    if view.user.has_permission("create_bookings"):
        render_new_booking(view)
    else:
        st.info("Anda tidak memiliki izin membuat booking.")

with tab_deposit:
    render_deposits(view)
