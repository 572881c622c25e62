"""
Streamlit Frontend for SiWarga

This is the interface residents and the treasurer use to record and
check monthly dues (iuran).

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Pick your house from lists, never type it
3. Clear error messages in simple language
4. Visual feedback for all operations
5. Admin-only actions are only shown to the admin

The UI never touches storage directly; everything goes through the
flows in src.orchestrator.
"""

import asyncio
from datetime import datetime

import streamlit as st

from src.config import get_settings
from src.config.runtime import (
    BrandingConfig,
    ConnectionConfig,
    load_branding_config,
    save_branding_config,
    save_connection_config,
)
from src.config.settings import StorageMode
from src.identity import AuthenticationError, IdentityError, RegistrationError
from src.models.audit import AuditEventType
from src.models.payment import MONTHS, PaymentStatus
from src.models.user import (
    BLOCK_LETTERS,
    BLOCK_NUMBERS,
    HOUSE_NUMBERS,
    Role,
    compose_house_id,
)
from src.orchestrator import AppComponents, InvalidSubmissionError, create_app_components
from src.queries import PaymentQuery, format_rupiah
from src.security import SettingsLock, SettingsLockedError
from src.security.settings_lock import SettingsPasswordError
from src.services.proof import ProofUpload, ProofValidationError, get_embed_url, is_pdf_link
from src.services.storage import StorageError, SyncError, backend_script_source


# Page configuration
st.set_page_config(
    page_title="SiWarga",
    page_icon="🏘️",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.2em;
        font-weight: bold;
        color: #065f46;
    }
</style>
""", unsafe_allow_html=True)

STATUS_BADGES = {
    PaymentStatus.PENDING: "⏳ Pending",
    PaymentStatus.CONFIRMED: "✅ Confirmed",
    PaymentStatus.REJECTED: "❌ Rejected",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def reload_components() -> AppComponents:
    """Rebuild everything after the connection settings changed."""
    get_components.clear()
    st.session_state.pop("synced", None)
    st.session_state.pop("user_session", None)
    return get_components()


def ensure_synced(components: AppComponents) -> None:
    """Load users and payments once per browser session."""
    if st.session_state.get("synced"):
        return
    try:
        run_async(components.sync_flow.refresh())
        st.session_state.synced = True
    except SyncError as e:
        st.error(f"❌ Could not load data from the {components.sync_flow.source} store: {e}")


def main():
    """Main application entry point."""
    components = get_components()
    branding = load_branding_config(components.store, get_settings().app)
    ensure_synced(components)

    st.sidebar.title(f"🏘️ {branding.app_name}")
    st.sidebar.caption(branding.housing_name)
    if components.connection.is_remote and components.connection.has_valid_url:
        st.sidebar.success("🟢 Connected to Google Sheets")
    else:
        st.sidebar.info("💾 Local demo mode")

    if st.sidebar.button("🔄 Refresh data"):
        st.session_state.pop("synced", None)
        ensure_synced(components)

    session = st.session_state.get("user_session")
    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard" if session else "🔑 Login", "⚙️ Settings"],
        index=0,
    )

    if session:
        st.sidebar.markdown("---")
        st.sidebar.markdown(f"Logged in as **{session.user.name}** ({session.house_id})")
        if st.sidebar.button("🚪 Log out"):
            st.session_state.pop("user_session", None)
            st.rerun()

    if page == "⚙️ Settings":
        render_settings_page(components, branding)
    elif session:
        render_dashboard_page(components, session)
    else:
        render_login_page(components, branding)


def render_login_page(components: AppComponents, branding: BrandingConfig):
    """Role selection, house pickers, then login or registration."""
    if branding.logo_url:
        st.image(branding.logo_url, width=96)
    st.title(branding.app_name)
    st.markdown(f"*{branding.housing_name}*")

    role = st.radio(
        "I am a",
        options=[Role.RESIDENT, Role.ADMIN],
        format_func=lambda r: "🏠 Resident" if r == Role.RESIDENT else "🧾 Treasurer (admin)",
        horizontal=True,
    )

    house_id = None
    if role == Role.RESIDENT:
        col1, col2, col3 = st.columns(3)
        with col1:
            letter = st.selectbox("Block", BLOCK_LETTERS)
        with col2:
            block = st.selectbox("Block number", BLOCK_NUMBERS)
        with col3:
            house = st.selectbox("House number", HOUSE_NUMBERS)
        house_id = compose_house_id(letter, block, house)

    detected = components.auth_flow.detect_user(role, house_id)

    if detected is None:
        render_registration_form(components, house_id)
        return

    st.markdown(f"### Welcome, {detected.first_name}")
    with st.form("login_form"):
        pin = st.text_input("PIN", type="password", max_chars=12)
        submitted = st.form_submit_button("🔑 Log in", type="primary")

    if submitted:
        try:
            session = run_async(components.auth_flow.login(detected, pin))
        except AuthenticationError as e:
            st.error(f"❌ {e}")
            return
        st.session_state.user_session = session
        if session.credential_upgraded:
            st.toast("Your PIN has been secured.")
        st.rerun()


def render_registration_form(components: AppComponents, house_id: str):
    st.info(f"House **{house_id}** is not registered yet. Register it below.")

    with st.form("register_form"):
        name = st.text_input("Head of household name")
        pin = st.text_input("New PIN", type="password", max_chars=12)
        confirm_pin = st.text_input("Repeat PIN", type="password", max_chars=12)
        submitted = st.form_submit_button("📝 Register", type="primary")

    if submitted:
        try:
            session = run_async(
                components.auth_flow.register(house_id, name, pin, confirm_pin)
            )
        except RegistrationError as e:
            st.error(f"❌ {e}")
            return
        st.session_state.user_session = session
        st.success("✅ Registration complete")
        st.rerun()


def render_dashboard_page(components: AppComponents, session):
    """Stats, the payment table, the payment form and admin tools."""
    st.title("🏠 Dashboard")

    queries = components.sync_flow.queries()
    summary = queries.summary(session, components.sync_flow.identity.users)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Confirmed dues**")
        st.markdown(f"<div class='big-number'>{format_rupiah(summary.confirmed_total)}</div>", unsafe_allow_html=True)
    with col2:
        st.metric("Pending review", summary.pending_count)
    with col3:
        if session.is_admin:
            st.metric("Registered houses", summary.resident_count)
        else:
            st.metric("Payments recorded", summary.total_count)

    tabs = ["📋 Payments", "💸 Pay dues"]
    if session.is_admin:
        tabs += ["👥 Residents", "📜 Activity log"]
    rendered = st.tabs(tabs)

    with rendered[0]:
        render_payments_tab(components, session)
    with rendered[1]:
        render_payment_form(components, session)
    if session.is_admin:
        with rendered[2]:
            render_residents_tab(components, session)
        with rendered[3]:
            render_activity_tab(components)


def render_payments_tab(components: AppComponents, session):
    col1, col2 = st.columns(2)
    with col1:
        status_filter = st.selectbox(
            "Filter by Status",
            options=[None] + list(PaymentStatus),
            format_func=lambda x: "All Statuses" if x is None else STATUS_BADGES[x],
        )
    with col2:
        month_filter = st.selectbox(
            "Filter by Month",
            options=[None] + list(MONTHS),
            format_func=lambda x: "All Months" if x is None else x,
        )

    payments = components.sync_flow.queries().execute(
        session,
        PaymentQuery(status=status_filter, month=month_filter),
    )

    if not payments:
        st.info("📋 No payments yet. Use the 'Pay dues' tab to send your first one.")
        return

    for payment in payments:
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 2])
            with col1:
                st.markdown(f"**{payment.period}** · {payment.user_name} ({payment.house_id})")
                if payment.note:
                    st.caption(payment.note)
            with col2:
                st.markdown(format_rupiah(payment.amount))
                st.caption(STATUS_BADGES[payment.status])
            with col3:
                if payment.proof_link:
                    with st.popover("🧾 View proof"):
                        if is_pdf_link(payment.proof_link):
                            st.markdown(f"[Open PDF]({payment.proof_link})")
                        else:
                            st.image(get_embed_url(payment.proof_link))

            if session.is_admin and payment.status == PaymentStatus.PENDING:
                ok_col, reject_col = st.columns(2)
                with ok_col:
                    if st.button("✅ Confirm", key=f"confirm_{payment.id}"):
                        review_payment(components, session, payment.id, PaymentStatus.CONFIRMED)
                with reject_col:
                    if st.button("❌ Reject", key=f"reject_{payment.id}"):
                        review_payment(components, session, payment.id, PaymentStatus.REJECTED)


def review_payment(components: AppComponents, session, payment_id: str, status: PaymentStatus):
    try:
        run_async(components.payment_flow.verify_payment(session, payment_id, status))
    except (IdentityError, StorageError) as e:
        st.error(f"❌ {e}")
        return
    st.rerun()


def render_payment_form(components: AppComponents, session):
    settings = get_settings().app
    now = datetime.utcnow()

    with st.form("payment_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            month = st.selectbox("Month", MONTHS, index=now.month - 1)
        with col2:
            year = st.number_input("Year", min_value=now.year - 5, max_value=now.year + 1, value=now.year)
        amount = st.number_input(
            "Amount (Rp)",
            min_value=0,
            max_value=settings.max_dues_amount,
            value=settings.default_dues_amount,
            step=5000,
        )
        note = st.text_input("Note", placeholder="e.g. Transfer via BCA")
        proof_file = st.file_uploader(
            "Transfer proof",
            type=settings.supported_formats_list,
            help=f"Maximum {settings.max_upload_size_mb} MB",
        )
        submitted = st.form_submit_button("📤 Send payment", type="primary")

    if not submitted:
        return

    proof = None
    if proof_file is not None:
        proof = ProofUpload(
            file_name=proof_file.name,
            data=proof_file.getvalue(),
            mime_type=proof_file.type,
        )

    try:
        with st.spinner("Sending..."):
            payment = run_async(components.payment_flow.submit_payment(
                session,
                month=month,
                year=int(year),
                amount=int(amount),
                note=note,
                proof=proof,
            ))
    except InvalidSubmissionError as e:
        st.error(f"❌ {e}")
        return
    except ProofValidationError as e:
        st.error(f"🧾 {e}")
        return
    except StorageError as e:
        st.error(f"❌ Could not save the payment: {e}")
        return

    st.success(f"✅ Payment for {payment.period} sent. The treasurer will review it.")


def render_residents_tab(components: AppComponents, session):
    residents = sorted(components.sync_flow.identity.residents, key=lambda u: u.house_id)
    if not residents:
        st.info("No houses registered yet.")
        return

    for resident in residents:
        col1, col2 = st.columns([4, 1])
        with col1:
            st.markdown(f"**{resident.house_id}** · {resident.name}")
        with col2:
            if st.button("🔁 Reset PIN", key=f"reset_{resident.house_id}"):
                try:
                    run_async(components.auth_flow.reset_pin(session, resident.house_id))
                except IdentityError as e:
                    st.error(f"❌ {e}")
                else:
                    st.success(f"PIN for {resident.house_id} reset to the default.")


def render_activity_tab(components: AppComponents):
    events = run_async(components.audit_logger.recent_events(limit=50))
    if not events:
        st.info("No activity recorded yet.")
        return
    for event in events:
        st.markdown(
            f"`{event.timestamp:%Y-%m-%d %H:%M}` **{event.event_type.value}** {event.description}"
        )


def render_settings_page(components: AppComponents, branding: BrandingConfig):
    """Password-gated admin settings."""
    st.title("⚙️ Settings")

    if "settings_lock" not in st.session_state:
        st.session_state.settings_lock = SettingsLock(components.store)
    lock: SettingsLock = st.session_state.settings_lock

    if not st.session_state.get("settings_unlocked"):
        render_unlock_form(components, lock)
        return

    if st.button("🔒 Lock settings"):
        st.session_state.settings_unlocked = False
        st.rerun()

    tab_conn, tab_brand, tab_security, tab_script = st.tabs(
        ["🔌 Connection", "🎨 Branding", "🔐 Security", "📜 Backend script"]
    )
    with tab_conn:
        render_connection_settings(components)
    with tab_brand:
        render_branding_settings(components, branding)
    with tab_security:
        render_security_settings(components, lock)
    with tab_script:
        st.markdown(
            "Paste this into **Extensions → Apps Script** of your spreadsheet, "
            "then deploy it as a web app accessible to anyone."
        )
        st.code(backend_script_source(), language="javascript")


def render_unlock_form(components: AppComponents, lock: SettingsLock):
    seconds = lock.seconds_locked()
    if seconds > 0:
        st.error(f"⛔ Too many wrong attempts. Try again in {int(seconds) + 1} seconds.")
        return

    with st.form("unlock_form"):
        password = st.text_input("Settings password", type="password")
        submitted = st.form_submit_button("🔓 Unlock")

    if submitted:
        try:
            if lock.unlock(password):
                run_async(components.audit_logger.log_settings_event(
                    AuditEventType.SETTINGS_UNLOCKED, "Settings panel unlocked"
                ))
                st.session_state.settings_unlocked = True
                st.rerun()
            run_async(components.audit_logger.log_settings_event(
                AuditEventType.SETTINGS_UNLOCK_FAILED, "Wrong settings password",
                remaining_attempts=lock.remaining_attempts,
            ))
            st.error(f"❌ Wrong password. {lock.remaining_attempts} attempts left.")
        except SettingsLockedError as e:
            run_async(components.audit_logger.log_settings_event(
                AuditEventType.SETTINGS_LOCKED_OUT, "Settings panel locked out",
                seconds=int(e.seconds_left),
            ))
            st.error(f"⛔ {e}")


def render_connection_settings(components: AppComponents):
    current = components.connection
    mode = st.radio(
        "Storage",
        options=[StorageMode.LOCAL, StorageMode.REMOTE],
        index=1 if current.is_remote else 0,
        format_func=lambda m: "💾 Local (demo)" if m == StorageMode.LOCAL else "📊 Google Sheets",
    )
    script_url = st.text_input("Apps Script web app URL", value=current.script_url)

    if st.button("💾 Save connection"):
        config = ConnectionConfig(mode=mode, script_url=script_url)
        if config.is_remote and not config.has_valid_url:
            st.error("❌ Enter the web app URL (starting with https://) first.")
            return
        save_connection_config(components.store, config)
        reload_components()
        st.success("✅ Connection saved. Data will be reloaded.")
        st.rerun()


def render_branding_settings(components: AppComponents, branding: BrandingConfig):
    with st.form("branding_form"):
        app_name = st.text_input("App name", value=branding.app_name)
        housing_name = st.text_input("Housing name", value=branding.housing_name)
        logo_url = st.text_input("Logo URL", value=branding.logo_url)
        submitted = st.form_submit_button("💾 Save branding")

    if submitted:
        save_branding_config(
            components.store,
            BrandingConfig(app_name=app_name, housing_name=housing_name, logo_url=logo_url),
        )
        st.success("✅ Branding saved")
        st.rerun()


def render_security_settings(components: AppComponents, lock: SettingsLock):
    with st.form("password_form", clear_on_submit=True):
        new_password = st.text_input("New settings password", type="password")
        confirm_password = st.text_input("Repeat new password", type="password")
        submitted = st.form_submit_button("🔐 Change password")

    if submitted:
        try:
            lock.change_password(new_password, confirm_password)
        except SettingsPasswordError as e:
            st.error(f"❌ {e}")
            return
        run_async(components.audit_logger.log_settings_event(
            AuditEventType.SETTINGS_PASSWORD_CHANGED, "Settings password changed"
        ))
        st.success("✅ Settings password changed")


if __name__ == "__main__":
    main()
