"""
Streamlit Chat Console for Ledger Assistant

A local stand-in for the chat transport: type messages the way you would
send them to the bot, or upload a receipt photo.

DESIGN PRINCIPLES:
1. The console only forwards messages; all logic lives in LedgerAssistant
2. Replies are shown exactly as the bot would send them
3. Clear error messages in simple language
"""

import asyncio
import hashlib
from datetime import date, datetime, time, timezone

import streamlit as st

from ledger_assistant.config import validate_all_settings
from ledger_assistant.models.ledger import Category
from ledger_assistant.orchestrator import LedgerAssistant, create_app_components
from ledger_assistant.reports import WeeklyReporter


# Page configuration
st.set_page_config(
    page_title="Ledger Assistant",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    assistant, reporter, _ = get_components()

    st.sidebar.title("💰 Ledger Assistant")
    st.sidebar.markdown("---")

    owner = st.sidebar.text_input("Ledger owner", value="me")

    page = st.sidebar.radio(
        "Navigate to:",
        ["💬 Chat", "📋 Transactions", "📅 Weekly Report", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Try messages like:**
        - "lunch 150, taxi 80"
        - "how much did I spend this month?"
        - "delete the lunch one"
        - "set food budget 3000"
        """
    )

    if page == "💬 Chat":
        render_chat_page(assistant, owner)
    elif page == "📋 Transactions":
        render_transactions_page(assistant, owner)
    elif page == "📅 Weekly Report":
        render_report_page(reporter, owner)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_chat_page(assistant: LedgerAssistant, owner: str):
    """Render the chat page."""
    st.title("💬 Chat")

    if "messages" not in st.session_state:
        st.session_state.messages = []

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["text"])
            if message.get("breakdown"):
                st.bar_chart(message["breakdown"])

    with st.expander("📷 Send a receipt photo"):
        uploaded_file = st.file_uploader(
            "Choose a receipt photo",
            type=["jpg", "jpeg", "png", "webp"],
            help="Take a clear, well-lit photo of the receipt",
        )
        if uploaded_file and st.button("Send photo", type="primary"):
            image_bytes = uploaded_file.read()
            # Same photo sent twice is treated as a redelivery
            message_id = hashlib.sha256(image_bytes).hexdigest()
            with st.spinner("Reading your receipt..."):
                reply = run_async(assistant.handle_image(
                    owner,
                    image_bytes,
                    uploaded_file.type or "image/jpeg",
                    message_id=message_id,
                ))
            st.session_state.messages.append({"role": "user", "text": f"📷 {uploaded_file.name}"})
            st.session_state.messages.append({
                "role": "assistant",
                "text": reply.text if reply else "That photo was already processed.",
            })
            st.rerun()

    text = st.chat_input("Type a message")
    if text:
        st.session_state.messages.append({"role": "user", "text": text})
        with st.spinner("Thinking..."):
            reply = run_async(assistant.handle_text(owner, text))
        st.session_state.messages.append({
            "role": "assistant",
            "text": reply.text,
            "breakdown": {c.category.value: c.total for c in reply.breakdown},
        })
        st.rerun()


def render_transactions_page(assistant: LedgerAssistant, owner: str):
    """Render the transactions list page."""
    st.title("📋 Transactions")

    col1, col2, col3 = st.columns(3)

    with col1:
        category = st.selectbox(
            "Filter by Category",
            options=[None] + list(Category),
            format_func=lambda x: "All Categories" if x is None else x.value,
        )

    with col2:
        picked = st.date_input("Date Range", value=[], help="Select date range")

    with col3:
        search = st.text_input("Search item")

    start = end = None
    if isinstance(picked, (list, tuple)) and picked:
        start = datetime.combine(picked[0], time.min, tzinfo=timezone.utc)
        if len(picked) == 2:
            end = datetime.combine(picked[1], time.max, tzinfo=timezone.utc)

    page_number = st.number_input("Page", min_value=1, value=1, step=1)

    result = run_async(assistant.stats.search_transactions(
        owner,
        category=category,
        search=search or None,
        page=int(page_number),
        start=start,
        end=end,
    ))

    st.markdown(f"**{result.total}** transactions, page {result.page} of {max(result.total_pages, 1)}")
    st.markdown("---")

    if not result.items:
        st.info("📋 No transactions yet. Record some on the Chat page.")
        return

    for tx in result.items:
        col_text, col_action = st.columns([5, 1])
        col_text.markdown(f"{tx.summary} · {tx.kind.value}")
        if col_action.button("🗑️ Delete", key=f"delete-{tx.id}"):
            run_async(assistant.executor.delete_transaction(owner, tx.id))
            st.rerun()


def render_report_page(reporter: WeeklyReporter, owner: str):
    """Render last week's report for every owner."""
    st.title("📅 Weekly Report")
    st.markdown(f"Reports for the week before {date.today():%Y-%m-%d}.")

    if st.button("Generate reports", type="primary"):
        reports = run_async(reporter.run())
        if not reports:
            st.info("No owners have transactions yet.")
        for report in reports:
            with st.expander(f"{report.owner} - {report.status.value}", expanded=report.owner == owner):
                if report.text:
                    st.text(report.text)
                else:
                    st.markdown("Nothing recorded last week.")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables. Without Google Sheets "
        "the ledger is kept in memory and lost on restart."
    )


if __name__ == "__main__":
    main()
