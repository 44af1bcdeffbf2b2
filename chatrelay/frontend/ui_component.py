"""Streamlit UI components for the chat application."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import streamlit as st

from . import session_manager

MODEL_OPTIONS = [
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
    "mixtral-8x7b-32768",
    "gemma2-9b-it",
]


def render_sidebar() -> None:
    with st.sidebar:
        st.title("💬 AI Global Networks")
        st.caption("Ask about our automation and integration solutions")

        if st.button("➕ New chat", use_container_width=True):
            session_manager.new_chat()
            st.rerun()

        st.markdown("---")
        chat_settings = session_manager.get_chat_settings()

        options = list(MODEL_OPTIONS)
        if chat_settings["model"] not in options:
            options.insert(0, chat_settings["model"])
        model = st.selectbox("Model", options, index=options.index(chat_settings["model"]))
        temperature = st.slider(
            "Temperature", min_value=0.0, max_value=2.0, step=0.1,
            value=float(chat_settings["temperature"]),
        )
        stream = st.toggle("Stream responses", value=bool(chat_settings["stream"]))
        if (model, temperature, stream) != (
            chat_settings["model"], chat_settings["temperature"], chat_settings["stream"]
        ):
            session_manager.update_chat_settings(model=model, temperature=temperature, stream=stream)

        st.markdown("---")
        st.subheader("History")

        conversations = session_manager.list_conversations()
        if not conversations:
            st.write("No chats yet")
        current_id = session_manager.get_current_chat_id()
        for convo in conversations:
            cols = st.columns([0.8, 0.2])
            label = f"▶ {convo['title']}" if convo["id"] == current_id else convo["title"]
            if cols[0].button(label, key=f"select_{convo['id']}", use_container_width=True):
                session_manager.load_chat(convo["id"])
                st.rerun()
            if cols[1].button("🗑️", key=f"delete_{convo['id']}"):
                session_manager.delete_conversation(convo["id"])
                st.rerun()

        st.markdown("---")
        st.download_button(
            "Export chats",
            data=json.dumps(session_manager.export_history(), indent=2),
            file_name=f"ai-global-chats-{int(datetime.now(UTC).timestamp())}.json",
            mime="application/json",
            use_container_width=True,
        )
        if st.button("Clear all chats", use_container_width=True):
            session_manager.clear_all()
            st.rerun()


def render_chat_history(messages: list[dict[str, str]]) -> None:
    for message in messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])
