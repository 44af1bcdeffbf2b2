"""Streamlit application entry point."""

from __future__ import annotations

from typing import List

import streamlit as st
from dotenv import load_dotenv

from chatrelay.frontend import api_client, session_manager, ui_component

load_dotenv()

st.set_page_config(page_title="AI Global Networks Assistant", page_icon="🤖", layout="wide")

session_manager.initialize_session()

if st.session_state.server_healthy is None:
    st.session_state.server_healthy = api_client.check_health()
if not st.session_state.server_healthy:
    st.error("Cannot connect to server. Please make sure the backend is running.")

ui_component.render_sidebar()

messages = session_manager.get_current_messages()
if not messages:
    st.title("What can I help with?")
else:
    ui_component.render_chat_history(messages)

prompt = st.chat_input("Message AI Global Networks…")

if prompt:
    session_manager.append_message("user", prompt)
    with st.chat_message("user"):
        st.markdown(prompt)

    chat_settings = session_manager.get_chat_settings()
    history = session_manager.get_current_messages()

    with st.chat_message("assistant"):
        response_container = st.empty()
        collected_chunks: List[str] = []
        try:
            if chat_settings["stream"]:
                for delta in api_client.stream_chat_completion(
                    history,
                    model=chat_settings["model"],
                    temperature=chat_settings["temperature"],
                ):
                    collected_chunks.append(delta)
                    response_container.markdown("".join(collected_chunks))
                full_response = "".join(collected_chunks)
            else:
                with st.spinner("Thinking…"):
                    data = api_client.fetch_chat_completion(
                        history,
                        model=chat_settings["model"],
                        temperature=chat_settings["temperature"],
                    )
                full_response = data.get("message", "")
                response_container.markdown(full_response)
        except Exception as exc:  # broad to display feedback in UI
            st.error(f"Sorry, I encountered an error. {exc}")
        else:
            if full_response:
                session_manager.append_message("assistant", full_response)

    st.rerun()
