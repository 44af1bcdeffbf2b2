"""Session management helpers for the Streamlit frontend."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import streamlit as st

from chatrelay.core.config import get_settings
from chatrelay.core.storage import DEFAULT_TITLE, HistoryStore, make_title

_STORE_KEY = "history_store"
_SETTINGS_KEY = "chat_settings"


def _default_settings() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "model": settings.DEFAULT_MODEL,
        "temperature": settings.DEFAULT_TEMPERATURE,
        "stream": True,
    }


def initialize_session() -> None:
    """Initialise Streamlit session state and the SQLite history store."""

    if _STORE_KEY not in st.session_state:
        settings = get_settings()
        store = HistoryStore(settings.database_path, settings.MAX_CHAT_HISTORY)
        store.initialize()
        st.session_state[_STORE_KEY] = store
        st.session_state[_SETTINGS_KEY] = store.load_settings(_default_settings())

    st.session_state.setdefault("current_chat_id", None)
    st.session_state.setdefault("current_messages", [])
    st.session_state.setdefault("server_healthy", None)


def _store() -> HistoryStore:
    return st.session_state[_STORE_KEY]


def get_chat_settings() -> Dict[str, Any]:
    return st.session_state[_SETTINGS_KEY]


def update_chat_settings(**values: Any) -> None:
    st.session_state[_SETTINGS_KEY].update(values)
    _store().save_settings(st.session_state[_SETTINGS_KEY])


def list_conversations() -> List[Dict[str, Any]]:
    return _store().list_conversations()


def get_current_messages() -> List[Dict[str, str]]:
    return st.session_state.current_messages


def get_current_chat_id() -> Optional[str]:
    return st.session_state.current_chat_id


def new_chat() -> None:
    st.session_state.current_chat_id = None
    st.session_state.current_messages = []


def load_chat(chat_id: str) -> None:
    conversation = _store().get_conversation(chat_id)
    if not conversation:
        return
    st.session_state.current_chat_id = chat_id
    st.session_state.current_messages = [
        {"role": msg["role"], "content": msg["content"]} for msg in conversation["messages"]
    ]


def append_message(role: str, content: str) -> None:
    """Record a message in the open conversation, creating it on first use."""

    store = _store()
    chat_id = st.session_state.current_chat_id
    if not chat_id:
        chat_id = store.create_conversation(
            make_title(content) if role == "user" else DEFAULT_TITLE,
            model=get_chat_settings()["model"],
        )
        st.session_state.current_chat_id = chat_id

    store.append_message(chat_id, role, content)
    st.session_state.current_messages.append({"role": role, "content": content})


def delete_conversation(chat_id: str) -> None:
    _store().delete_conversation(chat_id)
    if st.session_state.current_chat_id == chat_id:
        new_chat()


def clear_all() -> None:
    _store().clear_all()
    new_chat()


def export_history() -> Dict[str, Any]:
    return _store().export()
