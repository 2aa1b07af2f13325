import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import streamlit as st

from cwtail.config import logs_client
from cwtail.errors import TailError
from cwtail.output import format_event
from cwtail.tail import tail

MAX_ROWS = 5000


def fetch_window(client, group: str, stream: str, minutes: int, grep: str, grepv: str) -> List[Dict[str, Any]]:
    """Run a bounded tail over the last `minutes` and collect the events as rows."""
    end = datetime.now(timezone.utc)
    start = end - timedelta(minutes=minutes)
    rows: List[Dict[str, Any]] = []
    with tail(client, group, stream or "*", start=start, end=end, grep=grep, grepv=grepv,
              poll_interval=0.2) as handle:
        for event in handle:
            rows.append({
                "timestamp": datetime.fromtimestamp(event.timestamp / 1000, tz=timezone.utc),
                "stream": event.log_stream_name,
                "message": format_event(event),
            })
            if len(rows) >= MAX_ROWS:
                break
    return rows


def main() -> None:
    st.set_page_config(page_title="cwtail", layout="wide")
    st.title("CloudWatch Logs Tail")

    with st.sidebar:
        st.header("Client Settings")
        region = st.text_input("AWS Region", value="us-east-1")
        timeout = st.number_input("Client Timeout (seconds)", min_value=5, max_value=300, value=30, step=5)

    with st.form("tail_form"):
        group = st.text_input("Log Group", placeholder="/aws/lambda/my-function").strip()
        stream = st.text_input("Stream Prefix (blank for all streams)").strip()
        minutes = st.number_input("Look back (minutes)", min_value=1, max_value=1440, value=15, step=1)
        grep = st.text_input("Filter Pattern (server side)")
        grepv = st.text_input("Exclude Regex (client side)")
        submitted = st.form_submit_button("Fetch Events")

    if not submitted:
        return
    if not group:
        st.error("Log group is required.")
        return

    client = logs_client(region, int(timeout))
    try:
        with st.spinner(f"Reading {group}…"):
            rows = fetch_window(client, group, stream, int(minutes), grep, grepv)
    except (TailError, re.error) as exc:
        st.error(f"Error while tailing: {exc}")
        return

    st.info(f"{len(rows)} event(s)" + (" (truncated)" if len(rows) >= MAX_ROWS else ""))
    if rows:
        st.dataframe(rows, use_container_width=True, hide_index=True)


if __name__ == "__main__":
    main()
