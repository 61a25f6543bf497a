"""Chat-bot result broadcast.

Posts finished match results to a chat-bot HTTP API (Telegram-style
sendMessage endpoint).

Reads configuration from environment variables:
  - LEAGUE_BOT_TOKEN
  - LEAGUE_BOT_CHAT_ID
  - LEAGUE_BOT_API_URL (default https://api.telegram.org)

If token or chat id is missing, operates in dry-run mode
(logs messages but doesn't send).
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096


def format_result_message(match, home_name: str, away_name: str, stage_label: Optional[str] = None) -> str:
    """One-line result, e.g. "Final: Lions 2:1 Tigers (pen. 4:3)"."""
    text = f"{home_name} {match.home_score}:{match.away_score} {away_name}"
    if match.has_penalty_shootout:
        text += f" (pen. {match.penalty_home_score}:{match.penalty_away_score})"
    if stage_label:
        text = f"{stage_label}: {text}"
    return text


class ResultBroadcaster:
    def __init__(self, session: Optional[requests.Session] = None):
        self.token = os.getenv("LEAGUE_BOT_TOKEN", "")
        self.chat_id = os.getenv("LEAGUE_BOT_CHAT_ID", "")
        self.api_url = os.getenv("LEAGUE_BOT_API_URL", DEFAULT_API_URL).rstrip("/")
        self.http = session or requests.Session()
        self.dry_run = not (self.token and self.chat_id)
        if self.dry_run:
            logger.warning(
                "Result broadcast not configured. Running in dry-run mode. "
                "Set LEAGUE_BOT_TOKEN and LEAGUE_BOT_CHAT_ID."
            )

    def send_message(self, text: str) -> dict:
        """
        Send one message to the configured chat.

        Returns:
            dict with keys: status, message_id, error
        """
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[:MAX_MESSAGE_LENGTH - 3] + "..."

        if self.dry_run:
            logger.info(f"[DRY RUN] broadcast: {text[:80]}")
            return {
                "status": "dry_run",
                "message_id": f"DRY_RUN_{datetime.now(timezone.utc).isoformat()}",
                "error": None,
            }

        try:
            resp = self.http.post(
                f"{self.api_url}/bot{self.token}/sendMessage",
                json={"chat_id": self.chat_id, "text": text},
                timeout=10,
            )
            resp.raise_for_status()
            data = resp.json()
            message_id = (data.get("result") or {}).get("message_id")
            logger.info(f"Broadcast sent: message_id={message_id}")
            return {"status": "sent", "message_id": message_id, "error": None}
        except requests.RequestException as e:
            logger.error(f"Failed to broadcast result: {e}")
            return {"status": "failed", "message_id": None, "error": str(e)}

    @property
    def is_configured(self) -> bool:
        return not self.dry_run


# Singleton instance
_result_broadcaster: Optional[ResultBroadcaster] = None


def get_result_broadcaster() -> ResultBroadcaster:
    """Get or create the singleton ResultBroadcaster instance."""
    global _result_broadcaster
    if _result_broadcaster is None:
        _result_broadcaster = ResultBroadcaster()
    return _result_broadcaster
