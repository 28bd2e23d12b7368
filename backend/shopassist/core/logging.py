import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional


class SessionLogger:
    """
    Logger that writes one file per shopping session.

    The file name is {timestamp}_{tenant}_{session}.log. An existing file for
    the same session is reused so a whole conversation lands in one place.
    """
    def __init__(self, log_dir: str, tenant_id: str, session_id: Optional[str]):
        self.tenant_id = tenant_id or "default"
        self.session_id = session_id or "anonymous"
        self.log_dir = log_dir

        os.makedirs(self.log_dir, exist_ok=True)

        suffix = f"_{self.tenant_id}_{self.session_id}.log"
        existing_file = None
        if self.session_id != "anonymous":
            for f in os.listdir(self.log_dir):
                if f.endswith(suffix):
                    existing_file = f
                    break

        if existing_file:
            self.filename = existing_file
        else:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M")
            self.filename = f"{timestamp}{suffix}"

        self.filepath = os.path.join(self.log_dir, self.filename)

        logger_name = f"session.{self.tenant_id}.{self.session_id}.{datetime.now().timestamp()}"
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False  # keep session chatter out of the console

        fh = logging.FileHandler(self.filepath, encoding="utf-8")
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        self.logger.addHandler(fh)

    def info(self, msg: str):
        self.logger.info(msg)

    def error(self, msg: str):
        self.logger.error(msg)

    def warning(self, msg: str):
        self.logger.warning(msg)

    def close(self):
        """
        Release file handlers.
        """
        for handler in self.logger.handlers[:]:
            handler.close()
            self.logger.removeHandler(handler)


class EventSink:
    """
    One-way sink for pipeline events. A failing sink never fails a turn.
    """
    def __init__(self, logger_name: str = "shop.events"):
        self.logger = logging.getLogger(logger_name)

    def record(self, event: Dict[str, Any]) -> None:
        try:
            self.emit(event)
        except Exception as e:
            logging.getLogger("shop.core").warning(f"Event sink failed: {e}")

    def emit(self, event: Dict[str, Any]) -> None:
        self.logger.info("EVENT | %s", json.dumps(event, ensure_ascii=False, default=str))


def record_event(sink: Any, event: Dict[str, Any]) -> None:
    """Hand an event to any sink-like collaborator. Sink errors are logged and dropped."""
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception as e:
        logging.getLogger("shop.core").warning(f"Event sink failed for '{event.get('event')}': {e}")


def setup_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    # Silence noisy libraries
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
