"""Main entry point - loads the session and serves the web interface."""

from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path

from .config import AppConfig, get_db_path, get_local_usage_db_path, load_config
from .errors import ConfigurationMissing
from .kv_store import HttpKeyValueStore, SqliteKeyValueStore
from .persistence import PersistenceGateway
from .session import KioskSession
from .web.app import create_app, run_web_server

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_gateway(config: AppConfig, db_path: Path) -> PersistenceGateway:
    """Remote tier is another kiosk's key-value API if configured, else our own database."""
    if config.kv_url:
        remote = HttpKeyValueStore(config.kv_url)
    else:
        remote = SqliteKeyValueStore(db_path)
    return PersistenceGateway(remote=remote, local=SqliteKeyValueStore(get_local_usage_db_path()))


def main() -> int:
    """Run the kiosk."""
    config = load_config()
    db_path = get_db_path()
    session = KioskSession(config, build_gateway(config, db_path))

    startup_error = None
    try:
        session.init()
    except ConfigurationMissing as e:
        logger.error("Cannot load: %s", e)
        startup_error = str(e)

    app = create_app(session=session, config_path=db_path, startup_error=startup_error)

    def shutdown(signum=None, frame=None):
        logger.info("Shutting down...")
        session.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    logger.info("Web interface at http://0.0.0.0:%d", config.web_port)
    run_web_server(app, port=config.web_port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
