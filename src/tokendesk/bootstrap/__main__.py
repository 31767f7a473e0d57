"""Bootstrap entry point: ``python -m tokendesk.bootstrap``."""

import asyncio
import logging
import signal
import sys

from tokendesk.bootstrap.supervisor import SIGNAL_EXIT_CODES, Supervisor
from tokendesk.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Prepare the environment, run the API server and clean up on exit."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    supervisor = Supervisor(settings)
    try:
        code = asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        code = supervisor.exit_code or SIGNAL_EXIT_CODES[signal.SIGINT]
    sys.exit(code)


if __name__ == "__main__":
    main()
