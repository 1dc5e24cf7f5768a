#!/usr/bin/env python3
"""
WTP Operator Trainer - server entry point
Runs the shared simulation and serves the HTTP / Socket.IO API
"""

import logging

from wtp_trainer import config

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

from wtp_trainer.app import create_app  # noqa: E402
from wtp_trainer.session import SimulationSession  # noqa: E402


def main():
    if config.DETERMINISTIC:
        logger.info(f"Deterministic mode enabled with seed {config.RANDOM_SEED}")

    sim = SimulationSession()
    app, socketio = create_app(sim)

    sim.start()
    logger.info(f"Serving on {config.HOST}:{config.PORT}")
    try:
        socketio.run(app, host=config.HOST, port=config.PORT, debug=False,
                     allow_unsafe_werkzeug=True)
    finally:
        sim.stop()


if __name__ == '__main__':
    main()
