# wastefleet/utils.py

import logging
import os
import time

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: str = None) -> None:
    """Configure the root logger; the thread name shows simulator ticks apart."""
    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def log_time(name, start_time):
    """
    Logs the elapsed time since start_time with a label, and returns a new timestamp.
    """
    end_time = time.perf_counter()
    logger.debug(f"{name} took {end_time - start_time:.6f} seconds")
    return time.perf_counter()  # return new start for next measurement
