# Licensed under the Apache License, Version 2.0
import logging
import os

ENV_LOG_LEVEL = "CONGRUENCE_LOG_LEVEL"


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging once; stderr only, so JSON on stdout stays clean."""
    level_name = "DEBUG" if verbose else os.getenv(ENV_LOG_LEVEL, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=level, format=fmt)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
