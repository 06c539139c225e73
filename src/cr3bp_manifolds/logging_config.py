"""
Logging configuration for the project.

This module provides a centralized configuration for the logging system.
It defines different log levels, formatters, and handlers for the dynamics,
orbit and manifold packages.

Usage:
    Import this module and call setup_logging() early in your application
    to configure the logging system:

    ```python
    from cr3bp_manifolds.logging_config import setup_logging
    setup_logging()
    ```
"""

import logging
import logging.config
from pathlib import Path


def setup_logging(default_level=logging.INFO, log_dir="logs", console_level="INFO"):
    """
    Setup logging configuration for the project.

    Parameters
    ----------
    default_level : int, optional
        Default logging level. Default is logging.INFO.
    log_dir : str or pathlib.Path, optional
        Directory to store log files. Default is "logs".
    console_level : str, optional
        Level of the console handler. Default is "INFO".

    Returns
    -------
    None
        The function configures the logging system directly.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': console_level,
                'formatter': 'standard',
                'stream': 'ext://sys.stdout',
            },
            'file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': 'DEBUG',
                'formatter': 'detailed',
                'filename': str(log_path / 'simulation.log'),
                'maxBytes': 10485760,  # 10 MB
                'backupCount': 5,
                'encoding': 'utf8'
            },
            'error_file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': 'ERROR',
                'formatter': 'detailed',
                'filename': str(log_path / 'error.log'),
                'maxBytes': 10485760,  # 10 MB
                'backupCount': 5,
                'encoding': 'utf8'
            },
        },
        'loggers': {
            '': {  # root logger
                'handlers': ['console', 'file', 'error_file'],
                'level': default_level,
                'propagate': True
            },
            'cr3bp_manifolds.algorithms.dynamics': {
                'handlers': ['console', 'file'],
                'level': 'DEBUG',
                'propagate': False
            },
            'cr3bp_manifolds.algorithms.manifolds': {
                'handlers': ['console', 'file', 'error_file'],
                'level': 'DEBUG',
                'propagate': False
            },
            'cr3bp_manifolds.algorithms.orbits': {
                'handlers': ['console', 'file'],
                'level': 'INFO',
                'propagate': False
            },
        }
    }

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configuration applied")


if __name__ == "__main__":
    setup_logging()
