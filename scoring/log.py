"""
Logging setup shared by the API, the bot and the exporter.
"""
import logging
import os


def setup_logging(log_file_name: str) -> str:
    """
    Configure the root logger to write to the console and to LOG_DIR/log_file_name.

    Level comes from LOG_LEVEL (default: INFO).

    Returns:
        Path of the log file
    """
    log_dir = os.getenv("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    log_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Console handler (for docker logs)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    root_logger.addHandler(console_handler)

    # File handler (persistent logs)
    log_file = os.path.join(log_dir, log_file_name)
    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setFormatter(log_formatter)
    root_logger.addHandler(file_handler)

    # Make uvicorn use the same format
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [console_handler, file_handler]

    logging.getLogger(__name__).info(f"Logging initialized. Log file: {log_file}")
    return log_file
