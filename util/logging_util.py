import logging
import sys

# Configure logging format
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, level=logging.INFO) -> logging.Logger:
    """
    Sets up a logger with consistent formatting.

    Args:
        name: Name of the logger (typically __name__ from the calling module)
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if not logger.handlers:
        # Console handler
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)

        # Formatter
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    return logger

def log_llm_interaction(logger: logging.Logger, template_path: str, params: dict,
                        response: str, model_name: str, duration_ms: float = None):
    """
    Logs an LLM interaction with all relevant details.

    Args:
        logger: Logger instance to use
        template_path: Path to the template used
        params: Parameters passed to the template
        response: Response from the LLM
        model_name: Name of the model used
        duration_ms: Optional duration of the call in milliseconds
    """
    duration_str = f" ({duration_ms:.2f}ms)" if duration_ms else ""
    logger.info(f"LLM Request{duration_str} - Model: {model_name}")
    logger.debug(f"  Template: {template_path}")
    logger.debug(f"  Params: {params}")
    logger.info(f"  Response: {response[:200]}{'...' if len(response) > 200 else ''}")

def log_source_summary(logger: logging.Logger, source_name: str, status: str,
                       message: str, item_errors: int = 0):
    """
    Logs the outcome of processing one source.

    Args:
        logger: Logger instance to use
        source_name: Human label of the source
        status: Final summary status
        message: Summary message
        item_errors: Number of item-level errors collected
    """
    level = logging.WARNING if status == "failed" else logging.INFO
    logger.log(level, f"Source '{source_name}' finished with status {status}: {message}")
    if item_errors:
        logger.warning(f"  {item_errors} item-level error(s) for '{source_name}'")
