import logging

def setup_logging(level: str = "INFO") -> None:
    # Now, we configure the global logging system.
    # We use a predictable format including Timestamp, Log Level, Logger Name, and Message.
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    # httpx logs every request at INFO; keep it to warnings so provider URLs carrying API keys stay out of the logs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
