from farmdash.infrastructure.logging.event_logger import EventLogger

__all__ = ["EventLogger"]
