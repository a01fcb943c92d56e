"""Rich-handler logging preset."""
import logging
from typing import Optional
from rich.logging import RichHandler
from .app_config import settings

# chatty third-party loggers that should not follow LOG_LEVEL=DEBUG
_NOISY = ("websockets", "can", "asyncio")

def configure(level: Optional[str] = None):
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s │ %(name)-24s │ %(levelname)-8s │ %(message)s",
        datefmt="%H:%M:%S",
        # raw candump lines contain "[8]"-style brackets, so no rich markup
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
