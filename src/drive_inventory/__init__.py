"""
Drive Inventory - resumable batch crawler for large file stores.

Walks a paginated file collection in short, checkpointed invocations,
classifies and scores every file, and renders the aggregated inventory
as an Excel workbook.
"""

__version__ = "1.0.0"

from .core.config import get_config, Config
from .core.constants import APP_NAME
from .core.scheduler import CrawlScheduler, RunOutcome

__all__ = [
    'get_config',
    'Config',
    'APP_NAME',
    'CrawlScheduler',
    'RunOutcome',
]
