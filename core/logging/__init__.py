"""Per-module log files, rotated at run boundaries.

Call core.config.configure_logging() once at startup. Modules keep using
`logging.getLogger(__name__)`; records are filed by module prefix:

    logs/citegraph-detection.log, logs/openalex.log, ...   first-party
    logs/run-3p.log                                        httpx and other libraries
    logs/*.previous.log                                    the previous run

A run is delimited by start_run()/end_run(), e.g. around one graph session.
"""

from core.logging.handlers import ModuleDispatchHandler, RunLogFile, ThirdPartyHandler
from core.logging.run_manager import (
    MODULE_TO_LOG,
    end_run,
    get_current_run_id,
    is_first_party,
    module_to_log_name,
    start_run,
)

__all__ = [
    "MODULE_TO_LOG",
    "ModuleDispatchHandler",
    "RunLogFile",
    "ThirdPartyHandler",
    "end_run",
    "get_current_run_id",
    "is_first_party",
    "module_to_log_name",
    "start_run",
]
