"""dexpress: deploy backend with a simulated build pipeline.

Projects are registered on deploy, every deploy creates a run, and a
detached build driver walks the run through a fixed stage script while
readers poll or stream its status and log tail.
"""

__version__ = "0.1.0"
__description__ = "Deploy backend: projects, simulated build runs, and streamed run logs"

from dexpress.core.orchestrator import Orchestrator
from dexpress.api.app import create_app
from dexpress.cli.app import app as cli

__all__ = ["Orchestrator", "create_app", "cli", "__version__"]
