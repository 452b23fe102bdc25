"""arq worker settings module.

Import path for arq CLI: arq stockpick.workers.settings.WorkerSettings
"""

from __future__ import annotations

from stockpick.workers.jobs import WorkerSettings

__all__ = ["WorkerSettings"]
