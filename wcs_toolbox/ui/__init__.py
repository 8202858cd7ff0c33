"""
Qt presentation layer.

`run_app` lives in `wcs_toolbox.ui.app` and needs the Qt GUI libraries;
the bridge only needs QtCore.
"""
from .bridge import TaskQueueBridge

__all__ = ["TaskQueueBridge"]
