from typing import List, Optional

from PySide6.QtCore import QObject, QUrl, Slot, Signal
from loguru import logger

from wcs_toolbox.core.tasks import Task, TaskQueue
from wcs_toolbox.handlers import gallery
from wcs_toolbox.handlers.epub import preview_chapters
from wcs_toolbox.handlers.gallery import GalleryHandler
from wcs_toolbox.handlers.scanner import scan_7z_files, scan_image_folders, scan_txt_files, scan_videos


def local_path(path: str) -> str:
    """QML hands over file:/// URLs; handlers want plain paths."""
    if path.startswith("file:"):
        return QUrl(path).toLocalFile()
    return path


class TaskQueueBridge(QObject):
    """
    Bridge between QML and the TaskQueue.

    Slots must be called on the thread that runs the asyncio loop; with the
    qasync loop from run_app that is the GUI thread.
    """

    # Signals
    taskChanged = Signal(dict)
    taskListChanged = Signal(list)

    def __init__(self, queue: TaskQueue, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._queue = queue
        queue.task_changed.connect(self._on_task_changed)
        queue.task_list_changed.connect(self._on_task_list_changed)

    def detach(self):
        """Stop forwarding queue notifications (before the bridge is destroyed)."""
        self._queue.task_changed.disconnect(self._on_task_changed)
        self._queue.task_list_changed.disconnect(self._on_task_list_changed)

    def _on_task_changed(self, task: Task):
        self.taskChanged.emit(task.to_dict())

    def _on_task_list_changed(self, tasks: List[Task]):
        self.taskListChanged.emit([t.to_dict() for t in tasks])

    # ---- task queue ----

    @Slot(str, 'QVariant', str, result=int)
    def submit(self, task_type: str, data=None, name: str = "") -> int:
        logger.debug(f"UI submit: {task_type}")
        return self._queue.submit(task_type, data, name)

    @Slot(result=list)
    def listTasks(self) -> list:
        return [t.to_dict() for t in self._queue.list_all()]

    @Slot(int, result='QVariant')
    def getTask(self, task_id: int):
        task = self._queue.get(task_id)
        return task.to_dict() if task is not None else None

    @Slot(int, result=bool)
    def cancel(self, task_id: int) -> bool:
        return self._queue.cancel(task_id)

    @Slot(result=int)
    def clearCompleted(self) -> int:
        return self._queue.clear_completed()

    @Slot(result=bool)
    def cancelCrawl(self) -> bool:
        """Stop running gallery searches/crawls. Returns True if any run was signalled."""
        signalled = 0
        for task_type in (gallery.SEARCH_TASK_TYPE, gallery.CRAWL_TASK_TYPE):
            handler = self._queue.registry.get(task_type)
            if isinstance(handler, GalleryHandler):
                signalled += handler.cancel()
        return signalled > 0

    # ---- payload helpers ----

    @Slot(str, result=list)
    def scanVideos(self, root: str) -> list:
        return [v.model_dump(by_alias=True) for v in scan_videos(local_path(root))]

    @Slot(str, result=list)
    def scan7zFiles(self, root: str) -> list:
        return [f.model_dump(by_alias=True) for f in scan_7z_files(local_path(root))]

    @Slot(str, result=list)
    def scanTxtFiles(self, root: str) -> list:
        return [f.model_dump(by_alias=True) for f in scan_txt_files(local_path(root))]

    @Slot(str, result=list)
    def scanImageFolders(self, root: str) -> list:
        return [f.model_dump(by_alias=True) for f in scan_image_folders(local_path(root))]

    @Slot(str, str, result=list)
    def previewChapters(self, path: str, pattern: str = "") -> list:
        try:
            return preview_chapters(local_path(path), pattern or None)
        except OSError as e:
            logger.warning(f"Chapter preview failed for {path}: {e}")
            return []
