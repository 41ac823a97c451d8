import threading
import time


class SharedState:
    """
    Singleton class to share state between the perception engine
    and the FastAPI web server.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SharedState, cls).__new__(cls)
                    cls._instance._init_fields()
        return cls._instance

    def _init_fields(self):
        self.data_lock = threading.Lock()
        self.detections = []
        self.notification = None
        self.last_status = None
        self.engine = None
        self.recognition_store = None
        self.database = None
        self.config = None
        self.system_stats = {
            "start_time": 0,
            "last_frame_ts": None,
        }

    def reset(self):
        """Drop all shared references (used on shutdown and in tests)."""
        with self.data_lock:
            self._init_fields()

    def apply_outcome(self, outcome):
        """
        Engine listener: publish the latest frame outcome.

        Failed frames only refresh the status; the displayed detections are
        replaced only when the outcome says so.
        """
        with self.data_lock:
            self.last_status = outcome.status.value
            self.system_stats["last_frame_ts"] = time.time()
            if outcome.replaces_display:
                self.detections = list(outcome.detections)
            if outcome.notification is not None:
                self.notification = outcome.notification

    def get_detections(self):
        with self.data_lock:
            return list(self.detections)

    def get_notification(self):
        with self.data_lock:
            return self.notification

    def get_last_status(self):
        with self.data_lock:
            return self.last_status

    def set_engine(self, engine):
        self.engine = engine
        self.recognition_store = engine.recognition if engine is not None else None

    def get_recognition(self):
        if self.recognition_store is None:
            return None
        return self.recognition_store.get()

    def get_engine_stats(self):
        if self.engine is None:
            return None
        return self.engine.stats_snapshot()

    def set_database(self, db):
        self.database = db

    def set_config(self, config):
        self.config = config

    def update_system_stats(self, stats):
        with self.data_lock:
            self.system_stats.update(stats)

    def get_system_stats_copy(self):
        """Return a shallow copy of current system stats."""
        with self.data_lock:
            return dict(self.system_stats)


# Global instance
state = SharedState()
