from __future__ import annotations

import queue
import threading
from typing import List, Optional

from .config import TrainerConfig
from .dataset import DatasetSpec, TabularDataset
from .train_model import train
from .utils import TrainResult, default_log


class TrainingJob:
    """Runs one ``train`` call on a daemon thread.

    Log lines and progress updates are queued for the caller to drain, and
    ``stop()`` asks the trainer to finish at the next epoch boundary.
    """

    def __init__(self, dataset: TabularDataset, spec: DatasetSpec, cfg: TrainerConfig, echo: bool = False):
        self.dataset = dataset
        self.spec = spec
        self.cfg = cfg
        self.echo = echo
        self.stop_flag = [False]
        self.log_q: queue.Queue[str] = queue.Queue()
        self.progress_value = 0.0
        self._result: Optional[TrainResult] = None
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # --------------------------- callbacks ---------------------------
    def _log(self, msg: str):
        self.log_q.put(msg)
        if self.echo:
            default_log(msg)

    def _progress(self, p: float, msg: str):
        self.progress_value = max(0.0, min(1.0, float(p)))

    # --------------------------- control ---------------------------
    def start(self) -> "TrainingJob":
        if self._thread is not None:
            raise RuntimeError("Training job already started")
        self.stop_flag[0] = False

        def run():
            try:
                self._result = train(self.dataset, self.spec, self.cfg, log=self._log,
                                     progress=self._progress, stop_flag=self.stop_flag)
            finally:
                self._done.set()

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self.stop_flag[0] = True
        self._log("Stop requested; training halts at the next epoch boundary.")

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> TrainResult:
        if self._thread is None:
            raise RuntimeError("Training job was never started")
        if not self._done.wait(timeout):
            raise TimeoutError("Training job did not finish in time")
        assert self._result is not None
        return self._result

    def drain_logs(self) -> List[str]:
        lines: List[str] = []
        try:
            while True:
                lines.append(self.log_q.get_nowait())
        except queue.Empty:
            pass
        return lines


def start_training(dataset: TabularDataset, spec: DatasetSpec, cfg: TrainerConfig) -> TrainingJob:
    return TrainingJob(dataset, spec, cfg).start()
