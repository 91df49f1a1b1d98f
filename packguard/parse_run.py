"""Runs the per-file pipeline over a set of files and reports the outcome.

Files are processed sequentially or on a worker pool. Workers only
produce offenses; the todo files are consulted and updated afterwards in
the calling process, one offense at a time, so no two workers ever touch
the same todo file.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .checkers import EverythingListed, ReferenceLister
from .config import Configuration
from .formatter import OffensesFormatter, PlainOffensesFormatter
from .models import Offense
from .offense_collection import OffenseCollection
from .run_context import RunContext

logger = logging.getLogger(__name__)

POOL_KINDS = ("process", "thread")

ProgressCallback = Callable[[List[Offense]], None]


@dataclass
class Result:
    message: str
    status: bool


# ---------------------------------------------------------------------------
# Process pool workers hold their own RunContext
# ---------------------------------------------------------------------------
_worker_context: Optional[RunContext] = None


def _init_worker(configuration: Configuration) -> None:
    global _worker_context
    _worker_context = RunContext.from_configuration(configuration)


def _process_in_worker(relative_file: str, reference_lister: Optional[ReferenceLister] = None) -> List[Offense]:
    if _worker_context is None:
        raise RuntimeError("worker used before initialization")
    return _worker_context.process_file(relative_file, reference_lister)


class ParseRun:
    """One ``check``, ``update-todo`` or ``detect-stale-violations`` run."""

    def __init__(
        self,
        relative_files: Sequence[str],
        configuration: Configuration,
        run_context: Optional[RunContext] = None,
        formatter: Optional[OffensesFormatter] = None,
        progress: Optional[ProgressCallback] = None,
        pool: Optional[str] = None,
        scoped: bool = False,
    ) -> None:
        """
        Args:
            relative_files: files to process, relative to the root path.
            configuration: the loaded project configuration.
            run_context: prebuilt context; built from *configuration* when omitted.
            formatter: renders offenses into the result message.
            progress: called with each file's offenses as they arrive.
            pool: ``"process"`` or ``"thread"``; None follows ``configuration.parallel``.
            scoped: the files were named explicitly, so stale todo entries
                are only looked for among them.
        """
        if pool is not None and pool not in POOL_KINDS:
            raise ValueError(f"pool must be one of {POOL_KINDS}, got {pool!r}")
        self.relative_files = list(relative_files)
        self.configuration = configuration
        self._run_context = run_context
        self.formatter = formatter or PlainOffensesFormatter()
        self.progress = progress
        self.pool = pool if pool is not None else ("process" if configuration.parallel else None)
        self.scoped = scoped
        self.interrupted = False

    @property
    def run_context(self) -> RunContext:
        if self._run_context is None:
            self._run_context = RunContext.from_configuration(self.configuration)
        return self._run_context

    def _stale_scope(self) -> Optional[List[str]]:
        return self.relative_files if self.scoped else None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def check(self) -> Result:
        collection = self.find_offenses()
        stale = collection.stale_violations(self._stale_scope(), self.run_context.package_set)
        messages = [
            self.formatter.show_offenses(collection.outstanding_offenses()),
            self.formatter.show_stale_violations(stale),
            self.formatter.show_strict_mode_violations(collection.strict_mode_violations),
        ]
        if self.interrupted:
            messages.insert(0, self.formatter.show_interrupted())
        status = (
            not self.interrupted
            and not collection.outstanding_offenses()
            and not stale
            and not collection.strict_mode_violations
        )
        return Result(message="\n".join(m for m in messages if m), status=status)

    def update_todo(self) -> Result:
        # every violation goes into the todo files, not only the first per reference
        collection = self.find_offenses(EverythingListed())
        if self.interrupted:
            # a partial run would drop entries for files it never reached
            message = "\n".join(
                [self.formatter.show_interrupted(), self.formatter.show_offenses(collection.errors)]
            )
            return Result(message=message, status=False)

        collection.persist_package_todo_files(self.run_context.package_set)
        messages = [
            self.formatter.show_offenses(collection.errors),
            self.formatter.show_strict_mode_violations(collection.strict_mode_violations),
            "✅ `package_todo.yml` has been updated.",
        ]
        status = not collection.errors and not collection.strict_mode_violations
        return Result(message="\n".join(m for m in messages if m), status=status)

    def detect_stale_violations(self) -> Result:
        collection = self.find_offenses()
        stale = collection.stale_violations(self._stale_scope(), self.run_context.package_set)
        message = self.formatter.show_stale_violations(stale)
        if self.interrupted:
            message = f"{self.formatter.show_interrupted()}\n{message}"
        return Result(message=message, status=not stale and not self.interrupted)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def find_offenses(self, reference_lister: Optional[ReferenceLister] = None) -> OffenseCollection:
        """Process every file, then reconcile the offenses with the todo files.

        Args:
            reference_lister: decides which violations checking may skip past;
                the persisted todo files when omitted.
        """
        run_context = self.run_context
        # surface ambiguous constant definitions before any work is scheduled
        run_context.context_provider.validate_constants()

        offenses_by_file: Dict[str, List[Offense]] = {}
        try:
            if self.pool is None or len(self.relative_files) <= 1:
                self._process_serially(offenses_by_file, reference_lister)
            else:
                self._process_in_pool(offenses_by_file, reference_lister)
        except KeyboardInterrupt:
            logger.warning("Interrupted after %d of %d files", len(offenses_by_file), len(self.relative_files))
            self.interrupted = True

        collection = OffenseCollection(run_context.root_path, run_context.checkers)
        # file order keeps the result independent of scheduling
        for relative_file in self.relative_files:
            collection.add_offenses(offenses_by_file.get(relative_file, []))
        return collection

    def _record(self, offenses_by_file: Dict[str, List[Offense]], relative_file: str, offenses: List[Offense]) -> None:
        offenses_by_file[relative_file] = offenses
        if self.progress is not None:
            self.progress(offenses)

    def _process_serially(
        self, offenses_by_file: Dict[str, List[Offense]], reference_lister: Optional[ReferenceLister]
    ) -> None:
        for relative_file in self.relative_files:
            offenses = self.run_context.process_file(relative_file, reference_lister)
            self._record(offenses_by_file, relative_file, offenses)

    def _process_in_pool(
        self, offenses_by_file: Dict[str, List[Offense]], reference_lister: Optional[ReferenceLister]
    ) -> None:
        workers = self.configuration.workers or os.cpu_count() or 1
        executor = self._executor(workers)
        if self.pool == "thread":
            work: Callable[..., List[Offense]] = self.run_context.process_file
        else:
            work = _process_in_worker
        try:
            futures: Dict[Future, str] = {executor.submit(work, f, reference_lister): f for f in self.relative_files}
            for future in as_completed(futures):
                self._record(offenses_by_file, futures[future], future.result())
        except BaseException:
            # stop scheduling; files already finished stay recorded
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

    def _executor(self, workers: int) -> Executor:
        if self.pool == "thread":
            return ThreadPoolExecutor(max_workers=workers)
        return ProcessPoolExecutor(
            max_workers=workers, initializer=_init_worker, initargs=(self.configuration,)
        )
