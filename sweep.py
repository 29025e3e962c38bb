import itertools
import logging
import os
from dataclasses import dataclass
from typing import Optional

from cleanup_ports import clear_data_dir
from config import LOG_LEVELS, MAX_CONCURRENT_LOGS_VALUES, SWEEP_DATA_SUBDIR, SWEEP_NODE_ID
from launcher import ensure_writable_dir
from validator import SweepTrial, validate_trial

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepNode:
    """The node each trial creates; `create` gets no --addr when rpc_address is unset."""

    id: str
    data_dir: str
    rpc_address: Optional[str] = None


def sweep_trials(log_levels=LOG_LEVELS, max_concurrent_logs=MAX_CONCURRENT_LOGS_VALUES):
    return [SweepTrial(level, n) for level, n in itertools.product(log_levels, max_concurrent_logs)]


def run_sweep(launcher, work_dir, trials=None):
    """
    Run `create` once per trial against a freshly emptied data directory.

    All trials are validated before the first one runs. The first failing
    trial raises and the remaining ones are skipped.
    """
    trials = sweep_trials() if trials is None else list(trials)
    for trial in trials:
        validate_trial(trial)

    work_dir = os.path.abspath(work_dir)
    ensure_writable_dir(work_dir)
    node = SweepNode(id=SWEEP_NODE_ID, data_dir=os.path.join(work_dir, SWEEP_DATA_SUBDIR))

    for n, trial in enumerate(trials, 1):
        clear_data_dir(node.data_dir)
        logger.info(f"Trial {n}/{len(trials)}: loglevel={trial.loglevel} "
                    f"max_concurrent_logs={trial.max_concurrent_logs}")
        launcher.create(node, global_flags=trial.global_flags())

    logger.info(f"All {len(trials)} trials passed")
    return len(trials)
