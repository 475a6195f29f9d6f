"""Replay a recorded sample file through a monitoring session.

The file holds one sample per row with up to three columns, mapped in order
to the names given by ``--columns`` (default ``maternal,fetal,combined``).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from core.monitor import MonitoringSession
from shared.models import MonitorUpdate
from shared.settings import MonitorSettings, load_settings

logger = logging.getLogger("heartwatch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="heartwatch", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default="INFO", help="logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="run a recorded file through the filters and alarms")
    replay.add_argument("path", type=Path, help="text/CSV file, one sample per row")
    replay.add_argument("--settings", type=Path, default=None, help="JSON settings file")
    replay.add_argument("--sample-rate", type=float, default=None, help="override the sampling rate (Hz)")
    replay.add_argument("--columns", default="maternal,fetal,combined", help="signal name for each column")
    replay.add_argument("--delimiter", default=",", help="column delimiter (default: ',')")
    replay.add_argument("--eval-interval", type=float, default=1.0, help="seconds between rate evaluations")
    return parser


def _format(update: MonitorUpdate) -> str:
    rate = "--" if update.rounded_bpm is None else f"{update.rounded_bpm:d}"
    status = "-" if update.status is None else update.status.value
    return f"{update.signal}={rate} BPM ({status})"


def replay(
    path: Path,
    settings: MonitorSettings,
    columns: Sequence[str],
    *,
    delimiter: str = ",",
    eval_interval: float = 1.0,
) -> MonitoringSession:
    if eval_interval <= 0:
        raise ValueError("eval_interval must be positive")
    data = np.loadtxt(path, delimiter=delimiter, ndmin=2, dtype=np.float64)
    if data.shape[1] > len(columns):
        raise ValueError(f"{path}: {data.shape[1]} columns but only {len(columns)} names given")
    names = list(columns[: data.shape[1]])
    unknown = set(names) - set(MonitoringSession.SIGNALS)
    if unknown:
        raise ValueError(f"unknown signal names: {sorted(unknown)}")

    session = MonitoringSession(settings)
    step = max(1, int(round(eval_interval * settings.sample_rate)))
    logger.info("Replaying %d samples from %s (%s)", data.shape[0], path, ", ".join(names))
    for start in range(0, data.shape[0], step):
        block = data[start:start + step]
        session.push_block(**{name: block[:, idx] for idx, name in enumerate(names)})
        updates = session.evaluate()
        t_sec = (start + block.shape[0]) / settings.sample_rate
        print(f"t={t_sec:7.2f}s  " + "  ".join(_format(u) for u in updates.values()))

    for monitor in session:
        metrics = monitor.alarm_metrics
        if monitor.classifier is not None:
            logger.info(
                "%s: %d critical alarm(s), mean response %.0f ms",
                monitor.name,
                metrics.alarm_count,
                metrics.avg_response_time_ms,
            )
        if monitor.filter_chain.rejected_samples:
            logger.warning("%s: %d invalid samples held", monitor.name, monitor.filter_chain.rejected_samples)
    return session


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.settings) if args.settings is not None else MonitorSettings()
        if args.sample_rate is not None:
            settings = MonitorSettings.from_dict({**settings.as_dict(), "sample_rate": args.sample_rate})
            settings.validate()
        columns = [name.strip() for name in args.columns.split(",") if name.strip()]
        replay(args.path, settings, columns, delimiter=args.delimiter, eval_interval=args.eval_interval)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
