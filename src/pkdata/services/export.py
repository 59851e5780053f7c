"""Long-format export of validated subjects."""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Union

import pandas as pd
import structlog

from ..config.constants import DOSE_EVID, OBSERVATION_EVID
from ..contracts.types import DoseEvent, Observation, Subject

logger = structlog.get_logger()

RECORD_COLUMNS = ["id", "time", "evid", "amt", "cmt", "ii", "addl", "rate", "ss"]


def subjects_to_frame(subjects: Sequence[Subject], expand_doses: bool = False) -> pd.DataFrame:
    """Flatten subjects into one row per record, in subject then time order.

    Args:
        subjects: Validated subjects, e.g. ``IngestionResult.subjects``
        expand_doses: Write one row per administration instead of one row per
            dose record with ``addl``/``ii``

    Returns:
        DataFrame with the record columns, then observation columns, then
        covariate columns. Time-varying covariates take their value at the
        record time.
    """
    observation_names = _ordered_names(r.values for s in subjects for r in s.observations)
    covariate_names = _ordered_names(s.covariates for s in subjects)

    rows: List[Dict[str, Any]] = []
    for subject in subjects:
        covariates = {name: _covariate_lookup(value) for name, value in subject.covariates.items()}
        subject_rows: List[Dict[str, Any]] = []
        for record in subject.records:
            if isinstance(record, DoseEvent):
                entries = _expanded(record) if expand_doses else [_dose_row(record)]
            else:
                entries = [_observation_row(record, observation_names)]
            for entry in entries:
                entry["id"] = subject.id
                for name in covariate_names:
                    entry[name] = covariates[name](entry["time"]) if name in covariates else None
                subject_rows.append(entry)
        if expand_doses:
            # expanded administrations can overtake later records
            subject_rows.sort(key=lambda entry: entry["time"])
        rows.extend(subject_rows)

    columns = RECORD_COLUMNS + observation_names + covariate_names
    return pd.DataFrame.from_records(rows, columns=columns)


def write_subjects(
    subjects: Sequence[Subject],
    path: Union[str, Path],
    expand_doses: bool = False,
) -> Path:
    """Write subjects as CSV and return the output path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = subjects_to_frame(subjects, expand_doses=expand_doses)
    frame.to_csv(path, index=False, na_rep=".")
    logger.info("Subjects exported", path=str(path), subjects=len(subjects), rows=len(frame))
    return path


def _dose_row(dose: DoseEvent) -> Dict[str, Any]:
    return {
        "time": dose.time,
        "evid": DOSE_EVID,
        "amt": dose.amount,
        "cmt": dose.compartment,
        "ii": dose.interval,
        "addl": dose.additional,
        "rate": dose.rate,
        "ss": dose.steady_state,
    }


def _expanded(dose: DoseEvent) -> List[Dict[str, Any]]:
    entries = []
    for k, time in enumerate(dose.dose_times()):
        entry = _dose_row(dose)
        entry.update(time=time, addl=0)
        # Only the first administration keeps the steady-state assumption
        if k > 0 or not dose.steady_state:
            entry.update(ii=0.0, ss=0)
        entries.append(entry)
    return entries


def _observation_row(observation: Observation, names: Sequence[str]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "time": observation.time,
        "evid": OBSERVATION_EVID,
        "cmt": observation.compartment,
    }
    for name in names:
        entry[name] = observation.values.get(name)
    return entry


def _covariate_lookup(value: Any):
    if isinstance(value, tuple):
        by_time: Dict[float, Any] = {}
        for time, item in value:
            by_time.setdefault(time, item)
        return by_time.get
    return lambda _time: value


def _ordered_names(mappings: Iterable[Any]) -> List[str]:
    names: List[str] = []
    for mapping in mappings:
        for name in mapping:
            if name not in names:
                names.append(name)
    return names
