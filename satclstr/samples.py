"""
Labelled satellite image time series samples.

This module provides the sample containers used by the clustering workflow
and the functions that import them from tabular files.
"""

import os
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config import SampleImportConfig
from .errors import IncompatibleSeriesError

logger = logging.getLogger(__name__)


def _to_day(value) -> np.datetime64:
    stamp = pd.Timestamp(value)
    if pd.isna(stamp):
        raise ValueError(f"Invalid date: {value!r}")
    return np.datetime64(stamp.date(), 'D')


@dataclass(frozen=True, eq=False)
class Sample:
    """
    One labelled time series at a location.

    Attributes
    ----------
    longitude, latitude : float
        Location of the sample.
    start_date, end_date : np.datetime64
        Temporal validity interval of the label.
    label : str
        Ground-truth label.
    timeline : np.ndarray
        Observation dates, ``datetime64[D]``, strictly increasing.
    bands : Tuple[str, ...]
        Band names, one per column of ``values``.
    values : np.ndarray
        Read-only array of shape (len(timeline), len(bands)).
    """
    longitude: float
    latitude: float
    start_date: np.datetime64
    end_date: np.datetime64
    label: str
    timeline: np.ndarray
    bands: Tuple[str, ...]
    values: np.ndarray

    def __post_init__(self):
        start_date = _to_day(self.start_date)
        end_date = _to_day(self.end_date)
        timeline = pd.to_datetime(np.asarray(self.timeline)).values.astype('datetime64[D]')
        bands = tuple(str(b) for b in self.bands)
        values = np.array(self.values, dtype=float)
        if values.ndim == 1:
            values = values[:, np.newaxis]

        if not isinstance(self.label, str) or not self.label.strip():
            raise ValueError("Sample label must be a non-empty string")
        if start_date > end_date:
            raise ValueError(f"Sample start date {start_date} is after end date {end_date}")
        if len(bands) == 0:
            raise ValueError("Sample must have at least one band")
        if len(set(bands)) != len(bands):
            raise ValueError(f"Duplicate band names: {bands}")
        if timeline.shape[0] == 0:
            raise ValueError("Sample must have at least one observation")
        if values.shape != (timeline.shape[0], len(bands)):
            raise ValueError(f"Sample values have shape {values.shape}, expected "
                             f"{(timeline.shape[0], len(bands))}")
        if np.any(np.diff(timeline) <= np.timedelta64(0, 'D')):
            raise ValueError("Sample timeline must be strictly increasing")
        if not np.all(np.isfinite(values)):
            raise ValueError("Sample values must be finite")

        timeline.setflags(write=False)
        values.setflags(write=False)
        object.__setattr__(self, 'longitude', float(self.longitude))
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'start_date', start_date)
        object.__setattr__(self, 'end_date', end_date)
        object.__setattr__(self, 'timeline', timeline)
        object.__setattr__(self, 'bands', bands)
        object.__setattr__(self, 'values', values)

    @property
    def n_obs(self) -> int:
        return self.timeline.shape[0]

    def band(self, name: str) -> np.ndarray:
        """Return the series of one band."""
        try:
            return self.values[:, self.bands.index(name)]
        except ValueError:
            raise KeyError(f"Sample has no band {name!r}; available bands: {self.bands}") from None

    def with_values(self, values: np.ndarray, timeline: Optional[np.ndarray] = None) -> 'Sample':
        """Return a copy of the sample with new observations."""
        return Sample(self.longitude, self.latitude, self.start_date, self.end_date, self.label,
                      self.timeline if timeline is None else timeline, self.bands, values)

    def to_frame(self) -> pd.DataFrame:
        """Return the time series as a DataFrame indexed by observation date."""
        return pd.DataFrame(self.values, index=pd.DatetimeIndex(self.timeline, name='date'),
                            columns=list(self.bands))


class SampleCollection:
    """
    Ordered collection of samples.

    Every sample keeps the index it had in the collection it was imported
    into, so that subsets produced by curation can be traced back.

    Parameters
    ----------
    samples : Iterable[Sample]
        Samples in order.
    indices : Optional[Sequence[int]]
        Original index of each sample. Defaults to ``0..N-1``.
    """

    def __init__(self, samples: Iterable[Sample], indices: Optional[Sequence[int]] = None):
        self._samples = tuple(samples)
        if indices is None:
            indices = np.arange(len(self._samples))
        indices = np.array(indices, dtype=int)
        if indices.shape != (len(self._samples),):
            raise ValueError(f"Got {indices.shape[0]} indices for {len(self._samples)} samples")
        indices.setflags(write=False)
        self._indices = indices

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

    def __getitem__(self, position: int) -> Sample:
        return self._samples[position]

    def __repr__(self) -> str:
        return f"SampleCollection(n_samples={len(self)}, labels={sorted(set(self.labels))})"

    @property
    def indices(self) -> np.ndarray:
        """Original index of each sample."""
        return self._indices

    @property
    def labels(self) -> np.ndarray:
        return np.array([s.label for s in self._samples], dtype=object)

    @property
    def bands(self) -> Tuple[str, ...]:
        """Band names shared by all samples."""
        if not self._samples:
            return ()
        bands = self._samples[0].bands
        for position, sample in enumerate(self._samples):
            if set(sample.bands) != set(bands):
                raise IncompatibleSeriesError(
                    f"Sample {self._indices[position]} has bands {sample.bands}, expected {bands}")
        return bands

    def subset(self, positions: Sequence[int]) -> 'SampleCollection':
        """Return the samples at the given positions, keeping their original indices."""
        positions = np.asarray(positions, dtype=int).reshape(-1)
        return SampleCollection([self._samples[p] for p in positions], self._indices[positions])

    def values_array(self) -> np.ndarray:
        """
        Stack all series into one array.

        Returns
        -------
        np.ndarray
            Array of shape (n_samples, n_obs, n_bands), bands ordered as ``self.bands``.

        Raises
        ------
        IncompatibleSeriesError
            If the samples differ in band set or number of observations.
        """
        if not self._samples:
            raise ValueError("Sample collection is empty")
        bands = self.bands
        n_obs = self._samples[0].n_obs
        for position, sample in enumerate(self._samples):
            if sample.n_obs != n_obs:
                raise IncompatibleSeriesError(
                    f"Sample {self._indices[position]} has {sample.n_obs} observations, expected {n_obs}. "
                    f"Align the samples to a common schedule first.")
        return np.stack([np.column_stack([s.band(b) for b in bands]) for s in self._samples])

    def label_summary(self) -> pd.DataFrame:
        """Count and proportion of samples per label."""
        counts = pd.Series(self.labels, dtype=object).value_counts().sort_index()
        summary = pd.DataFrame({'label': counts.index, 'count': counts.values})
        summary['prop'] = summary['count'] / max(len(self), 1)
        return summary

    def to_frame(self) -> pd.DataFrame:
        """Return a long table with one row per sample and observation date."""
        frames = []
        for index, sample in zip(self._indices, self._samples):
            frame = sample.to_frame().reset_index()
            frame.insert(0, 'sample_index', index)
            frame.insert(1, 'longitude', sample.longitude)
            frame.insert(2, 'latitude', sample.latitude)
            frame.insert(3, 'start_date', pd.Timestamp(sample.start_date))
            frame.insert(4, 'end_date', pd.Timestamp(sample.end_date))
            frame.insert(5, 'label', sample.label)
            frames.append(frame)
        if not frames:
            return pd.DataFrame(columns=['sample_index', 'longitude', 'latitude', 'start_date',
                                         'end_date', 'label', 'date'])
        return pd.concat(frames, ignore_index=True)


def samples_from_frame(df: pd.DataFrame, config: Optional[SampleImportConfig] = None) -> SampleCollection:
    """
    Build a SampleCollection from a long-format table.

    Parameters
    ----------
    df : pd.DataFrame
        One row per sample and observation date, columns as named in ``config``.
    config : Optional[SampleImportConfig]
        Column layout. Defaults to ``SampleImportConfig()``.

    Returns
    -------
    SampleCollection
        Samples in order of first appearance of their ``sample_id``.
    """
    config = config or SampleImportConfig()
    missing = [c for c in config.metadata_columns if c not in df.columns]
    if missing:
        raise ValueError(f"Sample table is missing columns: {missing}")

    if config.bands is None:
        bands = [c for c in df.columns
                 if c not in config.metadata_columns and pd.api.types.is_numeric_dtype(df[c])]
    else:
        bands = list(config.bands)
        absent = [b for b in bands if b not in df.columns]
        if absent:
            raise ValueError(f"Sample table is missing band columns: {absent}")
    if not bands:
        raise ValueError("Sample table has no band columns")

    for column in (config.sample_id, config.label):
        missing_rows = df.index[df[column].isna()]
        if len(missing_rows):
            raise ValueError(f"Sample table has {len(missing_rows)} rows without a value in column "
                             f"'{column}', first at row {missing_rows[0]}")

    df = df.copy()
    df[config.time] = pd.to_datetime(df[config.time], format=config.date_format)

    samples: List[Sample] = []
    for _, rows in df.groupby(config.sample_id, sort=False, dropna=False):
        rows = rows.sort_values(config.time)
        first = rows.iloc[0]
        samples.append(Sample(
            longitude=first[config.longitude],
            latitude=first[config.latitude],
            start_date=pd.to_datetime(first[config.start_date], format=config.date_format),
            end_date=pd.to_datetime(first[config.end_date], format=config.date_format),
            label=str(first[config.label]),
            timeline=rows[config.time].values,
            bands=tuple(bands),
            values=rows[bands].to_numpy(dtype=float),
        ))

    logger.info("Imported %d samples with bands %s", len(samples), bands)
    return SampleCollection(samples)


def read_samples(file_path: Union[str, os.PathLike], config: Optional[SampleImportConfig] = None) -> SampleCollection:
    """
    Import samples from a .csv or .xlsx file.

    The file holds a long table, one row per sample and observation date:

    +-----------+-----------+----------+------------+------------+--------+------------+------+------+
    | sample_id | longitude | latitude | start_date | end_date   | label  | date       | NDVI | EVI  |
    +===========+===========+==========+============+============+========+============+======+======+
    | 1         | -55.19    | -10.83   | 2013-09-14 | 2014-08-29 | Forest | 2013-09-14 | 0.81 | 0.52 |
    +-----------+-----------+----------+------------+------------+--------+------------+------+------+
    | 1         | -55.19    | -10.83   | 2013-09-14 | 2014-08-29 | Forest | 2013-09-30 | 0.79 | 0.50 |
    +-----------+-----------+----------+------------+------------+--------+------------+------+------+

    For .xlsx files the table is read from the sheet named by ``config.sheet_name``.

    Parameters
    ----------
    file_path : str or os.PathLike
        Path to the file.
    config : Optional[SampleImportConfig]
        Column layout.

    Returns
    -------
    SampleCollection
    """
    config = config or SampleImportConfig()
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Could not find file: {file_path}")

    file_extension = os.path.splitext(str(file_path))[1].lower()
    if file_extension == '.xlsx':
        df = pd.read_excel(file_path, sheet_name=config.sheet_name)
    elif file_extension == '.csv':
        df = pd.read_csv(file_path)
    else:
        raise ValueError("File must have .xlsx or .csv extension")

    return samples_from_frame(df, config)
