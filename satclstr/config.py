"""
Configuration objects.

Settings are passed explicitly to the functions that need them instead of
being read from a global file.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .clusterer import LinkageStrategy
from .validity import ValidityIndex


@dataclass
class SampleImportConfig:
    """
    Column layout of a long-format sample table.

    Each row of the table holds one observation date of one sample. Rows of
    the same sample share the value of ``sample_id``.

    Attributes
    ----------
    sample_id : str
        Column identifying the sample a row belongs to.
    longitude, latitude : str
        Columns with the sample location.
    start_date, end_date : str
        Columns with the temporal validity interval of the sample.
    label : str
        Column with the ground-truth label.
    time : str
        Column with the observation date.
    bands : Optional[List[str]]
        Band columns to import. ``None`` imports every remaining numeric column.
    date_format : Optional[str]
        Format passed to ``pandas.to_datetime``. ``None`` lets pandas infer it.
    sheet_name : str
        Sheet to read from ``.xlsx`` files.
    """
    sample_id: str = 'sample_id'
    longitude: str = 'longitude'
    latitude: str = 'latitude'
    start_date: str = 'start_date'
    end_date: str = 'end_date'
    label: str = 'label'
    time: str = 'date'
    bands: Optional[List[str]] = None
    date_format: Optional[str] = None
    sheet_name: str = 'samples'

    @property
    def metadata_columns(self) -> List[str]:
        return [self.sample_id, self.longitude, self.latitude,
                self.start_date, self.end_date, self.label, self.time]


@dataclass
class ClusteringConfig:
    """
    Settings of a clustering and curation run.

    Attributes
    ----------
    distance : str
        Name of the distance function, see ``satclstr.compute_distances``.
    linkage : LinkageStrategy
        Linkage criterion of the dendrogram.
    index : ValidityIndex
        External validity index optimized by the best-cut search.
    distance_kwargs : Dict[str, Any]
        Extra arguments for the distance function.
    n_jobs : int
        Worker threads used to score candidate cuts.
    """
    distance: str = 'dtw'
    linkage: LinkageStrategy = LinkageStrategy.COMPLETE
    index: ValidityIndex = ValidityIndex.ARI
    distance_kwargs: Dict[str, Any] = field(default_factory=dict)
    n_jobs: int = 1

    def __post_init__(self):
        self.linkage = LinkageStrategy(self.linkage)
        self.index = ValidityIndex(self.index)
        if self.n_jobs < 1:
            raise ValueError(f"n_jobs must be >= 1, got {self.n_jobs}")

    @classmethod
    def from_dict(cls, settings: Dict[str, Any]) -> 'ClusteringConfig':
        """Build a config from plain values, e.g. ``{'linkage': 'ward'}``."""
        unknown = set(settings) - {'distance', 'linkage', 'index', 'distance_kwargs', 'n_jobs'}
        if unknown:
            raise ValueError(f"Unknown clustering settings: {sorted(unknown)}")
        return cls(**settings)
