"""Data loaders for loads, vehicles, lane volumes and counters"""

import json
import pandas as pd
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loadmatch.data.models import OperationalCounters, lane_key
from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


class DataLoader:
    """
    Load engine inputs from JSON or CSV files

    Handles loading of:
    - Loads (JSON list / {"loads": [...]} envelope, or CSV)
    - Vehicles (JSON list / {"trucks": [...]} or {"vehicles": [...]}, or CSV)
    - Lane volumes (JSON list of lane records, or long-format CSV)
    - Operational counters (JSON object)

    Records are returned as raw dicts; validation happens in the engine so
    invalid rows are reported instead of failing the whole file.
    """

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        """
        Initialize data loader

        Args:
            base_path: Directory relative paths are resolved against
        """
        self.base_path = Path(base_path) if base_path else None

    def _resolve(self, path: Union[str, Path]) -> Path:
        file_path = Path(path)
        if not file_path.is_absolute() and self.base_path is not None:
            file_path = self.base_path / file_path

        if not file_path.exists():
            raise FileNotFoundError(f"Input file not found: {file_path}")

        return file_path

    def _read_json(self, file_path: Path) -> Any:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _read_csv_records(self, file_path: Path) -> List[Dict]:
        df = pd.read_csv(file_path)
        df.columns = [str(col).strip() for col in df.columns]
        # NaN -> None so optional fields stay optional
        df = df.astype(object).where(pd.notna(df), None)
        return df.to_dict('records')

    def _load_records(self, path: Union[str, Path], envelope_keys: List[str], kind: str) -> List[Dict]:
        file_path = self._resolve(path)
        logger.info(f"Loading {kind} from: {file_path}")

        if file_path.suffix.lower() == '.csv':
            records = self._read_csv_records(file_path)
        else:
            data = self._read_json(file_path)
            if isinstance(data, dict):
                for key in envelope_keys:
                    if key in data:
                        data = data[key]
                        break
                else:
                    raise ValueError(
                        f"{file_path} must contain a list or one of the keys {envelope_keys}"
                    )
            if not isinstance(data, list):
                raise ValueError(f"{file_path}: expected a list of {kind}")
            records = data

        logger.info(f"Loaded {len(records):,} {kind}")

        return records

    def load_loads(self, path: Union[str, Path]) -> List[Dict]:
        """Load raw load records"""
        return self._load_records(path, ['loads'], 'loads')

    def load_vehicles(self, path: Union[str, Path]) -> List[Dict]:
        """Load raw vehicle records"""
        return self._load_records(path, ['trucks', 'vehicles'], 'vehicles')

    def load_lanes(self, path: Union[str, Path]) -> List[Dict]:
        """
        Load lane volume records

        CSV input is long format (lane, origin, destination, week, loads);
        rows are grouped per lane and sorted by week.

        Returns:
            List of {'lane', 'origin', 'destination', 'history': [{'week', 'loads'}]}
        """
        file_path = self._resolve(path)

        if file_path.suffix.lower() != '.csv':
            return self._load_records(file_path, ['lanes', 'series'], 'lane series')

        logger.info(f"Loading lane volumes from: {file_path}")
        df = pd.read_csv(file_path)

        if 'lane' not in df.columns and {'origin', 'destination'} <= set(df.columns):
            df['lane'] = [lane_key(o, d) for o, d in zip(df['origin'], df['destination'])]

        missing = [col for col in ['lane', 'week', 'loads'] if col not in df.columns]
        if missing:
            raise ValueError(f"{file_path}: missing required columns {missing}")

        df['week'] = df['week'].astype(str)
        df = df.sort_values(['lane', 'week'])

        lanes = []
        for lane, df_lane in df.groupby('lane', sort=True):
            first = df_lane.iloc[0]
            lanes.append({
                'lane': lane,
                'origin': first['origin'] if 'origin' in df_lane.columns else None,
                'destination': first['destination'] if 'destination' in df_lane.columns else None,
                'history': [
                    {'week': week, 'loads': loads}
                    for week, loads in zip(df_lane['week'], df_lane['loads'])
                ],
            })

        logger.info(f"Loaded {len(lanes)} lanes ({len(df):,} weekly points)")

        return lanes

    def load_counters(self, path: Optional[Union[str, Path]]) -> OperationalCounters:
        """Load operational counters from a JSON object (None -> defaults)"""
        if path is None:
            return OperationalCounters()

        file_path = self._resolve(path)
        logger.info(f"Loading operational counters from: {file_path}")

        data = self._read_json(file_path)
        if not isinstance(data, dict):
            raise ValueError(f"{file_path}: counters must be a JSON object")

        return OperationalCounters.from_dict(data)
