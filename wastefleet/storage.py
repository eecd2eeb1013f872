import csv
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

from .errors import InvalidValueError
from .history import BIN_ID_SEPARATOR, CollectionEvent

logger = logging.getLogger(__name__)

BIN_FIELDS = ['id', 'location', 'capacity', 'category', 'fill_level']
HISTORY_FIELDS = ['timestamp', 'bin_ids', 'count']


class CsvStorage:
    """Saves and loads the fleet and its collection history as CSV files."""

    def __init__(self, data_dir, config: dict):
        """
        Args:
            data_dir: Directory holding both files
            config: Configuration dict; file names come from the `storage` section
        """
        storage_cfg = config['storage']
        self.data_dir = Path(data_dir)
        self.bins_path = self.data_dir / storage_cfg['bins_file']
        self.history_path = self.data_dir / storage_cfg['history_file']
        self.timestamp_format = storage_cfg['timestamp_format']
        self._write_lock = threading.Lock()

    def has_saved_bins(self) -> bool:
        return self.bins_path.exists()

    def load_bins(self) -> List[dict]:
        """
        Load bin records. Returns [] when nothing has been saved yet.

        Raises:
            InvalidValueError: if a row is missing columns or has a non-numeric field
        """
        if not self.bins_path.exists():
            return []

        records = []
        with open(self.bins_path, 'r', newline='') as csvfile:
            reader = csv.DictReader(csvfile)
            for line_no, row in enumerate(reader, start=2):
                if any(row.get(name) in (None, '') for name in BIN_FIELDS):
                    raise InvalidValueError(f"{self.bins_path}:{line_no}: incomplete bin record", value=row)
                try:
                    row['capacity'] = int(row['capacity'])
                    row['fill_level'] = int(row['fill_level'])
                except ValueError:
                    raise InvalidValueError(f"{self.bins_path}:{line_no}: non-numeric capacity or level",
                                            value=row) from None
                records.append({name: row[name] for name in BIN_FIELDS})
        return records

    def load_history(self) -> List[CollectionEvent]:
        if not self.history_path.exists():
            return []

        events = []
        with open(self.history_path, 'r', newline='') as csvfile:
            reader = csv.DictReader(csvfile)
            for line_no, row in enumerate(reader, start=2):
                try:
                    timestamp = datetime.strptime(row['timestamp'], self.timestamp_format)
                    bin_ids = tuple(i for i in (row['bin_ids'] or '').split(BIN_ID_SEPARATOR) if i)
                    count = int(row['count'])
                except (KeyError, TypeError, ValueError):
                    raise InvalidValueError(f"{self.history_path}:{line_no}: malformed history record",
                                            value=row) from None
                events.append(CollectionEvent(timestamp=timestamp, bin_ids=bin_ids, count=count))
        return events

    def save_bins(self, records: Sequence[dict]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.bins_path, 'w', newline='') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=BIN_FIELDS)
            writer.writeheader()
            for record in records:
                writer.writerow({name: record[name] for name in BIN_FIELDS})

    def save_history(self, events: Sequence[CollectionEvent]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.history_path, 'w', newline='') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=HISTORY_FIELDS)
            writer.writeheader()
            for event in events:
                writer.writerow(event.to_dict(self.timestamp_format))

    def save(self, bin_records: Sequence[dict], events: Sequence[CollectionEvent]) -> None:
        with self._write_lock:
            self.save_bins(bin_records)
            self.save_history(events)
        logger.debug(f"Saved {len(bin_records)} bins and {len(events)} events to {self.data_dir}")

    def restore(self, system) -> None:
        """Load saved state into `system`, or seed the starter fleet if there is none."""
        if self.has_saved_bins():
            system.load_bins(self.load_bins())
        else:
            logger.info(f"No saved bins in {self.data_dir}, using starter fleet")
            system.load_defaults()
        system.load_history(self.load_history())

    def attach(self, system) -> None:
        """Save on every state change of `system`."""
        system.add_change_listener(self.save)
