"""
Transaction History
Durable, bounded log of every transaction attempt
"""

import asyncio
import json
import os
import tempfile
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional
from loguru import logger


class TxStatus(str, Enum):
    """Transaction attempt status"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class TransactionRecord:
    """One submission attempt"""
    hash: str
    from_address: str
    to_address: str
    gas_price: int
    gas_limit: int
    status: TxStatus = TxStatus.PENDING
    submitted_at: float = field(default_factory=time.time)
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != TxStatus.PENDING

    def mark_confirmed(self, block_number: int, gas_used: int):
        if self.is_terminal:
            raise ValueError(f"Transaction {self.hash} already {self.status.value}")
        self.status = TxStatus.CONFIRMED
        self.block_number = block_number
        self.gas_used = gas_used

    def mark_failed(self, error: str):
        if self.is_terminal:
            raise ValueError(f"Transaction {self.hash} already {self.status.value}")
        self.status = TxStatus.FAILED
        self.error = error

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'TransactionRecord':
        return cls(
            hash=data['hash'],
            from_address=data['from_address'],
            to_address=data['to_address'],
            gas_price=int(data.get('gas_price') or 0),
            gas_limit=int(data.get('gas_limit') or 0),
            status=TxStatus(data.get('status', TxStatus.PENDING.value)),
            submitted_at=float(data.get('submitted_at') or 0),
            block_number=data.get('block_number'),
            gas_used=data.get('gas_used'),
            error=data.get('error'),
        )


class TransactionHistory:
    """
    JSON-file backed transaction history

    The whole history is kept in memory (most recent first) and the file is
    rewritten on every change. Only the newest max_records are retained.
    A record left at PENDING by a crash between append and mutate stays
    PENDING; it is not reconciled on restart.
    """

    def __init__(self, history_file: str = "data/tx_history.json", max_records: int = 100):
        """
        Initialize Transaction History

        Args:
            history_file: Path to the JSON history file
            max_records: Number of most recent records to retain
        """
        self.history_file = history_file
        self.max_records = max_records
        self.records: List[TransactionRecord] = []
        self._write_lock = asyncio.Lock()

        self._load()

        logger.info(f"Transaction History initialized: {history_file} ({len(self.records)} records)")

    def _load(self):
        """Load history file into memory"""
        if not os.path.exists(self.history_file):
            return

        try:
            with open(self.history_file, 'r') as f:
                raw = json.load(f)

            self.records = [TransactionRecord.from_dict(item) for item in raw][:self.max_records]

            pending = sum(1 for r in self.records if r.status == TxStatus.PENDING)
            if pending:
                logger.warning(f"{pending} transaction(s) left pending by a previous run")

        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error loading transaction history: {e}")
            self.records = []

    async def _persist(self):
        """Snapshot the records on the loop and rewrite the file in a worker thread"""
        payload = [r.to_dict() for r in self.records]
        await asyncio.to_thread(self._write_file, payload)

    def _write_file(self, payload: List[Dict]):
        """Rewrite the history file atomically"""
        directory = os.path.dirname(os.path.abspath(self.history_file))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.tx_history.', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.history_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def append(self, record: TransactionRecord):
        """
        Add a new record at the head of the history and persist

        Args:
            record: Freshly created (pending) transaction record
        """
        async with self._write_lock:
            self.records.insert(0, record)

            if len(self.records) > self.max_records:
                evicted = self.records[self.max_records:]
                del self.records[self.max_records:]
                logger.debug(f"Evicted {len(evicted)} old history record(s)")

            await self._persist()

    async def mutate(
        self,
        tx_hash: str,
        update_fn: Callable[[TransactionRecord], None]
    ) -> Optional[TransactionRecord]:
        """
        Apply update_fn to the record with tx_hash and persist

        Returns:
            Updated record, or None if it is no longer retained
        """
        async with self._write_lock:
            record = self._find(tx_hash)

            if record is None:
                logger.warning(f"History record {tx_hash} not found (evicted?)")
                return None

            update_fn(record)
            await self._persist()
            return record

    def _find(self, tx_hash: str) -> Optional[TransactionRecord]:
        for record in self.records:
            if record.hash == tx_hash:
                return record
        return None

    def get(self, tx_hash: str) -> Optional[TransactionRecord]:
        record = self._find(tx_hash)
        return replace(record) if record else None

    def query(self, address: Optional[str] = None, limit: int = 10) -> List[TransactionRecord]:
        """
        Get recent records, most recent first

        Args:
            address: Only records sent from this address (case-insensitive)
            limit: Maximum number of records

        Returns:
            Copies of the matching records
        """
        if limit <= 0:
            return []

        if address:
            wanted = address.lower()
            matching = [r for r in self.records if r.from_address.lower() == wanted]
        else:
            matching = self.records

        return [replace(r) for r in matching[:limit]]

    def __len__(self) -> int:
        return len(self.records)
