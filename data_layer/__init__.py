# Cash-Up Engine - Data Layer
from .evidence_storage import EvidenceStorage, InMemoryEvidenceStorage, MinioEvidenceStorage, StoredEvidence
from .memory_store import MemoryCashupStore
from .repository import CashupRepository, UserDirectory
from .sql_store import SqlCashupStore
