from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from recontrack.etl.normalize import InventoryRecord, RepairOrderLineRecord, RepairOrderRecord
from recontrack.sql.queries import FactQuery

Row = Dict[str, Any]


class ReconStorage(ABC):
    """Storage port shared by the loader, the reconciler and the query service.

    Components receive an instance at construction instead of reaching for a
    module-level handle, so tests can hand them a SQLite file or a stub.
    Every write method is atomic: it either applies completely or not at all.
    """

    @abstractmethod
    def create_schema(self) -> None:
        ...

    # -- raw entities -------------------------------------------------------

    @abstractmethod
    def upsert_inventory(self, records: Sequence[InventoryRecord], overwrite_classification: bool = False) -> int:
        """Insert or update inventory by VIN; returns rows written."""

    @abstractmethod
    def upsert_repair_orders(self, records: Sequence[RepairOrderRecord]) -> int:
        """Insert or update RO headers by RO number; returns rows written."""

    @abstractmethod
    def replace_repair_order_lines(self, ro_numbers: Sequence[str], records: Sequence[RepairOrderLineRecord]) -> int:
        """Delete every line of ``ro_numbers`` then insert ``records``; returns rows inserted."""

    @abstractmethod
    def fetch_inventory(self) -> List[Row]:
        ...

    @abstractmethod
    def fetch_repair_orders(self) -> List[Row]:
        ...

    @abstractmethod
    def fetch_repair_order_lines(self) -> List[Row]:
        ...

    # -- ingestion log ------------------------------------------------------

    @abstractmethod
    def append_ingestion_log(
        self,
        file_name: str,
        file_type: str,
        status: str,
        row_count: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> Row:
        ...

    @abstractmethod
    def recent_ingestion_logs(self, limit: int) -> List[Row]:
        ...

    # -- facts --------------------------------------------------------------

    @abstractmethod
    def replace_facts(self, rows: Sequence[Row]) -> int:
        """Swap the whole fact table for ``rows`` in one transaction."""

    @abstractmethod
    def fetch_facts(self) -> List[Row]:
        ...

    @abstractmethod
    def query_facts(self, query: FactQuery) -> Tuple[List[Row], int]:
        """Return one page of fact rows plus the filtered total."""

    @abstractmethod
    def get_fact(self, vin: str) -> Optional[Row]:
        ...

    @abstractmethod
    def repair_orders_for_vin(self, vin: str) -> List[Row]:
        """RO headers for a VIN, newest close date first, each with a ``lines`` list."""

    @abstractmethod
    def table_counts(self) -> Dict[str, int]:
        ...
