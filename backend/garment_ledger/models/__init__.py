from .stock import StockItem, LedgerTransaction, CuttingRecord, IdSequence
from .workforce import Employee, TailorAssignment, AttendanceRecord

__all__ = [
    'StockItem', 'LedgerTransaction', 'CuttingRecord', 'IdSequence',
    'Employee', 'TailorAssignment', 'AttendanceRecord',
]
