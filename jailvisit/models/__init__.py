# Import every model so Base.metadata knows all tables before create_all()
from .pdl import Pdl
from .visitor import Visitor
from .cell import Cell
from .scanned_visitor import ScannedVisitor

__all__ = [
    "Pdl",
    "Visitor",
    "Cell",
    "ScannedVisitor",
]
