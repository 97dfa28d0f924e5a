"""sheetcalc: spreadsheet formula evaluation and background recalculation."""

__version__ = "0.3.0"
