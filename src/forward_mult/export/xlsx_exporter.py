"""Excel export of the run summary"""
import pandas as pd
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class XLSXExporter:
    """Export run results to an Excel workbook"""

    def __init__(self, output_path: Path):
        """
        Initialize XLSX exporter.

        Args:
            output_path: Path for output XLSX file
        """
        self.output_path = output_path

    def create_summary_sheet(self, summary_rows: List[Dict]) -> pd.DataFrame:
        return pd.DataFrame(summary_rows, columns=['quantity', 'value'])

    def create_metadata_sheet(self, metadata: Dict) -> pd.DataFrame:
        rows = [{'key': k, 'value': str(v)} for k, v in metadata.items()]
        return pd.DataFrame(rows, columns=['key', 'value'])

    def export(self,
               summary_rows: List[Dict],
               rejections: pd.DataFrame,
               timing: Optional[pd.DataFrame] = None,
               metadata: Dict = None) -> Path:
        """
        Export all tables to the workbook.

        Args:
            summary_rows: [{'quantity': ..., 'value': ...}, ...]
            rejections: Rejected events per stage
            timing: Per-stage CPU time table, None when timing was disabled
            metadata: Optional run metadata

        Returns:
            Path of the workbook
        """
        logger.info(f"Exporting results to {self.output_path}")

        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(self.output_path, engine='openpyxl') as writer:
            self.create_summary_sheet(summary_rows).to_excel(writer, sheet_name='Summary', index=False)
            rejections.to_excel(writer, sheet_name='Rejections', index=False)

            if timing is not None:
                timing.to_excel(writer, sheet_name='Timing', index=False)

            if metadata:
                self.create_metadata_sheet(metadata).to_excel(writer, sheet_name='Metadata', index=False)

        logger.info(f"Export complete: {self.output_path}")
        return self.output_path
