# src/exporters/json_exporter.py - JSON format exporter
"""
Exports analysis results as JSON files.
"""

import json
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional
import logging

from src.utils.helpers import format_timestamp


class JSONExporter:
    """
    Exports analysis results to JSON format.
    """

    def __init__(self, output_dir: Optional[str] = None):
        """
        Initialize the JSON exporter.

        Args:
            output_dir: Directory to save JSON files (default: current directory)
        """
        self.output_dir = Path(output_dir) if output_dir else Path('.')
        self.logger = logging.getLogger(__name__)

        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _write(self, payload: Dict, filename: str) -> str:
        output_path = self.output_dir / filename
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump({'timestamp': datetime.now().isoformat(), **payload}, f, indent=2)
        return str(output_path)

    def export_analysis(self, summary: Dict, config: Optional[Dict] = None,
                        filename: str = 'analysis.json') -> str:
        """
        Export run statistics to a JSON file.

        Args:
            summary: Summary dictionary
            config: Effective configuration the run used
            filename: Output filename

        Returns:
            Path to output file
        """
        payload = {'analysis': summary}
        if config is not None:
            payload['config'] = config
        output_path = self._write(payload, filename)
        self.logger.info(f"Exported analysis to {output_path}")
        return output_path

    def export_long_invocations(self, invocations: List, filename: str = 'invocations-long.json') -> str:
        """
        Export (categorized) long invocations to a JSON file, slowest first.

        Args:
            invocations: List of MethodInvocation objects
            filename: Output filename

        Returns:
            Path to output file
        """
        ordered = sorted(invocations, key=lambda inv: inv.execution_time, reverse=True)
        invocations_data = [{
            'timestamp': format_timestamp(inv.timestamp),
            'thread': inv.thread_name,
            'method': inv.method,
            'execution_time_us': inv.execution_time,
            'category': inv.category_name,
            'parameters': inv.category_parameters,
            'arguments': inv.arguments,
            'return_value': inv.return_value,
        } for inv in ordered]

        output_path = self._write({'invocation_count': len(invocations_data),
                                   'invocations': invocations_data}, filename)
        self.logger.info(f"Exported {len(invocations_data)} long invocations to {output_path}")
        return output_path
