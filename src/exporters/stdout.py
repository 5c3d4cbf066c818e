# src/exporters/stdout.py - Console output exporter
"""
Exports analysis results to stdout in human-readable format.
"""

from typing import Dict, List
from colorama import Fore, Style, init
import logging

from src.utils.helpers import format_duration


# Initialize colorama
init(autoreset=True)


class StdoutExporter:
    """
    Exports analysis results to stdout with colored output.
    """

    def __init__(self, use_colors: bool = True, slow_threshold_us: int = 50_000):
        """
        Initialize the stdout exporter.

        Args:
            use_colors: Whether to use colored output
            slow_threshold_us: Max times above this are highlighted
        """
        self.use_colors = use_colors
        self.slow_threshold_us = slow_threshold_us
        self.logger = logging.getLogger(__name__)

    def _color(self, color: str) -> str:
        return color if self.use_colors else ""

    def _reset(self) -> str:
        return Style.RESET_ALL if self.use_colors else ""

    def _header(self, title: str):
        cyan, reset = self._color(Fore.CYAN), self._reset()
        print(f"\n{cyan}{'='*80}{reset}")
        print(f"{cyan}{title}{reset}")
        print(f"{cyan}{'='*80}{reset}\n")

    def print_summary(self, summary: Dict):
        """
        Print run statistics.

        Args:
            summary: Summary dictionary returned by ProfilingLogAnalyzer.run()
        """
        self._header("Profiling Log Analysis")
        yellow, reset = self._color(Fore.YELLOW), self._reset()

        print(f"{yellow}Input:{reset}")
        print(f"  Files: {len(summary.get('files', []))}")
        print(f"  Lines: {summary.get('total_lines', 0)} "
              f"({summary.get('log_records', 0)} records, {summary.get('continuation_lines', 0)} continuation)")
        print(f"  Batches: {summary.get('batches', 0)}")
        print(f"  Profiling items: {summary.get('profiling_items', 0)}")
        print(f"  Progress records: {summary.get('progress_records', 0)} over {summary.get('minutes', 0)} minute(s)")

        print(f"{yellow}Invocations:{reset}")
        print(f"  Enclosing invocations closed: {summary.get('closed_enclosing_invocations', 0)}")
        print(f"  Paired invocations: {summary.get('invocations', 0)}")
        print(f"  Exits without entry: {summary.get('orphan_exits', 0)}")
        print(f"  Long invocations: {summary.get('long_invocations', 0)}")
        print(f"  Max execution time: {format_duration(summary.get('absolute_maximum_us', 0))}")

    def print_top_methods(self, methods: List[Dict]):
        """
        Print methods with the highest total execution time.
        """
        if not methods:
            return

        self._header("Top Methods by Total Time")
        print(f"{'Rank':<6} {'Method':<60} {'Count':<8} {'Total':<10} {'Max':<10}")
        print(f"{'-'*96}")

        for i, method in enumerate(methods, 1):
            color = self._get_color_for_time(method['max_us'] or 0)
            print(f"{i:<6} "
                  f"{method['method'][-60:]:<60} "
                  f"{method['count']:<8} "
                  f"{format_duration(method['total_us']):<10} "
                  f"{color}{format_duration(method['max_us'] or 0):<10}{self._reset()}")

    def print_categories(self, counts: Dict[str, int]):
        """
        Print long invocation counts per category.
        """
        if not counts:
            return

        self._header("Long Invocations by Category")
        for name, count in sorted(counts.items(), key=lambda x: x[1], reverse=True):
            print(f"  {name:<60} {count:>8}")

    def print_outputs(self, outputs: Dict[str, str]):
        green, reset = self._color(Fore.GREEN), self._reset()
        print()
        for name, path in outputs.items():
            print(f"{green}{name}:{reset} {path}")

    def print_analysis(self, summary: Dict):
        """
        Print the complete analysis.
        """
        self.print_summary(summary)
        self.print_top_methods(summary.get('top_methods', []))
        self.print_categories(summary.get('category_counts', {}))
        self.print_outputs(summary.get('outputs', {}))
        print()

    def _get_color_for_time(self, time_us: int) -> str:
        if not self.use_colors:
            return ""

        if time_us >= self.slow_threshold_us:
            return Fore.RED
        elif time_us >= self.slow_threshold_us // 10:
            return Fore.YELLOW
        else:
            return Fore.GREEN
