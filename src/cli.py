# src/cli.py - Command-line interface
"""
Command-line interface for the Profiling Log Analyzer.
"""

import click
import re
import sys
from pathlib import Path

from src.utils.logger import setup_logging
from src.utils.config import Config
from src.utils.helpers import format_timestamp
from src.analyzer.template import TemplateError


DEFAULT_CONFIG_FILE = 'configs/default.yaml'


def load_config(config_file):
    """
    Load configuration; the default file is optional, an explicit one is not.
    """
    if config_file is None:
        return Config(DEFAULT_CONFIG_FILE if Path(DEFAULT_CONFIG_FILE).exists() else None)
    return Config(config_file)


@click.group()
@click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']))
@click.option('--log-file', type=click.Path(), help='Log file path')
@click.pass_context
def cli(ctx, log_level, log_file):
    """
    Profiling Log Analyzer

    Reconstructs method invocations from profiling logs and reports
    throughput, timing histograms and categorized slow invocations.
    """
    ctx.ensure_object(dict)

    # Setup logging
    setup_logging(level=log_level, log_file=log_file)

    # Store context
    ctx.obj['log_level'] = log_level
    ctx.obj['log_file'] = log_file


@cli.command()
@click.argument('log_dir', type=click.Path(exists=True, file_okay=False))
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Configuration file')
@click.option('--output-dir', type=click.Path(file_okay=False), help='Report directory')
@click.option('--histogram-per-batch/--no-histogram-per-batch', default=None,
              help='Add per-batch histogram variables')
@click.option('--histogram-per-thread-type/--no-histogram-per-thread-type', default=None,
              help='Add per-thread-type histogram variables')
@click.option('--long-threshold', type=int, help='Long invocation threshold (microseconds)')
@click.option('--format', 'output_format', type=click.Choice(['stdout', 'json']), default='stdout',
              help='Summary output format')
@click.option('--prometheus-textfile', type=click.Path(dir_okay=False),
              help='Write metrics in Prometheus text format to this file')
@click.pass_context
def analyze(ctx, log_dir, config, output_dir, histogram_per_batch, histogram_per_thread_type,
            long_threshold, output_format, prometheus_textfile):
    """
    Analyze a directory of profiling logs.

    Example:
        profiling-analyzer analyze logs/
        profiling-analyzer analyze logs/ --config configs/default.yaml --output-dir reports/
        profiling-analyzer analyze logs/ --long-threshold 100000 --format json
    """
    from src.analyzer.profiling_analyzer import ProfilingLogAnalyzer
    from src.exporters.json_exporter import JSONExporter
    from src.exporters.stdout import StdoutExporter
    import logging

    logger = logging.getLogger(__name__)

    cfg = load_config(config)

    # Override config with CLI options
    if histogram_per_batch is not None:
        cfg.set('histogram.per_batch', histogram_per_batch)
    if histogram_per_thread_type is not None:
        cfg.set('histogram.per_thread_type', histogram_per_thread_type)
    if long_threshold is not None:
        cfg.set('invocations.long_threshold_us', long_threshold)

    try:
        analyzer = ProfilingLogAnalyzer(cfg, log_dir, output_dir)

        prometheus = None
        if prometheus_textfile:
            from src.exporters.prometheus import PrometheusExporter
            prometheus = PrometheusExporter()
            analyzer.register_callback(prometheus.record_item)

        summary = analyzer.run()

        if prometheus is not None:
            prometheus.record_summary(summary)
            summary['outputs']['prometheus'] = prometheus.write(prometheus_textfile)

    except TemplateError as e:
        click.echo(f"Error: invalid category definition: {e}", err=True)
        sys.exit(1)
    except re.error as e:
        click.echo(f"Error: invalid pattern in configuration: {e.pattern!r} ({e})", err=True)
        sys.exit(1)
    except OSError as e:
        logger.error(f"Analysis failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == 'json':
        exporter = JSONExporter(analyzer.output_dir)
        summary['outputs']['json'] = exporter.export_analysis(summary, config=cfg.to_dict())
        exporter.export_long_invocations(analyzer.tracker.long_invocations)
        click.echo(summary['outputs']['json'])
    else:
        StdoutExporter(slow_threshold_us=analyzer.tracker.long_threshold_us).print_analysis(summary)


@cli.command()
@click.argument('log_dir', type=click.Path(exists=True, file_okay=False))
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Configuration file')
def files(log_dir, config):
    """
    List log files in reading order.

    Example:
        profiling-analyzer files logs/
    """
    from src.collector.line_reader import MultiFileLineReader

    cfg = load_config(config)
    reader = MultiFileLineReader(log_dir, cfg.get('log.timestamp_format'), cfg.get('log.timestamp_length', 23))

    if not reader.files:
        click.echo("No log files found")
        return
    for log_file in reader.files:
        click.echo(f"{format_timestamp(log_file.start_timestamp)}  {log_file.path}")


@cli.command('check-config')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Configuration file')
def check_config(config):
    """
    Validate category definitions and patterns of a configuration.

    Example:
        profiling-analyzer check-config --config configs/default.yaml
    """
    from src.analyzer.categorizer import Categorizer

    cfg = load_config(config)

    try:
        categorizer = Categorizer.from_config(cfg.get('categories', []), cfg.get('subcategories', []))
    except TemplateError as e:
        click.echo(f"✗ Invalid category definition: {e}", err=True)
        sys.exit(1)

    for key in ('histogram.exclude', 'invocations.long_include', 'invocations.long_exclude'):
        for pattern in cfg.get(key) or []:
            try:
                re.compile(pattern)
            except re.error as e:
                click.echo(f"✗ Invalid pattern in {key}: {pattern!r} ({e})", err=True)
                sys.exit(1)

    click.echo(f"Categories: {len(categorizer.categories)}")
    click.echo(f"Subcategories: {len(categorizer.subcategories)}")
    click.echo(f"Root methods: {len(cfg.get('invocations.root_methods') or [])}")
    click.echo("\n✓ Configuration is valid")


@cli.command()
@click.argument('log_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', type=click.Path(dir_okay=False), help='Output file (default: print counts)')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Configuration file')
def throughput(log_file, output, config):
    """
    Count timestamped lines per minute in a single log file.

    Example:
        profiling-analyzer throughput objects-done.log --output per-minute.txt
    """
    from src.analyzer.throughput_extractor import extract_throughput, write_counts

    cfg = load_config(config)
    counts = extract_throughput(log_file, cfg.get('log.timestamp_format'), cfg.get('log.timestamp_length', 23))

    if output:
        path = write_counts(counts, output)
        click.echo(f"Wrote {len(counts)} minute(s) to {path}")
    else:
        for count in counts:
            click.echo(count)


if __name__ == '__main__':
    cli(obj={})
