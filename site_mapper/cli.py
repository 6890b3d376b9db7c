#!/usr/bin/env python3
"""
Command-line entry point of SiteMapper.

Commands:
  generate  Crawl the site and write the sitemap (optionally JSON/HTML run reports)
  finalize  Write the sitemap from a crawl stored by ``generate --keep-state``
  ping      Notify search engines about an existing sitemap
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON configuration (default: configs/default.yaml)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout when omitted)
  --log-format FORMAT Logging format string

Example:
  site-mapper --config configs/default.yaml generate --max-depth 3 --split --json report.json
"""
import asyncio
import sys
from pathlib import Path
from typing import Optional

import click

from site_mapper import __version__
from site_mapper.config import load_config
from site_mapper.engine import Engine, GenerateOutcome
from site_mapper.logger import DEFAULT_FORMAT, init_logging
from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json
from site_mapper.sitemap.writer import SitemapError

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _write_mode(split: bool, single: bool) -> Optional[str]:
    if split and single:
        print_error('--split and --single are mutually exclusive')
    if split:
        return 'split'
    if single:
        return 'single'
    return None


def _output_dir(ctx, output: Optional[Path]) -> Path:
    return output if output is not None else ctx.obj['config'].public_dir


def _report_written(outcome: GenerateOutcome) -> None:
    written = outcome.written
    if written is None:
        return
    if written.index is not None:
        click.echo(f'Sitemap index: {written.index} ({len(written.shards)} shard(s))')
    else:
        click.echo(f'Sitemap: {written.entry_point}')
    click.echo(f'URLs written: {written.urls_written}')
    if outcome.errors_file is not None:
        click.echo(f'Error report: {outcome.errors_file}')
    if outcome.pinged:
        for name, ok in outcome.pinged.items():
            click.echo(f'Ping {name}: {"ok" if ok else "failed"}')
    else:
        click.echo('Ping skipped')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMapper, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to the YAML/JSON configuration.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stdout when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """SiteMapper: crawl a site and write its XML sitemap."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('generate', context_settings=CONTEXT_SETTINGS)
@click.option('--max-depth', '-d', 'max_depth', type=click.IntRange(min=0), default=None,
              help='Override max_depth from the configuration')
@click.option('--output', '-o', 'output', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Output directory (default: public_dir)')
@click.option('--split', is_flag=True, help='Always write a sitemap index')
@click.option('--single', is_flag=True, help='Write one sitemap.xml, fail if it cannot hold every URL')
@click.option('--no-ping', 'no_ping', is_flag=True, help='Skip search engine ping even if enabled')
@click.option('--validate/--no-validate', 'validate', default=None,
              help='Record HTTP errors and soft 404s (default: validate_links)')
@click.option('--audit-indexability/--no-audit-indexability', 'audit_indexability', default=None,
              help='Drop noindex pages (default: indexability_audit)')
@click.option('--summary', is_flag=True, help='List excluded URLs after the crawl')
@click.option('--fresh', is_flag=True, help='Discard stored crawl state before crawling')
@click.option('--keep-state', 'keep_state', is_flag=True,
              help='Store the crawl result for "finalize" instead of writing now')
@click.option('--json', '-j', 'json_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Save a JSON run report')
@click.option('--html', '-h', 'html_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Save an HTML run report')
@click.option('--template', '-t', 'template_dir', default=None,
              type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Directory with report.html.j2 (default: packaged template)')
@click.pass_context
def generate(ctx, max_depth, output, split, single, no_ping, validate, audit_indexability,
             summary, fresh, keep_state, json_output, html_output, template_dir):
    """Crawl the site and generate the sitemap."""
    cfg = ctx.obj['config']
    mode = _write_mode(split, single)
    click.echo(f'Crawling {cfg.site_url}')
    engine = Engine(cfg)
    try:
        outcome = asyncio.run(
            engine.generate(
                _output_dir(ctx, output),
                max_depth=max_depth,
                mode=mode,
                validate=validate,
                audit_indexability=audit_indexability,
                ping=not no_ping,
                fresh=fresh,
                keep_state=keep_state,
            )
        )
    except SitemapError as e:
        print_error(f'Sitemap not written: {e}')
    except Exception as e:
        print_error(f'Sitemap generation failed: {e}')

    result = outcome.result
    click.echo(
        f'Crawled {len(result.entries)} pages: {len(result.excluded_urls)} excluded URLs, '
        f'{result.broken_links} broken links'
    )
    if summary and result.excluded_urls:
        click.echo('Excluded URLs:')
        for url in result.excluded_urls:
            click.echo(f'  {url}')

    if keep_state:
        click.echo(f'Crawl result stored in {cfg.state_file}; run "finalize" to write the sitemap')
    else:
        _report_written(outcome)

    if json_output or html_output:
        report = outcome.report()
        if json_output:
            try:
                click.echo(f'JSON report: {render_json(report, json_output)}')
            except Exception as e:
                print_error(f'Failed to save JSON report: {e}')
        if html_output:
            try:
                click.echo(f'HTML report: {render_html(report, template_dir, html_output)}')
            except Exception as e:
                print_error(f'Failed to save HTML report: {e}')


@cli.command('finalize', context_settings=CONTEXT_SETTINGS)
@click.option('--output', '-o', 'output', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Output directory (default: public_dir)')
@click.option('--split', is_flag=True, help='Always write a sitemap index')
@click.option('--single', is_flag=True, help='Write one sitemap.xml')
@click.option('--no-ping', 'no_ping', is_flag=True, help='Skip search engine ping even if enabled')
@click.pass_context
def finalize(ctx, output, split, single, no_ping):
    """Write the sitemap from the stored crawl result."""
    mode = _write_mode(split, single)
    engine = Engine(ctx.obj['config'])
    try:
        outcome = asyncio.run(engine.finalize(_output_dir(ctx, output), mode=mode, ping=not no_ping))
    except LookupError as e:
        print_error(str(e))
    except Exception as e:
        print_error(f'Finalize failed: {e}')
    _report_written(outcome)


@cli.command('ping', context_settings=CONTEXT_SETTINGS)
@click.option('--sitemap', '-s', 'sitemap', default=None,
              help='Sitemap file name in the output directory (default: index or sitemap.xml)')
@click.option('--output', '-o', 'output', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Directory holding the sitemap (default: public_dir)')
@click.pass_context
def ping(ctx, sitemap, output):
    """Ping search engines without regenerating the sitemap."""
    cfg = ctx.obj['config']
    if not cfg.ping:
        click.echo('Ping is disabled in the configuration')
        return
    engine = Engine(cfg)
    try:
        results = asyncio.run(engine.ping_only(_output_dir(ctx, output), sitemap))
    except FileNotFoundError as e:
        print_error(str(e))
    for name, ok in results.items():
        click.echo(f'Ping {name}: {"ok" if ok else "failed"}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
