"""CLI エントリポイント。"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import click
import uvicorn
from dotenv import load_dotenv

from ical_merge import __version__
from ical_merge.app import create_app
from ical_merge.core.errors import ConfigError
from ical_merge.core.logging import configure_logging
from ical_merge.core.settings import load_settings


@click.command()
@click.version_option(version=__version__)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="設定ファイル（JSON）のパス。既定は ICAL_MERGE_CONFIG か config.json",
)
@click.option("--bind", default=None, help="待ち受けアドレス（設定ファイルの server.bind_address より優先）")
@click.option("-p", "--port", type=int, default=None, help="待ち受けポート（server.port より優先）")
def cli(config_path: Path | None, bind: str | None, port: int | None) -> None:
    """複数の iCal フィードをマージして配信する。"""

    load_dotenv()
    load_settings.cache_clear()
    settings = load_settings()
    if config_path is not None:
        settings = dataclasses.replace(settings, config_path=config_path)
    configure_logging(settings.log_level)

    try:
        app = create_app(settings)
    except ConfigError as exc:
        raise click.ClickException(f"設定の読み込みに失敗しました: {exc}") from exc

    server = app.state.config_store.current().server
    host = bind or server.bind_address
    listen_port = port if port is not None else server.port
    click.echo(f"Starting ical-merge on {host}:{listen_port}")
    uvicorn.run(app, host=host, port=listen_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    cli()
