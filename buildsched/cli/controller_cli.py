#!/usr/bin/env python3
"""
Buildsched Controller CLI

Runs the image and build control loops and inspects what they produced.
"""

import asyncio
import click
import logging
import signal
import sys

from ..buildchange.logger import ChangeLogger
from ..core.enums import ObjectKind
from ..core.errors import NotFoundError
from ..core.naming import split_key


@click.group()
def cli():
    """Buildsched - decides when container images must be rebuilt"""
    pass


@cli.command()
@click.option('--global-config', default=None, help='Path to global config YAML')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
              help='Set the logging level (overrides the global config)')
def start(global_config: str, log_level: str):
    """Start the controller manager"""
    from ..config.global_config_loader import load_global_config
    from ..manager import ControllerManager

    global_cfg = load_global_config(global_config)
    level = log_level or global_cfg.logging.level

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logger = logging.getLogger(__name__)

    logger.info("=" * 80)
    logger.info("Buildsched Controller Configuration")
    logger.info("=" * 80)
    logger.info(f"Store: {global_cfg.store.type} ({global_cfg.store.url if global_cfg.store.type == 'redis' else 'in-process'})")
    logger.info(f"Image Workers: {global_cfg.controller.image_workers}")
    logger.info(f"Build Workers: {global_cfg.controller.build_workers}")
    logger.info(f"Priority Classes: {'enabled' if global_cfg.controller.enable_priority_classes else 'disabled'}")
    logger.info("=" * 80)

    async def async_main():
        manager = ControllerManager(global_cfg)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.ensure_future(_shutdown(manager, s)))

        await manager.start()
        logger.info("Controller started. Press Ctrl+C to stop")
        await manager.wait()

    async def _shutdown(manager, sig):
        logger.info(f"Received signal {sig.name}, shutting down...")
        await manager.stop()

    try:
        asyncio.run(async_main())
    except Exception as e:
        logger.error(f"Controller error: {e}", exc_info=True)
        sys.exit(1)


@cli.command()
@click.option('--global-config', default=None, help='Path to global config YAML')
def info(global_config: str):
    """Display controller configuration information"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    logger = logging.getLogger(__name__)

    from ..config.global_config_loader import load_global_config
    global_cfg = load_global_config(global_config)

    logger.info("\n" + "=" * 80)
    logger.info("Buildsched Configuration")
    logger.info("=" * 80)

    logger.info("\nStore Configuration:")
    logger.info(f"  Type: {global_cfg.store.type}")
    logger.info(f"  URL: {global_cfg.store.url}")
    logger.info(f"  Key Prefix: {global_cfg.store.key_prefix}")

    logger.info("\nController Configuration:")
    logger.info(f"  Image Workers: {global_cfg.controller.image_workers}")
    logger.info(f"  Build Workers: {global_cfg.controller.build_workers}")
    logger.info(f"  Tracker Lease: {global_cfg.controller.tracker_lease_seconds}s")
    logger.info(f"  Backoff: {global_cfg.controller.base_backoff}s .. {global_cfg.controller.max_backoff}s")
    logger.info(f"  Priority Classes: {global_cfg.controller.enable_priority_classes}")
    logger.info(f"  Notification Buffer: {global_cfg.controller.notification_buffer}")

    logger.info("\nImage Defaults:")
    logger.info(f"  Failed Build History Limit: {global_cfg.image_defaults.failed_build_history_limit}")
    logger.info(f"  Success Build History Limit: {global_cfg.image_defaults.success_build_history_limit}")

    logger.info("\n" + "=" * 80 + "\n")


@cli.command()
@click.argument('build_key')
@click.option('--global-config', default=None, help='Path to global config YAML')
def explain(build_key: str, global_config: str):
    """Explain why BUILD_KEY (namespace/name) was created"""
    from ..config.global_config_loader import load_global_config
    from ..store import get_object_store

    global_cfg = load_global_config(global_config)
    namespace, name = split_key(build_key)

    async def fetch_changes() -> str:
        store = get_object_store(global_cfg.store.type, vars(global_cfg.store))
        await store.connect()
        try:
            build = await store.get(ObjectKind.BUILD.value, namespace, name)
        finally:
            await store.disconnect()
        return build.build_changes()

    try:
        changes = asyncio.run(fetch_changes())
        lines = ChangeLogger().explain(changes)
    except NotFoundError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Cannot explain build {build_key}: {e}", err=True)
        sys.exit(1)

    if not lines:
        click.echo(f"Build {build_key} carries no recorded changes")
        return
    for line in lines:
        click.echo(line)


if __name__ == '__main__':
    cli()
