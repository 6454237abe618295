"""
Maintenance commands, meant to be run from cron or a scheduled job:

    python -m vlog72.maintenance sweep
    python -m vlog72.maintenance reconcile [--fix]

The process exits right after a sweep, so its gauges are pushed to a
Prometheus Pushgateway when ``PUSHGATEWAY_URL`` is set.
"""
import argparse
import asyncio
import json
import logging
import os

from prometheus_client import CollectorRegistry, push_to_gateway
from pythonjsonlogger import jsonlogger

from .content import (
    sweep_expirations, reconcile_like_counters, ACTIVE_VLOGS, EXPIRED_VLOGS, SWEEP_RUNS,
)
from .crud import reconcile_follow_counters
from .models import engine

logger = logging.getLogger('vlog72.maintenance')

SWEEP_JOB = 'vlog72_sweep'
SWEEP_REGISTRY = CollectorRegistry()
for _metric in (ACTIVE_VLOGS, EXPIRED_VLOGS, SWEEP_RUNS):
    SWEEP_REGISTRY.register(_metric)


async def push_sweep_metrics(gateway: str = None) -> bool:
    gateway = gateway or os.getenv('PUSHGATEWAY_URL')
    if not gateway:
        return False
    try:
        await asyncio.to_thread(push_to_gateway, gateway, job=SWEEP_JOB, registry=SWEEP_REGISTRY)
    except OSError as e:
        logger.warning({'msg': 'metrics_push_failed', 'gateway': gateway, 'error': str(e)})
        return False
    return True


async def run_sweep() -> dict:
    expired = await sweep_expirations()
    pushed = await push_sweep_metrics()
    return {'expired': expired, 'metrics_pushed': pushed}


async def run_reconcile(fix: bool = False) -> dict:
    follows = await reconcile_follow_counters(fix=fix)
    likes = await reconcile_like_counters(fix=fix)
    return {'follow_drift': follows, 'like_drift': likes, 'fixed': fix}


async def _main(args) -> dict:
    try:
        if args.command == 'sweep':
            return await run_sweep()
        return await run_reconcile(fix=args.fix)
    finally:
        logger.info({'msg': 'maintenance_finished', 'command': args.command})
        await engine.dispose()


def main(argv=None):
    parser = argparse.ArgumentParser(prog='vlog72.maintenance')
    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('sweep', help='Report active/expired vlog counts (read-only)')
    reconcile = sub.add_parser('reconcile', help='Recount follower and like counters')
    reconcile.add_argument('--fix', action='store_true', help='Rewrite drifted counters')
    args = parser.parse_args(argv)

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
    root = logging.getLogger('vlog72')
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    result = asyncio.run(_main(args))
    print(json.dumps(result, indent=2))


if __name__ == '__main__':
    main()
