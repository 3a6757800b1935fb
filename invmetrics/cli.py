from __future__ import annotations
import argparse, asyncio, sys
import orjson
import uvicorn
from invmetrics.config import settings, Settings
from invmetrics.dates import format_instant
from invmetrics.errors import MetricsError
from invmetrics.observability import configure_logging
from invmetrics.repository import InvitationRepository
from invmetrics.runner import MetricsPipeline, build_query
from invmetrics.source import generate_invitations
from invmetrics.stores.factory import open_store

def _settings(args) -> Settings:
    return settings.model_copy(update={
        "store_backend": args.store,
        "database_url": args.database_url,
        "redis_url": args.redis_url,
        "source_delay_seconds": args.source_delay_seconds,
    })

def _dump(obj) -> None:
    sys.stdout.write(orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")

def cmd_ingest(args):
    s = _settings(args)
    query = build_query(args.tenant_id, args.account_id, args.from_, args.to)

    async def _main():
        store = await open_store(s)
        try:
            return await MetricsPipeline(s, store).run(query)
        finally:
            await store.close()

    _dump([p.to_wire() for p in asyncio.run(_main())])

def cmd_generate(args):
    query = build_query(args.tenant_id, args.account_id, args.from_, args.to)
    invitations = generate_invitations(query.tenant_id, query.account_id, query.window.start, query.window.end)
    _dump([{
        "externalId": inv.external_id,
        "senderId": inv.sender_id,
        "receivedAt": format_instant(inv.received_at),
    } for inv in invitations])

def cmd_rollups(args):
    s = _settings(args)
    query = build_query(args.tenant_id, args.account_id, args.from_, args.to)

    async def _main():
        store = await open_store(s)
        try:
            repo = InvitationRepository(store, s.invitations_collection, s.rollups_collection)
            return await repo.read_daily_rollups(query.tenant_id, query.account_id, query.window.start, query.window.end)
        finally:
            await store.close()

    _dump([r.model_dump() for r in asyncio.run(_main())])

def cmd_api(args):
    uvicorn.run("invmetrics.api:app", host=args.host, port=args.port, reload=False)

def _add_range_args(p):
    p.add_argument("--tenant-id", required=True)
    p.add_argument("--account-id", required=True)
    p.add_argument("--from", dest="from_", required=True, help="YYYY-MM-DD, inclusive")
    p.add_argument("--to", required=True, help="YYYY-MM-DD, inclusive")

def _add_store_args(p):
    p.add_argument("--store", choices=["memory", "sql", "redis"], default=settings.store_backend)
    p.add_argument("--database-url", default=settings.database_url)
    p.add_argument("--redis-url", default=settings.redis_url)
    p.add_argument("--source-delay-seconds", type=float, default=settings.source_delay_seconds)

def main(argv=None):
    p = argparse.ArgumentParser(prog="invmetrics")
    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("ingest", help="run the pipeline once and print the data points")
    _add_range_args(i)
    _add_store_args(i)
    i.set_defaults(fn=cmd_ingest)

    g = sub.add_parser("generate", help="print the deterministic invitations for a range")
    _add_range_args(g)
    g.set_defaults(fn=cmd_generate)

    r = sub.add_parser("rollups", help="print stored daily rollups")
    _add_range_args(r)
    _add_store_args(r)
    r.set_defaults(fn=cmd_rollups)

    a = sub.add_parser("api")
    a.add_argument("--host", default="0.0.0.0")
    a.add_argument("--port", type=int, default=settings.port)
    a.set_defaults(fn=cmd_api)

    args = p.parse_args(argv)
    configure_logging(environment=settings.environment, log_level=settings.log_level, stream=sys.stderr)
    try:
        args.fn(args)
    except MetricsError as e:
        p.exit(2 if e.status_code == 400 else 1, f"{e.error}: {e.details}\n")

if __name__ == "__main__":
    main()
