from __future__ import annotations

import argparse
import asyncio
import signal
import time

from infrastructure.external.storage import (
    StorageError,
    get_storage_config,
    init_bucket_manager,
    shutdown_bucket_manager,
)


async def run_list(bucket: str, prefix: str, stream: bool, limit: int) -> None:
    manager = await init_bucket_manager()
    try:
        if not stream:
            marker = ""
            while True:
                page = await manager.list_files(bucket, prefix=prefix, marker=marker, limit=limit)
                for item in page.items:
                    print(f"{item.key}\t{item.fsize}\t{item.mime_type}")
                if not page.has_next:
                    break
                marker = page.next_marker
            return

        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, cancel.set)

        listing = await manager.list_bucket(bucket, prefix=prefix, cancel_event=cancel)
        async with listing:
            async for item in listing.items():
                print(f"{item.key}\t{item.fsize}\t{item.mime_type}")
        print(f"[list] {listing.state.value}, {listing.records_delivered} records, resume marker={listing.last_marker!r}")
        if listing.error is not None:
            print(f"[list] error: {listing.error}")
    finally:
        await shutdown_bucket_manager()


async def run_stat(bucket: str, key: str) -> None:
    manager = await init_bucket_manager()
    try:
        info = await manager.stat(bucket, key)
        print(info.model_dump_json(indent=2))
    finally:
        await shutdown_bucket_manager()


def run_sign(domain: str, key: str, ttl: int) -> None:
    from infrastructure.external.storage.auth import Credentials
    from infrastructure.external.storage.urls import make_private_url_v2

    cfg = get_storage_config()
    creds = Credentials(cfg.access_key or "", cfg.secret_key or "")
    print(make_private_url_v2(creds, domain, key, int(time.time()) + ttl))


def main() -> None:
    ap = argparse.ArgumentParser(description="Bucket management demo (credentials from STORAGE__* env)")
    sub = ap.add_subparsers(dest="mode", required=True)

    lp = sub.add_parser("list", help="List a bucket")
    lp.add_argument("bucket")
    lp.add_argument("--prefix", default="")
    lp.add_argument("--stream", action="store_true", help="Use the streaming listing (Ctrl-C cancels)")
    lp.add_argument("--limit", type=int, default=1000)

    sp = sub.add_parser("stat", help="Show object metadata")
    sp.add_argument("bucket")
    sp.add_argument("key")

    up = sub.add_parser("sign", help="Print a private download URL")
    up.add_argument("domain")
    up.add_argument("key")
    up.add_argument("--ttl", type=int, default=3600)

    args = ap.parse_args()
    try:
        if args.mode == "list":
            asyncio.run(run_list(args.bucket, args.prefix, args.stream, args.limit))
        elif args.mode == "stat":
            asyncio.run(run_stat(args.bucket, args.key))
        else:
            run_sign(args.domain, args.key, args.ttl)
    except StorageError as e:
        print(f"[{e.error_type}] {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
