#!/usr/bin/env python3
import asyncio, json, logging, sys
from config.logging_config import configure
from config.app_config import settings
from n2k_connect import ConnectionManager, ConnectionProfile, EventKind, N2KConnectError

log = logging.getLogger("n2k-connect")

async def async_main():
    configure()
    if not settings.N2K_PROFILE:
        sys.exit("N2K_PROFILE is not set (JSON connection profile)")
    try:
        profile = ConnectionProfile.from_row(json.loads(settings.N2K_PROFILE))
        profile.validate()
    except (ValueError, N2KConnectError) as e:
        sys.exit(f"Invalid N2K_PROFILE: {e}")

    async with ConnectionManager() as manager:
        events = manager.listen()
        await manager.activate(profile)
        async for event in events:
            if event.kind in (EventKind.RAW_MESSAGE, EventKind.SYNTHETIC_MESSAGE):
                print(event.payload, flush=True)
            elif event.kind is EventKind.ERROR:
                log.error(event.payload)
            elif event.kind is EventKind.DISCONNECTED:
                log.info("transport closed")
                break
            else:
                log.info(event.kind.value)

if __name__ == "__main__":
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        sys.exit("🌙  graceful shutdown")
