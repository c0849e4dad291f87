from __future__ import annotations

import argparse
import asyncio
import contextlib
from typing import Sequence

from playwright.async_api import Browser, async_playwright

from carrier_sync.admin.driver import PageDriver
from carrier_sync.admin.eligibility import CarrierEligibilityEngine
from carrier_sync.admin.order_list import OrderListProcessor
from carrier_sync.admin.order_sync import OrderSyncOrchestrator
from carrier_sync.admin.pincode_registry import CarrierPincodeRegistry
from carrier_sync.admin.run_summary import RunSummary, build_summary, persist_summary, render_summary
from carrier_sync.browser import launch_browser, open_session_context
from carrier_sync.config import config
from carrier_sync.json_logger import JsonLogger, get_logger, log_event, new_run_id, timed_event

PIPELINE_NAME = "carrier_sync"
ORDER_LIST_NAV_TIMEOUT_MS = 30_000


async def main(
    *,
    run_id: str | None = None,
    carrier: str | None = None,
    quota: int | None = None,
    orders: Sequence[str] | None = None,
) -> RunSummary:
    """Process the order table once and persist the run summary."""

    resolved_run_id = run_id or new_run_id()
    resolved_carrier = (carrier if carrier is not None else config.carrier_override).strip()
    resolved_quota = quota if quota is not None else config.process_count
    if resolved_quota is not None and resolved_quota <= 0:
        resolved_quota = None
    allow_list = list(orders) if orders is not None else config.orders_to_process

    root_logger: JsonLogger = get_logger(run_id=resolved_run_id)
    logger = root_logger.bind(pipeline=PIPELINE_NAME)
    browser: Browser | None = None
    processor: OrderListProcessor | None = None
    summary = build_summary([], resolved_quota)

    try:
        log_event(
            logger=logger,
            phase="init",
            message="Starting carrier sync run",
            run_env=config.run_env,
            carrier=resolved_carrier or None,
            quota=resolved_quota,
            allow_list_size=len(allow_list),
        )
        if not resolved_carrier:
            log_event(
                logger=logger,
                phase="init",
                status="warn",
                message="No CARRIER_OVERRIDE set; orders will not be assigned a carrier",
            )

        registry = CarrierPincodeRegistry(
            config.pincode_data_dir,
            ttl_seconds=config.pincode_cache_ttl_seconds,
            logger=logger,
        )
        if resolved_carrier:
            if not registry.has_source(resolved_carrier):
                log_event(
                    logger=logger,
                    phase="pincodes",
                    status="warn",
                    message="No pincode workbook for carrier; pincode restriction disabled",
                    carrier=resolved_carrier,
                    path=str(registry.source_path(resolved_carrier)),
                )
            registry.preload([resolved_carrier])
        eligibility = CarrierEligibilityEngine(registry)

        async with async_playwright() as p:
            browser = await launch_browser(playwright=p, logger=logger)
            context = await open_session_context(browser=browser, logger=logger)
            page = await context.new_page()

            orchestrator = OrderSyncOrchestrator(
                open_surface=lambda: PageDriver.open_surface(context, logger=logger),
                eligibility=eligibility,
                order_url=config.order_url,
                carrier_override=resolved_carrier,
                logger=logger,
                settle_ms=config.sync_settle_ms,
            )
            processor = OrderListProcessor(
                page=page,
                orchestrator=orchestrator,
                logger=logger,
                allow_list=allow_list,
                min_address_text_length=config.min_address_text_length,
                row_pause_ms=config.row_pause_ms,
            )

            opened = await processor.driver.navigate(config.order_list_url, timeout_ms=ORDER_LIST_NAV_TIMEOUT_MS)
            if opened.ok:
                with timed_event(logger=logger, phase="rows", message="Process order table"):
                    summary = await processor.run(quota=resolved_quota)
            else:
                log_event(
                    logger=logger,
                    phase="init",
                    status="error",
                    message="Order list page did not load",
                    url=config.order_list_url,
                    detail=opened.detail,
                )

            await browser.close()
            browser = None
    except asyncio.CancelledError:
        log_event(logger=logger, phase="rows", status="warn", message="Carrier sync run interrupted")
        raise
    finally:
        if browser is not None:
            with contextlib.suppress(Exception):
                await browser.close()
        if processor is not None and processor.summary is not None:
            summary = processor.summary
        persist_summary(summary, config.logs_dir, logger=logger)
        log_event(logger=logger, phase="summary", message="Carrier sync run complete", **summary.build_record())
        root_logger.close()

    return summary


def _parse_orders(value: str) -> list[str]:
    return [token.strip() for token in value.split(",") if token.strip()]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Assign shipping carriers to new orders in the admin panel")
    parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")
    parser.add_argument("--carrier", dest="carrier", type=str, default=None, help="Carrier to assign (CARRIER_OVERRIDE)")
    parser.add_argument("--quota", dest="quota", type=int, default=None, help="Stop after N processed orders (PROCESS_COUNT)")
    parser.add_argument(
        "--orders", dest="orders", type=_parse_orders, default=None, help="Comma separated order ids to process"
    )
    return parser


async def _async_entrypoint(argv: Sequence[str] | None = None) -> RunSummary:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return await main(run_id=args.run_id, carrier=args.carrier, quota=args.quota, orders=args.orders)


def run(argv: Sequence[str] | None = None) -> int:
    summary = asyncio.run(_async_entrypoint(argv))
    print(render_summary(summary), flush=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())
