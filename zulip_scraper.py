"""Harvest every topic and message from a Zulip message feed.

This script opens a Zulip narrow (a stream, topic or search view) in Chromium,
repeatedly scrolls the virtualized message list so Zulip renders more history,
and records each topic's messages as markdown. The result is written as JSON in
the shape ``{topic: [{"sender": ..., "content": ...}]}``.

Usage example:

    python zulip_scraper.py --url "https://chat.example.org/#narrow/stream/7-general" \
        --headed --manual-continue

Signing in is left to the operator: run headed with ``--manual-continue``, log
in inside the browser window, then press Enter to start the harvest.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from playwright.sync_api import (  # type: ignore[import-not-found]
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    Locator,
    Page,
    sync_playwright,
)

from harvest_driver import (
    HarvestDriver,
    HarvestSettings,
    HarvestSetupError,
)

DEFAULT_OUTPUT_FILE = "zulip_messages.json"
SENTINEL_SELECTOR = "#bottom_whitespace"
ROW_SELECTOR = "#message-lists-container .recipient_row"
SHOW_MORE_SELECTOR = "div.message_length_controller > button"
SHOW_MORE_TEXT = "Show more"
TOPIC_SELECTOR = ".stream-topic-inner"
MESSAGE_SELECTOR = ".message_row"
SENDER_SELECTOR = ".sender_name"
CONTENT_SELECTOR = ".message_content"


class PlaywrightFragment:
    """One ``.message_row`` inside a recipient row."""

    def __init__(self, locator: Locator) -> None:
        self.locator = locator

    def sender_label(self) -> Optional[str]:
        sender = self.locator.locator(SENDER_SELECTOR)
        if sender.count() == 0:
            return None
        return sender.first.inner_text().strip()

    def content(self) -> str:
        body = self.locator.locator(CONTENT_SELECTOR)
        if body.count() == 0:
            return ""
        return body.first.inner_html()


class PlaywrightRow:
    """A rendered ``.recipient_row``, addressed by its DOM id when it has one."""

    def __init__(self, page: Page, row_id: str, fallback: Locator) -> None:
        self._row_id = row_id
        if row_id:
            self.locator = page.locator(f"id={row_id}").first
        else:
            self.locator = fallback

    @property
    def row_id(self) -> str:
        return self._row_id

    def expand(self) -> None:
        buttons = self.locator.locator(SHOW_MORE_SELECTOR, has_text=SHOW_MORE_TEXT)
        for idx in range(buttons.count()):
            try:
                buttons.nth(idx).click(timeout=1000)
            except PlaywrightError:
                continue

    def topic_label(self) -> Optional[str]:
        topic = self.locator.locator(TOPIC_SELECTOR)
        if topic.count() == 0:
            return None
        return topic.first.text_content()

    def fragments(self) -> List[PlaywrightFragment]:
        messages = self.locator.locator(MESSAGE_SELECTOR)
        return [PlaywrightFragment(messages.nth(idx)) for idx in range(messages.count())]


class PlaywrightHost:
    """``HostPage`` backed by a live Zulip tab."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def has_sentinel(self) -> bool:
        return self.page.locator(SENTINEL_SELECTOR).count() > 0

    def current_rows(self) -> List[PlaywrightRow]:
        row_ids = self.page.eval_on_selector_all(
            ROW_SELECTOR, "(rows) => rows.map((row) => row.id || '')"
        )
        rows = self.page.locator(ROW_SELECTOR)
        return [
            PlaywrightRow(self.page, str(row_id), rows.nth(idx))
            for idx, row_id in enumerate(row_ids)
        ]

    def jiggle_scroll(self, fraction: float) -> None:
        self.page.evaluate(
            """
            async (fraction) => {
                const amount = Math.round(window.innerHeight * fraction);
                if (amount === 0) {
                    return 0;
                }
                const frame = () => new Promise((resolve) => requestAnimationFrame(resolve));
                window.scrollBy({ top: -amount, behavior: 'auto' });
                await frame();
                window.scrollBy({ top: amount, behavior: 'auto' });
                await frame();
                return amount;
            }
            """,
            fraction,
        )

    def scroll_sentinel_into_view(self) -> None:
        # Zulip fetches the next batch on scroll events only.
        self.page.evaluate(
            "(selector) => { const el = document.querySelector(selector);"
            " if (el) el.scrollIntoView(); }",
            SENTINEL_SELECTOR,
        )

    def wait(self, seconds: float) -> None:
        if seconds > 0:
            self.page.wait_for_timeout(int(seconds * 1000))


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scroll through a Zulip message feed and save every topic as JSON."
    )
    parser.add_argument(
        "--url",
        required=True,
        help="Zulip narrow to harvest (e.g. 'https://chat.example.org/#narrow/stream/7-general').",
    )
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT_FILE,
        help=f"Destination JSON file. Defaults to '{DEFAULT_OUTPUT_FILE}'.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Launch the browser in headless mode (default).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch the browser with a visible window (needed to sign in by hand).",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=20.0,
        help="Seconds to wait for the message list to appear (default: 20).",
    )
    parser.add_argument(
        "--post-load-wait",
        type=float,
        default=5.0,
        help="Extra seconds to wait after the page loads before harvesting (default: 5).",
    )
    parser.add_argument(
        "--settle-wait",
        type=float,
        default=1.0,
        help="Seconds to wait after each jiggle scroll (default: 1).",
    )
    parser.add_argument(
        "--pagination-wait",
        type=float,
        default=5.0,
        help="Seconds to wait for Zulip to fetch older/newer messages (default: 5).",
    )
    parser.add_argument(
        "--jiggle-fraction",
        type=float,
        default=1 / 8,
        help="Fraction of the viewport height used for the jiggle scroll (default: 0.125).",
    )
    parser.add_argument(
        "--max-passes",
        type=int,
        default=0,
        help="Optional cap on the number of extraction passes (0 = no limit).",
    )
    parser.add_argument(
        "--manual-continue",
        action="store_true",
        help="Pause after loading the page; press Enter once signed in and the feed is visible.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Save a screenshot and HTML snapshot when the message list cannot be found.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print per-pass row counts.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.headless and args.headed:
        parser.error("--headless and --headed cannot be used together")
    if not 0 < args.jiggle_fraction <= 1:
        parser.error("--jiggle-fraction must be between 0 and 1")

    return args


def resolve_headless(args: argparse.Namespace) -> bool:
    if args.headed:
        return False
    return True


def wait_for_feed_load(page: Page, timeout: float, extra_wait: float) -> None:
    # Zulip keeps an event long-poll open, so networkidle may never arrive.
    try:
        page.wait_for_load_state("networkidle", timeout=timeout * 1000)
    except PlaywrightTimeoutError:
        print("Network did not go idle; continuing with the feed as loaded.", file=sys.stderr)
    if extra_wait > 0:
        page.wait_for_timeout(int(extra_wait * 1000))


def save_debug_artifacts(page: Page, debug_dir: Path, reason: str) -> None:
    debug_dir.mkdir(parents=True, exist_ok=True)
    screenshot = debug_dir / f"zulip_{reason}.png"
    html_path = debug_dir / f"zulip_{reason}.html"
    try:
        page.screenshot(path=str(screenshot), full_page=True)
        html_path.write_text(page.content(), encoding="utf-8")
    except (PlaywrightError, OSError) as exc:
        print(f"Could not save debug artifacts: {exc}", file=sys.stderr)
        return
    print(f"Debug saved: {screenshot}", file=sys.stderr)
    print(f"Debug saved: {html_path}", file=sys.stderr)
    print(f"At URL: {page.url}", file=sys.stderr)


def build_settings(args: argparse.Namespace) -> HarvestSettings:
    return HarvestSettings(
        jiggle_fraction=args.jiggle_fraction,
        settle_wait=args.settle_wait,
        pagination_wait=args.pagination_wait,
        max_passes=args.max_passes,
        verbose=args.verbose,
    )


def write_harvest_json(path: Path, harvest: Mapping[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(harvest, indent=2, ensure_ascii=False), encoding="utf-8")


def save_harvest(driver: HarvestDriver, output_path: Path) -> int:
    state = driver.state
    if not state.result_by_topic:
        print(
            "No messages were collected. Check that the URL points at a message feed "
            "and that you are signed in.",
            file=sys.stderr,
        )
        return 1

    try:
        write_harvest_json(output_path, state.as_dict())
    except OSError as exc:
        print(f"Error: could not write {output_path}: {exc}", file=sys.stderr)
        return 1
    reason = driver.termination_reason.value if driver.termination_reason else "unknown"
    print(
        f"Harvested {state.message_count()} messages across "
        f"{len(state.result_by_topic)} topics in {driver.passes} passes ({reason})."
    )
    if state.duplicates_dropped:
        print(f"Dropped {state.duplicates_dropped} duplicate messages.")
    print(f"Saved to {output_path}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    output_path = Path(args.output)

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=resolve_headless(args))
        context = browser.new_context()
        page = context.new_page()
        page.goto(args.url)
        wait_for_feed_load(page, args.timeout, args.post_load_wait)

        if args.manual_continue:
            print(
                "Sign in if needed and make sure the message feed is visible, then press Enter to continue...",
                file=sys.stderr,
            )
            try:
                input()
            except EOFError:
                pass

        try:
            page.wait_for_selector(ROW_SELECTOR, timeout=args.timeout * 1000)
        except PlaywrightTimeoutError:
            print("Message list did not render any rows before the timeout.", file=sys.stderr)

        driver = HarvestDriver(PlaywrightHost(page), build_settings(args))
        try:
            driver.run()
        except HarvestSetupError as exc:
            if args.debug:
                save_debug_artifacts(page, output_path.parent / "debug", "setup_failed")
            print(f"Error: {exc}", file=sys.stderr)
            browser.close()
            return 1

        browser.close()

    return save_harvest(driver, output_path)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
