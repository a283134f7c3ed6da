#!/usr/bin/env python3
"""
Main application - terminal bidder console for the live auction
"""

import signal
import sys
import threading
from typing import Optional, Tuple

from config import AUCTION_CONFIG, DISPLAY_CONFIG, LOGGING_CONFIG
from core.config_validator import validate_startup_config, ConfigValidationError
from core.connection_manager import ConnectionStatus
from core.logging_config import setup_logging, get_logger
from auction import AuctionClient, AuctionView, IntentError, Phase


def parse_command(line: str) -> Optional[Tuple[str, tuple]]:
    """
    Parse one console line.

    "5200" bids 5200, "+100" raises the current price by 100,
    "start 5000 Ford Mustang" starts a listing, "q" quits.
    Returns None for lines that mean nothing.
    """
    text = line.strip()
    if not text:
        return None

    if text.lower() in ("q", "quit", "exit"):
        return ("quit", ())

    if text.startswith("+") and text[1:].isdigit():
        return ("raise", (int(text[1:]),))

    if text.isdigit():
        return ("bid", (int(text),))

    parts = text.split(maxsplit=2)
    if parts[0].lower() == "start" and len(parts) == 3 and parts[1].isdigit():
        return ("start", (parts[2], int(parts[1])))

    return None


class BidderConsole:
    """Redraws the auction dashboard and turns typed commands into intents"""

    def __init__(self, client: Optional[AuctionClient] = None, output=None):
        self.logger = get_logger(__name__)
        self.output = output or sys.stdout
        self.feedback = ""
        self.draw_lock = threading.Lock()
        self.client = client or AuctionClient(
            on_view_change=self._on_view_change,
            on_status_change=self._on_status_change,
        )
        if client is not None:
            client.on_view_change = self._on_view_change
            client.on_status_change = self._on_status_change

    def _on_view_change(self, view: AuctionView):
        self.draw()

    def _on_status_change(self, status: ConnectionStatus):
        self.draw()

    def render(self) -> str:
        """Dashboard text for the current view and connectivity"""
        colors = DISPLAY_CONFIG["colors"]
        reset = colors["reset"]
        view = self.client.view
        status = self.client.status

        status_color = colors["green"] if status == ConnectionStatus.CONNECTED else colors["red"]
        time_color = colors["red"] if view.time_remaining < DISPLAY_CONFIG["urgent_seconds"] else colors["green"]
        if self.client.is_leading():
            bidder = f"{colors['green']}YOU{reset}"
        else:
            bidder = f"{colors['cyan']}{view.high_bidder}{reset}"

        phase_labels = {
            Phase.AWAITING_LISTING: "WAITING",
            Phase.LIVE: "LIVE",
            Phase.ENDED: "ENDED",
            Phase.SOLD: "SOLD",
        }
        increments = " / ".join(f"+{i}" for i in AUCTION_CONFIG["bid_increments"])
        notice = view.notice or ""

        lines = [
            "=" * 40,
            f"   {DISPLAY_CONFIG['title']}: {view.item_name}",
            "=" * 40,
            f"SERVER:         {status_color}{status.value.upper()}{reset}   [{phase_labels[view.phase]}]",
            f"TIME REMAINING: {time_color}{view.time_remaining}s{reset}",
            "",
            f"CURRENT PRICE:  {colors['green']}${view.current_amount}{reset}",
            f"HIGH BIDDER:    {bidder}",
            "",
            "-" * 40,
            f"NOTICE: {colors['yellow']}{notice}{reset}",
            f"STATUS: {self.feedback}",
            "-" * 40,
            f"You are {self.client.username}. Bid: <amount> | {increments} | start <price> <item> | q",
        ]
        return "\n".join(lines)

    def draw(self):
        with self.draw_lock:
            # Clear screen (ANSI)
            self.output.write("\033[H\033[2J")
            self.output.write(self.render())
            self.output.write("\n> ")
            self.output.flush()

    def handle_line(self, line: str) -> bool:
        """
        Execute one console line.

        Returns:
            False when the user asked to quit
        """
        command = parse_command(line)
        if command is None:
            self.feedback = "Unrecognised input"
            self.draw()
            return True

        action, args = command
        if action == "quit":
            return False

        try:
            if action == "bid":
                sent = self.client.place_bid(*args)
            elif action == "raise":
                sent = self.client.raise_bid(*args)
            else:
                sent = self.client.start_listing(*args)
        except IntentError as e:
            self.feedback = f"{DISPLAY_CONFIG['colors']['red']}{e}{DISPLAY_CONFIG['colors']['reset']}"
        else:
            self.feedback = "Sent" if sent else "Offline - not sent"

        self.draw()
        return True

    def run(self, input_stream=None):
        """Connect and read commands until quit or end of input"""
        input_stream = input_stream or sys.stdin
        self.client.start()
        self.draw()
        for line in input_stream:
            if not self.handle_line(line):
                break
        self.stop()

    def stop(self):
        self.logger.info("Stopping bidder console")
        self.client.stop()


def signal_handler(sig, frame):
    """Handle Ctrl+C gracefully"""
    global console
    try:
        print("\n\nShutting down...")
        console.stop()
    finally:
        sys.exit(0)


if __name__ == "__main__":
    try:
        warnings = validate_startup_config()
    except ConfigValidationError as e:
        print(f"Configuration validation failed: {e}")
        print("Please fix the configuration errors and try again.")
        sys.exit(1)

    setup_logging(LOGGING_CONFIG)
    logger = get_logger(__name__)
    for warning in warnings:
        logger.warning(f"Configuration warning: {warning}")
    logger.info("Starting auction bidder console")

    signal.signal(signal.SIGINT, signal_handler)

    console = BidderConsole()
    try:
        console.run()
    except Exception as e:
        logger.error("Bidder console crashed", exc_info=True, extra={
            "extra_data": {"error_type": type(e).__name__, "error_message": str(e)}
        })
        console.stop()
        sys.exit(1)
