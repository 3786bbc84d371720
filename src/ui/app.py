# src/ui/app.py

"""Terminal moderation dashboard for trustmart."""

import asyncio
import logging
from typing import Any, cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Header, Static

from src.models.api_response import ApiResponse
from src.services.bootstrap import Services, build_services

logger = logging.getLogger("trustmart.ui")


def _score_text(score: int) -> Text:
    if score >= 75:
        style = "bold green"
    elif score >= 45:
        style = "yellow"
    else:
        style = "bold red"
    return Text(str(score), style=style)


class ModerationApp(App[object]):
    """Flagged products and reviews with moderator actions."""

    CSS = """
    #title { text-style: bold; padding: 0 1; }
    #status { color: $text-muted; padding: 0 1; }
    .section { text-style: bold; padding: 1 1 0 1; }
    DataTable { height: 1fr; }
    #report { height: auto; max-height: 12; padding: 0 1; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("a", "approve", "Approve"),
        Binding("d", "dismiss", "Dismiss"),
        Binding("c", "clear_flag", "Clear Flag"),
        Binding("t", "analyze", "Trust Report"),
        Binding("r", "refresh", "Refresh"),
        Binding("e", "export", "Export CSV"),
    ]

    def __init__(self, services: Services | None = None) -> None:
        super().__init__()
        self.services = services or build_services()
        self.flagged_products: list[dict[str, Any]] = []
        self.flagged_reviews: list[dict[str, Any]] = []

    def compose(self) -> ComposeResult:
        """Build the widget tree for the dashboard."""
        yield Header()
        yield Container(
            Static("🛡️ TrustMart moderation dashboard", id="title"),
            Static("Loading...", id="status"),
            Static("Flagged products", classes="section"),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="products_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            Static("Flagged reviews", classes="section"),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="reviews_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            Static("", id="report"),
            id="main_container",
        )
        yield Footer()

    def _table(self, table_id: str) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one(f"#{table_id}", DataTable),
        )

    async def on_mount(self) -> None:
        """Configure table columns and load the dashboard."""
        self._table("products_table").add_columns(
            "Name", "Category", "Price", "Rating", "Trust", "Approved",
        )
        self._table("reviews_table").add_columns(
            "Comment", "Rating", "Trust", "Approved",
        )
        await self.action_refresh()

    # ── Helpers ──────────────────────────────────────────

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)

    def _selected(self) -> tuple[str, str] | None:
        """(kind, id) of the highlighted row in the focused table."""
        focused = self.focused
        if isinstance(focused, DataTable) and focused.id == "reviews_table":
            rows, kind = self.flagged_reviews, "review"
            row = focused.cursor_row
        else:
            rows, kind = self.flagged_products, "product"
            row = self._table("products_table").cursor_row
        if not rows or not 0 <= row < len(rows):
            return None
        return kind, rows[row]["id"]

    def _report(self, resp: ApiResponse) -> bool:
        if resp.ok:
            self.notify(resp.message)
            return True
        logger.warning("Action failed (%d): %s", resp.status_code, resp.message)
        self.notify(resp.message, severity="error")
        return False

    def populate_tables(self) -> None:
        products = self._table("products_table")
        products.clear()
        for p in self.flagged_products:
            products.add_row(
                p["name"][:50],
                p["category"],
                f"₹{p['price']:,.0f}",
                f"{p['ratings']['average']:.2f} ({p['ratings']['count']})",
                _score_text(p["trustScore"]),
                "✓" if p["approvedByModerator"] else "",
            )
        reviews = self._table("reviews_table")
        reviews.clear()
        for r in self.flagged_reviews:
            reviews.add_row(
                r["comment"][:60],
                "★" * r["rating"],
                _score_text(r["trustScore"]),
                "✓" if r["approvedByModerator"] else "",
            )

    # ── Actions ──────────────────────────────────────────

    async def action_refresh(self) -> None:
        """Reload flagged products and reviews."""
        resp = await asyncio.to_thread(self.services.service.dashboard)
        if not self._report(resp):
            self._set_status(f"❌ {resp.message}")
            return
        self.flagged_products = resp.payload["products"]
        self.flagged_reviews = resp.payload["reviews"]
        self.populate_tables()
        self._set_status(
            f"{len(self.flagged_products)} flagged products, "
            f"{len(self.flagged_reviews)} flagged reviews"
        )

    async def _moderate(self, action: str) -> None:
        selected = self._selected()
        if selected is None:
            self.notify("Nothing selected", severity="warning")
            return
        kind, entity_id = selected
        service = self.services.service
        handler = {
            "approve": service.approve,
            "dismiss": service.dismiss,
            "clear_flag": service.clear_flag,
        }[action]
        resp = await asyncio.to_thread(handler, kind, entity_id)
        self._report(resp)
        for warning in resp.payload.get("warnings", []):
            self.notify(warning, severity="warning")
        await self.action_refresh()

    async def action_approve(self) -> None:
        await self._moderate("approve")

    async def action_dismiss(self) -> None:
        await self._moderate("dismiss")

    async def action_clear_flag(self) -> None:
        await self._moderate("clear_flag")

    async def action_analyze(self) -> None:
        """Produce a trust report for the selected entity."""
        selected = self._selected()
        if selected is None:
            self.notify("Nothing selected", severity="warning")
            return
        kind, entity_id = selected
        self._set_status(f"🔍 Analyzing {kind} {entity_id}...")
        service = self.services.service
        if kind == "product":
            resp = await service.analyze_product(entity_id)
        else:
            resp = await service.analyze_review(entity_id)
        if not self._report(resp):
            return

        report = self.query_one("#report", Static)
        if kind == "product":
            data = resp.payload["report"]
            lines = [data["summary"]] + [f"🚩 {f}" for f in data["redFlags"]]
            lines += data["notes"]
        else:
            data = resp.payload["analysis"]
            verdict = "Likely fake" if data["isFake"] else "Likely genuine"
            lines = [f"{verdict} ({data['confidence']}% confidence)"]
            lines += [f"• {r}" for r in data["reasons"]]
        report.update("\n".join(lines))
        try:
            self.services.archive.save_report(kind, entity_id, data)
        except OSError as e:
            logger.error("Failed to save report", exc_info=True)
            self.notify(f"Save failed: {e}", severity="error")
        self._set_status(f"✅ Analyzed {kind} {entity_id}")

    def action_export(self) -> None:
        """Export the flagged dashboard to a CSV file."""
        moderation = self.services.service.moderation
        try:
            path = self.services.archive.export_flagged_csv(
                moderation.flagged_products(),
                moderation.flagged_reviews(),
            )
            logger.info("Exported flagged items to %s", path)
            self.notify(f"Exported to {path}")
        except Exception as e:
            logger.error("Failed to export flagged items", exc_info=True)
            self.notify(f"Export failed: {e}", severity="error")

    async def on_unmount(self) -> None:
        self.services.close()
